#!/usr/bin/env python3
"""
Hybrid Scheduling & Deadlock Simulator
Main entry point for the simulation system.

Educational tool for visualizing adaptive CPU scheduling together with
resource-contention deadlock detection and recovery.
"""

import argparse
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from models.errors import ConfigurationError, InsufficientCapacity, Stalled
from models.process import ProcessSpec, ProcessState
from models.resource import ResourceSpec
from models.system_state import SimulationState
from utils.scenario_loader import build_system_state, load_scenario, get_scenario_description
from utils.logger import SimulatorLogger
from algorithms.dispatcher import DEFAULT_QUANTUM, select_next, slice_length
from algorithms.detection import detect_deadlock
from algorithms.recovery import recover_from_deadlock
from analysis.events import DispatchEvent, EventLog, EventType, ResolutionEvent, SimulationEvent
from analysis.metrics import (
    PerformanceRow, SimulationMetrics, format_gantt, format_metrics_report,
    format_rag, performance_rows,
)


class DriverState(Enum):
    """States of the simulation loop itself."""
    ADMITTING = "ADMITTING"
    DISPATCHING = "DISPATCHING"
    EXECUTING = "EXECUTING"
    MONITORING = "MONITORING"
    IDLE = "IDLE"
    DONE = "DONE"


@dataclass
class SimulationResult:
    """
    Everything the reporting layer consumes after a run.

    Attributes:
        dispatch_events: Gantt sequence of (pid, duration)
        rows: Per-process statistics in pid order
        context_switches: Number of process switches
        deadlocks_resolved: Number of victims terminated
        request_edges: Outstanding (pid, rid) request edges at the end
        allocation_edges: Outstanding (rid, pid) allocation edges at the end
        resolutions: One record per resolved deadlock
        event_log: Full event history
        clock: Final clock value
        metrics: Summary metrics
    """
    dispatch_events: List[DispatchEvent]
    rows: List[PerformanceRow]
    context_switches: int
    deadlocks_resolved: int
    request_edges: List[Tuple[int, int]]
    allocation_edges: List[Tuple[int, int]]
    resolutions: List[ResolutionEvent] = field(default_factory=list)
    event_log: EventLog = field(default_factory=EventLog)
    clock: int = 0
    metrics: Optional[SimulationMetrics] = None

    @classmethod
    def from_state(cls, system_state: SimulationState) -> "SimulationResult":
        return cls(
            dispatch_events=[DispatchEvent(e.pid, e.duration) for e in system_state.dispatch_events],
            rows=performance_rows(system_state),
            context_switches=system_state.context_switches,
            deadlocks_resolved=system_state.deadlocks_resolved,
            request_edges=system_state.registry.request_edges(),
            allocation_edges=system_state.registry.allocation_edges(),
            resolutions=list(system_state.resolutions),
            event_log=system_state.event_log,
            clock=system_state.clock,
            metrics=SimulationMetrics.from_state(system_state),
        )


class SimulationDriver:
    """
    Owns the discrete clock and drives one run to completion.

    Iteration ordering (for deterministic execution):
    1. Admitting: admit arrivals (input order), then one acquisition round
       where each waiting process tries its next requested resource
    2. Done check
    3. Dispatching: pick a pid, or go Idle when the ready queue is empty
    4. Executing: run min(quantum, remaining); Idle instead advances clock by 1
    5. Monitoring: detect a RAG cycle and terminate one victim
    """

    def __init__(
        self,
        system_state: SimulationState,
        logger: Optional[SimulatorLogger] = None,
        stall_limit: Optional[int] = None
    ):
        """
        Args:
            system_state: Validated initial state at clock 0
            logger: Logger instance (non-verbose console logger by default)
            stall_limit: Consecutive idle ticks without progress tolerated
                before raising Stalled; defaults to the latest arrival + 1
        """
        self.state = system_state
        self.logger = logger or SimulatorLogger()
        if stall_limit is None:
            stall_limit = max((p.arrival for p in system_state.processes), default=0) + 1
        self.stall_limit = stall_limit
        self.driver_state = DriverState.ADMITTING
        self.idle_ticks = 0
        self._admission_order: List[int] = []
        self._blocked_on = {}

    def run(self) -> SimulationResult:
        """
        Run until every process is finished.

        Raises:
            Stalled: If no progress is possible and no deadlock explains it
        """
        while self.driver_state != DriverState.DONE:
            self.step()
        return SimulationResult.from_state(self.state)

    def step(self) -> DriverState:
        """Run one loop iteration and return the resulting loop state."""
        state = self.state

        self.driver_state = DriverState.ADMITTING
        progress = self._admit_arrivals()
        progress = self._acquisition_round() or progress

        if state.processes.all_finished():
            self.driver_state = DriverState.DONE
            self.logger.log_clock(state.clock, "All processes finished")
            return self.driver_state

        self.driver_state = DriverState.DISPATCHING
        if len(state.ready) > 0:
            self.driver_state = DriverState.EXECUTING
            self._execute()
            progress = True
            idle = False
        else:
            self.driver_state = DriverState.IDLE
            self._idle_tick()
            idle = True

        self.driver_state = DriverState.MONITORING
        progress = self._monitor() or progress

        if progress:
            self.idle_ticks = 0
        elif idle:
            self.idle_ticks += 1
            if self.idle_ticks > self.stall_limit:
                self._stall()

        self.driver_state = DriverState.ADMITTING
        return self.driver_state

    def _admit_arrivals(self) -> bool:
        """Move arrived NEW processes to READY or WAITING (input order)."""
        state = self.state
        admitted = False
        for process in state.processes:
            if process.state != ProcessState.NEW or process.arrival > state.clock:
                continue
            state.registry.add_requests(process.pid, process.requested_resources)
            self._admission_order.append(process.pid)
            admitted = True
            state.event_log.add(SimulationEvent(
                clock=state.clock,
                event_type=EventType.ADMISSION,
                process_id=process.pid
            ))
            self.logger.log_clock(state.clock, f"P{process.pid} arrives", "debug")
            if state.registry.pending_of(process.pid):
                process.state = ProcessState.WAITING
            else:
                self._make_ready(process.pid)
        return admitted

    def _acquisition_round(self) -> bool:
        """
        Each waiting process, in admission order, tries to allocate its next
        requested resource. At most one grant per process per iteration.
        """
        state = self.state
        granted_any = False
        for pid in self._admission_order:
            process = state.processes.get(pid)
            if process.state != ProcessState.WAITING:
                continue
            rid = state.registry.pending_of(pid)[0]
            try:
                state.registry.allocate(pid, rid)
            except InsufficientCapacity:
                if self._blocked_on.get(pid) != rid:
                    self._blocked_on[pid] = rid
                    state.event_log.add(SimulationEvent(
                        clock=state.clock,
                        event_type=EventType.DENIAL,
                        process_id=pid,
                        resource_id=rid
                    ))
                self.logger.log_allocation(state.clock, pid, rid, False)
                continue

            self._blocked_on.pop(pid, None)
            granted_any = True
            state.event_log.add(SimulationEvent(
                clock=state.clock,
                event_type=EventType.ALLOCATION,
                process_id=pid,
                resource_id=rid
            ))
            self.logger.log_allocation(state.clock, pid, rid, True)
            if not state.registry.pending_of(pid):
                self._make_ready(pid)
        return granted_any

    def _make_ready(self, pid: int) -> None:
        self.state.processes.get(pid).state = ProcessState.READY
        self.state.ready.push(pid)

    def _execute(self) -> None:
        """Run the selected process for one slice and apply its effects."""
        state = self.state
        ready_size = len(state.ready)
        pid, policy = select_next(state.ready.as_list(), state.processes)
        process = state.processes.get(pid)

        state.ready.remove(pid)
        process.state = ProcessState.RUNNING
        duration = slice_length(process.remaining, state.quantum)
        self.logger.log_dispatch(state.clock, pid, duration, policy.value, ready_size)

        process.run(duration)
        state.event_log.add(SimulationEvent(
            clock=state.clock,
            event_type=EventType.DISPATCH,
            process_id=pid,
            duration=duration,
            message=policy.value
        ))
        state.clock += duration
        state.busy_time += duration
        self._record_dispatch(pid, duration)

        if process.remaining == 0:
            process.complete(state.clock)
            state.registry.release(pid)
            state.event_log.add(SimulationEvent(
                clock=state.clock,
                event_type=EventType.FINISH,
                process_id=pid
            ))
            self.logger.log_finish(state.clock, pid, process.turnaround, process.waiting)
        else:
            process.state = ProcessState.READY
            state.ready.push(pid)

    def _record_dispatch(self, pid: int, duration: int) -> None:
        """
        Append to the Gantt sequence. Re-dispatching the process whose slice
        immediately preceded is not a context switch: its bar is extended.
        """
        state = self.state
        if state.last_dispatched == pid and state.dispatch_events:
            state.dispatch_events[-1].duration += duration
        else:
            state.dispatch_events.append(DispatchEvent(pid, duration))
            state.context_switches += 1
        state.last_dispatched = pid

    def _idle_tick(self) -> None:
        state = self.state
        state.event_log.add(SimulationEvent(
            clock=state.clock,
            event_type=EventType.IDLE,
            process_id=-1
        ))
        self.logger.log_clock(state.clock, "CPU idle", "debug")
        state.clock += 1
        state.last_dispatched = None

    def _monitor(self) -> bool:
        """Detect and resolve at most one deadlock. Returns True if resolved."""
        state = self.state
        deadlock_exists, cycle = detect_deadlock(state)
        if not deadlock_exists:
            return False

        self.logger.log_deadlock(state.clock, cycle)
        state.event_log.add(SimulationEvent(
            clock=state.clock,
            event_type=EventType.DEADLOCK,
            process_id=-1,
            message=f"cycle: {cycle}"
        ))

        resolution = recover_from_deadlock(cycle, state)
        if resolution is None:
            self.logger.log_clock(state.clock, "Recovery found no victim", "warning")
            return False

        victim = state.processes.get(resolution.victim)
        released = ", ".join(f"R{rid}" for rid in resolution.released) or "nothing"
        self.logger.log_recovery(
            state.clock,
            f"Terminated P{victim.pid} (priority={victim.priority}, released {released})"
        )
        self._blocked_on.pop(victim.pid, None)
        if self.logger.verbose:
            self.logger.log_system_state(state.clock, state.display())
        return True

    def _stall(self) -> None:
        state = self.state
        message = (
            f"No progress for {self.idle_ticks} idle ticks and no deadlock cycle "
            f"(unfinished: {[p.pid for p in state.processes.unfinished()]})"
        )
        self.logger.log_clock(state.clock, message, "error")
        self.driver_state = DriverState.DONE
        raise Stalled(
            message,
            clock=state.clock,
            snapshot=state.snapshot(),
            result=SimulationResult.from_state(state)
        )


def run_simulation(
    process_specs: Sequence[ProcessSpec],
    resource_specs: Sequence[ResourceSpec] = (),
    quantum: int = DEFAULT_QUANTUM,
    logger: Optional[SimulatorLogger] = None,
    stall_limit: Optional[int] = None
) -> SimulationResult:
    """
    Validate the configuration and run a simulation to completion.

    Args:
        process_specs: One spec per process
        resource_specs: One spec per resource type
        quantum: Maximum slice length
        logger: Logger instance
        stall_limit: Override for the Stalled guard

    Returns:
        SimulationResult

    Raises:
        ConfigurationError: Before the run starts, on invalid input
        Stalled: If the run cannot make progress
    """
    system_state = build_system_state(process_specs, resource_specs, quantum)
    driver = SimulationDriver(system_state, logger=logger, stall_limit=stall_limit)
    return driver.run()


def _display_initial_state(
    process_specs: Sequence[ProcessSpec],
    resource_specs: Sequence[ResourceSpec],
    quantum: int,
    logger: SimulatorLogger
) -> None:
    """Display the loaded configuration."""
    logger.log(f"Quantum: {quantum}")
    logger.log("\nProcesses:")
    for p in process_specs:
        logger.log(
            f"  P{p.pid}: arrival={p.arrival}, burst={p.burst}, "
            f"priority={p.priority}, requests={list(p.requested_resources)}"
        )
    logger.log("\nResources:")
    for r in resource_specs:
        logger.log(f"  R{r.rid}: total={r.total}")


def _display_results(result: SimulationResult, logger: SimulatorLogger, scenario: str, stop_reason: str) -> None:
    logger.log("\nGantt Chart:")
    logger.log(format_gantt(result.dispatch_events))
    logger.log(format_metrics_report(result.metrics, result.rows, scenario, stop_reason))
    logger.log("\nResource Allocation Graph (RAG):")
    logger.log(format_rag(result.request_edges, result.allocation_edges))
    if logger.verbose:
        logger.log("\nEvent History:", "debug")
        logger.log(result.event_log.display(), "debug")


def main():
    """Main entry point for the simulator."""
    parser = argparse.ArgumentParser(
        description='Hybrid Scheduling & Deadlock Simulator'
    )
    parser.add_argument(
        '--scenario',
        type=str,
        required=True,
        help='Path to scenario JSON file'
    )
    parser.add_argument(
        '--quantum',
        type=int,
        default=None,
        help=f'Time quantum (overrides the scenario; default: {DEFAULT_QUANTUM})'
    )
    parser.add_argument(
        '--stall-limit',
        type=int,
        default=None,
        help='Consecutive idle ticks without progress before failing (default: latest arrival + 1)'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )
    parser.add_argument(
        '--log-file',
        type=str,
        default=None,
        help='Also write the log to this file'
    )

    args = parser.parse_args()

    if args.quantum is not None and args.quantum <= 0:
        parser.error('--quantum must be positive')

    logger = SimulatorLogger(verbose=args.verbose, log_file=args.log_file)
    try:
        try:
            process_specs, resource_specs, quantum = load_scenario(args.scenario)
            if args.quantum is not None:
                quantum = args.quantum

            logger.log(f"\n{'='*60}")
            logger.log("SIMULATION START")
            logger.log(f"Scenario: {args.scenario}")
            description = get_scenario_description(args.scenario)
            if description:
                logger.log(description)
            logger.log(f"{'='*60}\n")
            _display_initial_state(process_specs, resource_specs, quantum, logger)

            result = run_simulation(
                process_specs, resource_specs, quantum,
                logger=logger, stall_limit=args.stall_limit
            )
        except ConfigurationError as e:
            logger.log(f"Invalid configuration: {e}", "error")
            return 1
        except Stalled as e:
            logger.log(f"Simulation stalled at t={e.clock}: {e}", "error")
            logger.log(f"State at failure: {e.snapshot}", "debug")
            _display_results(e.result, logger, args.scenario, "stalled")
            return 2

        logger.log(f"\n{'='*60}")
        logger.log("SIMULATION COMPLETE")
        logger.log(f"{'='*60}")
        _display_results(result, logger, args.scenario, "all processes finished")
        return 0
    finally:
        logger.close()


if __name__ == '__main__':
    sys.exit(main())
