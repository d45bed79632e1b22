"""
Simulation State model for the Hybrid Scheduling & Deadlock Simulator.

Bundles the process table, resource registry, ready queue, clock and the
accumulated outputs of a run into one explicit value handed to every
component the driver calls.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from models.process import ProcessTable
from models.resource import ResourceRegistry
from analysis.events import DispatchEvent, EventLog, ResolutionEvent


class ReadyQueue:
    """
    FIFO of ready pids with O(1) membership test.

    Backed by an insertion-ordered dict so iteration order is enqueue order
    and a pid can never be queued twice.
    """

    def __init__(self, pids: Optional[List[int]] = None):
        self._queue: Dict[int, None] = {}
        for pid in pids or []:
            self.push(pid)

    def push(self, pid: int) -> None:
        """Enqueue at the tail."""
        if pid in self._queue:
            raise ValueError(f"P{pid} already in ready queue")
        self._queue[pid] = None

    def remove(self, pid: int) -> None:
        del self._queue[pid]

    def discard(self, pid: int) -> None:
        self._queue.pop(pid, None)

    def head(self) -> int:
        return next(iter(self._queue))

    def as_list(self) -> List[int]:
        return list(self._queue)

    def __contains__(self, pid: int) -> bool:
        return pid in self._queue

    def __iter__(self) -> Iterator[int]:
        return iter(self._queue)

    def __len__(self) -> int:
        return len(self._queue)

    def __repr__(self) -> str:
        return f"ReadyQueue({self.as_list()})"


@dataclass
class SimulationState:
    """
    Global state of one simulation run.

    Attributes:
        processes: All process records
        registry: Resources and RAG edges
        quantum: Maximum slice length
        ready: Processes eligible for dispatch, in enqueue order
        clock: Current simulated time
        dispatch_events: Gantt sequence of (pid, duration)
        context_switches: Count of dispatches that switched process
        deadlocks_resolved: Count of victims terminated
        resolutions: One event per resolved deadlock
        event_log: Every admission, grant, dispatch, finish and recovery
        busy_time: Clock units spent executing processes
        last_dispatched: Pid of the slice that immediately preceded, if any
    """
    processes: ProcessTable
    registry: ResourceRegistry
    quantum: int = 3
    ready: ReadyQueue = field(default_factory=ReadyQueue)
    clock: int = 0
    dispatch_events: List[DispatchEvent] = field(default_factory=list)
    context_switches: int = 0
    deadlocks_resolved: int = 0
    resolutions: List[ResolutionEvent] = field(default_factory=list)
    event_log: EventLog = field(default_factory=EventLog)
    busy_time: int = 0
    last_dispatched: Optional[int] = None

    def snapshot(self) -> Dict:
        """
        Plain-data copy of the current state, attached to fatal errors.

        Returns:
            Dictionary containing serializable state
        """
        return {
            'clock': self.clock,
            'ready': self.ready.as_list(),
            'processes': [
                {
                    'pid': p.pid,
                    'state': p.state.value,
                    'remaining': p.remaining,
                    'pending': self.registry.pending_of(p.pid),
                    'held': self.registry.held_by(p.pid),
                }
                for p in self.processes
            ],
            'available': {rid: r.available for rid, r in self.registry.resources.items()},
            'context_switches': self.context_switches,
            'deadlocks_resolved': self.deadlocks_resolved,
        }

    def display(self) -> str:
        """
        Generate readable string representation of the state.

        Returns:
            Formatted string showing processes, resources and edges
        """
        output = []
        output.append("\n" + "="*60)
        output.append(f"SYSTEM STATE (clock={self.clock})")
        output.append("="*60)

        output.append("\nProcess States:")
        for p in self.processes:
            output.append(
                f"  P{p.pid}: {p.state.value:10} "
                f"(priority={p.priority}, arrival={p.arrival}, "
                f"remaining={p.remaining}/{p.burst})"
            )

        output.append(f"\nReady Queue: {self.ready.as_list()}")

        output.append("\nAvailable Resources:")
        output.append("  [" + ", ".join(
            f"R{rid}:{r.available}/{r.total}" for rid, r in sorted(self.registry.resources.items())
        ) + "]")

        output.append("\nRequest Edges:")
        for pid, rid in self.registry.request_edges():
            output.append(f"  P{pid} --> R{rid}")
        output.append("Allocation Edges:")
        for rid, pid in self.registry.allocation_edges():
            output.append(f"  R{rid} --> P{pid}")

        output.append("\n" + "="*60)
        return "\n".join(output)
