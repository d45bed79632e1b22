"""
Deadlock Recovery Algorithm for the Hybrid Scheduling & Deadlock Simulator.

Breaks a detected cycle by terminating one victim process.
"""

from typing import List, Optional, Tuple

from models.system_state import SimulationState
from analysis.events import EventType, ResolutionEvent, SimulationEvent


def select_victim(cycle: List[int], system_state: SimulationState) -> int:
    """
    Select victim process for termination: the lowest unfinished pid on the
    cycle.

    Args:
        cycle: PIDs on the detected cycle
        system_state: Current state

    Returns:
        PID of selected victim, or -1 if no candidate exists
    """
    candidates = [pid for pid in cycle if not system_state.processes.get(pid).finished]
    if not candidates:
        return -1
    return min(candidates)


def terminate_process(pid: int, system_state: SimulationState) -> Tuple[bool, str, List[int]]:
    """
    Terminate a process and release all its resources.

    Process termination:
    - Set state to TERMINATED and write finish/turnaround/waiting
    - Release every allocation edge and drop outstanding request edges
    - Remove the process from the ready queue

    Args:
        pid: Process ID to terminate
        system_state: Current state

    Returns:
        Tuple of (success, message, released rids)
    """
    if pid not in system_state.processes:
        return False, f"Process P{pid} not found", []

    process = system_state.processes.get(pid)
    if process.finished:
        return False, f"Process P{pid} already finished", []

    process.terminate(system_state.clock)
    system_state.ready.discard(pid)
    released = system_state.registry.release(pid)
    if system_state.last_dispatched == pid:
        system_state.last_dispatched = None

    resources_str = ", ".join(f"R{rid}" for rid in released) or "nothing"
    message = f"Terminated P{pid} (priority={process.priority}, holding {resources_str})"
    return True, message, released


def recover_from_deadlock(
    cycle: List[int],
    system_state: SimulationState
) -> Optional[ResolutionEvent]:
    """
    Resolve one deadlock by terminating exactly one victim.

    Chained deadlocks are left for later monitor invocations, one victim
    per call.

    Args:
        cycle: PIDs on the detected cycle
        system_state: Current state

    Returns:
        The resolution event, or None if no victim could be terminated
    """
    victim = select_victim(cycle, system_state)
    if victim < 0:
        return None

    success, message, released = terminate_process(victim, system_state)
    if not success:
        return None

    system_state.deadlocks_resolved += 1
    event = ResolutionEvent(
        clock=system_state.clock,
        victim=victim,
        cycle=tuple(cycle),
        released=tuple(released),
    )
    system_state.resolutions.append(event)
    system_state.event_log.add(SimulationEvent(
        clock=system_state.clock,
        event_type=EventType.RECOVERY,
        process_id=victim,
        message=message
    ))
    return event
