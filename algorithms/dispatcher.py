"""
Adaptive Dispatcher for the Hybrid Scheduling & Deadlock Simulator.

The policy is recomputed on every dispatch decision from the size of the
ready queue:
- short queue (<= 2): Shortest Remaining Time
- medium queue (3..5): Priority
- long queue (> 5): Round Robin (head of queue)
"""

from enum import Enum
from typing import Sequence, Tuple

from models.process import ProcessTable


DEFAULT_QUANTUM = 3
SRT_MAX_READY = 2
PRIORITY_MAX_READY = 5


class SchedulingPolicy(Enum):
    """Policies the dispatcher switches between."""
    SHORTEST_REMAINING_TIME = "SRT"
    PRIORITY = "PRIORITY"
    ROUND_ROBIN = "RR"


def select_policy(ready_size: int) -> SchedulingPolicy:
    """
    Pick the policy governing a single dispatch decision.

    Args:
        ready_size: Number of processes in the ready queue

    Returns:
        Scheduling policy for this decision
    """
    if ready_size <= SRT_MAX_READY:
        return SchedulingPolicy.SHORTEST_REMAINING_TIME
    if ready_size <= PRIORITY_MAX_READY:
        return SchedulingPolicy.PRIORITY
    return SchedulingPolicy.ROUND_ROBIN


def select_next(ready: Sequence[int], processes: ProcessTable) -> Tuple[int, SchedulingPolicy]:
    """
    Choose the next process to run. Pure: neither the queue nor any process
    is modified, so repeated calls on the same state return the same pid.

    Ties on the policy metric go to the process enqueued first; the queue
    position is an explicit secondary key rather than relying on sort
    stability.

    Args:
        ready: Ready pids in enqueue order
        processes: Process table holding remaining time and priority

    Returns:
        Tuple of (selected pid, policy used)

    Raises:
        ValueError: If the ready queue is empty
    """
    candidates = list(ready)
    if not candidates:
        raise ValueError("Cannot dispatch from an empty ready queue")

    policy = select_policy(len(candidates))

    if policy == SchedulingPolicy.SHORTEST_REMAINING_TIME:
        metric = lambda pid: processes.get(pid).remaining
    elif policy == SchedulingPolicy.PRIORITY:
        metric = lambda pid: processes.get(pid).priority
    else:
        return candidates[0], policy

    _, selected = min(
        enumerate(candidates),
        key=lambda item: (metric(item[1]), item[0])
    )
    return selected, policy


def slice_length(remaining: int, quantum: int = DEFAULT_QUANTUM) -> int:
    """Time units the selected process runs before preemption or completion."""
    return min(quantum, remaining)
