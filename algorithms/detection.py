"""
Deadlock Detection Algorithm for the Hybrid Scheduling & Deadlock Simulator.

Detects circular wait in the Resource-Allocation Graph (RAG).
"""

import numpy as np
from typing import List, Optional, Tuple

from models.system_state import SimulationState


def build_wait_for_matrix(system_state: SimulationState) -> Tuple[List[int], np.ndarray]:
    """
    Project the RAG onto processes.

    A request edge P -> R is blocking only when R has no free unit; a free
    unit would be granted on the next acquisition round. P waits for Q when
    P has a blocking request on some resource Q holds:

        W = (Blocking . Allocation^T) > 0

    Args:
        system_state: Current global state

    Returns:
        Tuple of (unfinished pids in ascending order, boolean matrix W[P][P])
    """
    pids = sorted(p.pid for p in system_state.processes.unfinished())
    registry = system_state.registry

    allocation = registry.allocation_matrix(pids)
    request = registry.request_matrix(pids)
    exhausted = registry.available_vector() == 0

    blocking = (request > 0) & exhausted
    wait_for = (blocking.astype(int) @ allocation.T) > 0
    return pids, wait_for


def find_cycle(pids: List[int], wait_for: np.ndarray) -> List[int]:
    """
    Depth-first search for a cycle in the wait-for graph.

    Nodes and successors are visited in ascending pid order so the first
    cycle found is deterministic. Self-loops count as cycles.

    Returns:
        PIDs on the cycle in traversal order, or [] if the graph is acyclic
    """
    WHITE, GREY, BLACK = 0, 1, 2
    color = [WHITE] * len(pids)
    path: List[int] = []

    def visit(i: int) -> Optional[List[int]]:
        color[i] = GREY
        path.append(i)
        for j in np.flatnonzero(wait_for[i]):
            if color[j] == GREY:
                return path[path.index(j):]
            if color[j] == WHITE:
                cycle = visit(j)
                if cycle:
                    return cycle
        path.pop()
        color[i] = BLACK
        return None

    for i in range(len(pids)):
        if color[i] == WHITE:
            cycle = visit(i)
            if cycle:
                return [pids[k] for k in cycle]
    return []


def detect_deadlock(system_state: SimulationState) -> Tuple[bool, List[int]]:
    """
    Detect deadlock as a cycle in the Resource-Allocation Graph.

    For single-unit resources a cycle is the necessary and sufficient
    condition for deadlock.

    Args:
        system_state: Current global state

    Returns:
        Tuple of (deadlock_exists, pids on the detected cycle)
    """
    pids, wait_for = build_wait_for_matrix(system_state)
    if not pids:
        return False, []
    cycle = find_cycle(pids, wait_for)
    return len(cycle) > 0, cycle
