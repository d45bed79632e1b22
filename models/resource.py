"""
Resource model for the Hybrid Scheduling & Deadlock Simulator.

Represents resource types with a fixed number of units and the registry
that tracks which process holds or requests which resource.
"""

import numpy as np
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from models.errors import ConfigurationError, InsufficientCapacity


@dataclass(frozen=True)
class ResourceSpec:
    """Input description of one resource type."""
    rid: int
    total: int


@dataclass
class Resource:
    """
    Represents a resource type in the operating system simulation.

    Attributes:
        rid: Resource identifier
        total: Total number of units
        available: Current number of free units

    Invariant:
        0 <= available <= total
    """
    rid: int
    total: int
    available: int

    def __post_init__(self):
        """Validate resource state."""
        if self.available < 0:
            raise ValueError(f"Resource {self.rid}: available cannot be negative")
        if self.available > self.total:
            raise ValueError(
                f"Resource {self.rid}: available ({self.available}) "
                f"exceeds total ({self.total})"
            )

    def allocate(self, amount: int = 1) -> bool:
        """
        Take units if available.

        Returns:
            True if allocation successful, False if insufficient units
        """
        if amount > self.available:
            return False
        self.available -= amount
        return True

    def deallocate(self, amount: int = 1) -> None:
        """
        Return units to the pool.

        Raises:
            ValueError: If deallocation would exceed total units
        """
        if self.available + amount > self.total:
            raise ValueError(
                f"Resource {self.rid}: deallocation of {amount} would exceed "
                f"total ({self.total})"
            )
        self.available += amount


class ResourceRegistry:
    """
    Resource capacities plus the request and allocation edges of the
    Resource-Allocation Graph.

    Request edges: pid -> ordered rids still wanted.
    Allocation edges: pid -> ordered rids held (one entry per unit).
    """

    def __init__(self):
        self.resources: Dict[int, Resource] = {}
        self._requested: Dict[int, List[int]] = {}
        self._pending: Dict[int, List[int]] = {}
        self._held: Dict[int, List[int]] = {}

    def register(self, rid: int, total: int) -> Resource:
        """Create a resource with every unit available."""
        if rid in self.resources:
            raise ConfigurationError(f"Duplicate resource id R{rid}", snapshot={"rid": rid})
        if total < 1:
            raise ConfigurationError(
                f"Resource R{rid}: capacity must be positive (got {total})", snapshot={"rid": rid}
            )
        resource = Resource(rid=rid, total=total, available=total)
        self.resources[rid] = resource
        return resource

    def add_requests(self, pid: int, rids: Sequence[int]) -> None:
        """Record the ordered request edges of a newly admitted process."""
        for rid in rids:
            if rid not in self.resources:
                raise ConfigurationError(
                    f"P{pid} requests unknown resource R{rid}", snapshot={"pid": pid, "rid": rid}
                )
        self._requested[pid] = list(rids)
        self._pending[pid] = list(rids)
        self._held.setdefault(pid, [])

    def request_of(self, pid: int) -> Tuple[int, ...]:
        """Fixed ordered sequence of resources the process asked for."""
        return tuple(self._requested.get(pid, ()))

    def pending_of(self, pid: int) -> List[int]:
        return list(self._pending.get(pid, []))

    def held_by(self, pid: int) -> List[int]:
        return list(self._held.get(pid, []))

    def allocate(self, pid: int, rid: int) -> None:
        """
        Grant one unit of rid to pid, turning its request edge into an
        allocation edge.

        Raises:
            InsufficientCapacity: If no unit of rid is free
        """
        resource = self.resources[rid]
        if not resource.allocate(1):
            raise InsufficientCapacity(pid, rid)
        pending = self._pending.get(pid, [])
        if rid in pending:
            pending.remove(rid)
        self._held.setdefault(pid, []).append(rid)

    def release(self, pid: int) -> List[int]:
        """
        Drop every edge of pid and return held units to their resources.

        Returns:
            The released rids, one entry per unit
        """
        released = self._held.pop(pid, [])
        for rid in released:
            self.resources[rid].deallocate(1)
        self._pending.pop(pid, None)
        self.assert_resource_conservation(f"after releasing P{pid}")
        return released

    def request_edges(self) -> List[Tuple[int, int]]:
        """Outstanding request edges as (pid, rid), in admission order."""
        return [(pid, rid) for pid, rids in self._pending.items() for rid in rids]

    def allocation_edges(self) -> List[Tuple[int, int]]:
        """Allocation edges as (rid, pid), in admission order."""
        return [(rid, pid) for pid, rids in self._held.items() for rid in rids]

    def rids(self) -> List[int]:
        return sorted(self.resources)

    def available_vector(self) -> np.ndarray:
        """Free units per resource [R], in rid order."""
        return np.array([self.resources[rid].available for rid in self.rids()], dtype=int)

    def total_vector(self) -> np.ndarray:
        return np.array([self.resources[rid].total for rid in self.rids()], dtype=int)

    def allocation_matrix(self, pids: Sequence[int]) -> np.ndarray:
        """Units held [P][R]."""
        return self._edge_matrix(pids, self._held)

    def request_matrix(self, pids: Sequence[int]) -> np.ndarray:
        """Outstanding requested units [P][R]."""
        return self._edge_matrix(pids, self._pending)

    def _edge_matrix(self, pids: Sequence[int], edges: Dict[int, List[int]]) -> np.ndarray:
        column = {rid: j for j, rid in enumerate(self.rids())}
        matrix = np.zeros((len(pids), len(column)), dtype=int)
        for i, pid in enumerate(pids):
            for rid in edges.get(pid, []):
                matrix[i][column[rid]] += 1
        return matrix

    def assert_resource_conservation(self, context=""):
        """Verify allocated + available == total and 0 <= available <= total.

        Raises:
            AssertionError: If resource conservation is violated
        """
        allocated = self.allocation_matrix(list(self._held)).sum(axis=0)
        available = self.available_vector()
        total = self.total_vector()

        for j, rid in enumerate(self.rids()):
            assert 0 <= available[j] <= total[j], (
                f"Available out of range for R{rid} {context}\n"
                f"  Available: {available[j]}, Total: {total[j]}"
            )
            assert allocated[j] + available[j] == total[j], (
                f"Resource conservation violated for R{rid} {context}\n"
                f"  Allocated: {allocated[j]}, Available: {available[j]}, Total: {total[j]}"
            )
