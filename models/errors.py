"""
Error taxonomy for the Hybrid Scheduling & Deadlock Simulator.

Fatal errors carry the clock value and a state snapshot taken at the point
of failure so the caller can diagnose what went wrong.
"""

from typing import Dict, Optional


class SimulationError(Exception):
    """Base class for simulator failures."""

    def __init__(self, message: str, clock: int = 0, snapshot: Optional[Dict] = None):
        super().__init__(message)
        self.clock = clock
        self.snapshot = snapshot or {}


class ConfigurationError(SimulationError):
    """
    Invalid process/resource configuration, raised before the simulation runs.

    No simulation state exists yet, so the snapshot names the offending
    input instead (e.g. {"pid": 3} or {"rid": 1}).
    """

    def __init__(self, message: str, snapshot: Optional[Dict] = None):
        super().__init__(message, 0, snapshot)


class InsufficientCapacity(SimulationError):
    """
    Allocation attempted on a resource with no free unit.

    Expected during simulation: the driver catches it and leaves the process
    waiting on its request edge.
    """

    def __init__(self, pid: int, rid: int, clock: int = 0):
        super().__init__(f"P{pid}: R{rid} has no available units", clock)
        self.pid = pid
        self.rid = rid


class Stalled(SimulationError):
    """
    No progress possible and no deadlock cycle explains it (livelock).

    Attributes:
        result: Partial simulation result accumulated up to the failure
    """

    def __init__(self, message: str, clock: int, snapshot: Dict, result=None):
        super().__init__(message, clock, snapshot)
        self.result = result
