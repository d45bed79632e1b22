"""
Process model for the Hybrid Scheduling & Deadlock Simulator.

Represents a process with its CPU demand, priority and resource requests,
plus the process table that owns every process record of a run.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional
from enum import Enum

from models.errors import ConfigurationError


class ProcessState(Enum):
    """Process lifecycle states."""
    NEW = "NEW"
    READY = "READY"
    RUNNING = "RUNNING"
    WAITING = "WAITING"
    FINISHED = "FINISHED"
    TERMINATED = "TERMINATED"


@dataclass(frozen=True)
class ProcessSpec:
    """Input description of one process."""
    pid: int
    arrival: int
    burst: int
    priority: int
    requested_resources: List[int] = field(default_factory=list)


@dataclass
class Process:
    """
    Represents a process in the operating system simulation.

    Attributes:
        pid: Process identifier (unique)
        arrival: Clock value at which the process becomes eligible
        burst: Total CPU time required
        priority: Priority level (lower value = higher priority)
        requested_resources: Ordered resource ids the process wants
        remaining: CPU time left, starts equal to burst
        waiting: Turnaround minus burst, written at termination
        turnaround: Finish time minus arrival, written at termination
        finish_time: Clock value at termination
        finished: True once completed or forcibly terminated
        killed: True only when terminated as a deadlock victim
        state: Current lifecycle state
    """
    pid: int
    arrival: int
    burst: int
    priority: int
    requested_resources: List[int] = field(default_factory=list)
    remaining: int = -1
    waiting: int = 0
    turnaround: int = 0
    finish_time: int = 0
    finished: bool = False
    killed: bool = False
    state: ProcessState = ProcessState.NEW

    def __post_init__(self):
        """Start with the full burst outstanding."""
        if self.remaining < 0:
            self.remaining = self.burst

    @classmethod
    def from_spec(cls, spec: ProcessSpec) -> "Process":
        return cls(
            pid=spec.pid,
            arrival=spec.arrival,
            burst=spec.burst,
            priority=spec.priority,
            requested_resources=list(spec.requested_resources),
        )

    @property
    def cpu_time(self) -> int:
        """CPU time received so far."""
        return self.burst - self.remaining

    def run(self, duration: int) -> None:
        """
        Consume CPU time.

        Args:
            duration: Time units executed in this slice

        Raises:
            ValueError: If the process is finished or duration is out of range
        """
        if self.finished:
            raise ValueError(f"P{self.pid}: cannot run a finished process")
        if duration <= 0 or duration > self.remaining:
            raise ValueError(
                f"P{self.pid}: slice of {duration} outside (0, {self.remaining}]"
            )
        self.remaining -= duration

    def complete(self, clock: int) -> None:
        """Mark normal completion once remaining reaches zero."""
        if self.remaining != 0:
            raise ValueError(f"P{self.pid}: still has {self.remaining} units left")
        self._finalize(clock)
        self.state = ProcessState.FINISHED

    def terminate(self, clock: int) -> None:
        """
        Forcibly terminate the process as a deadlock victim.

        Accounting uses the same formulas as normal completion even though
        the burst was never fully executed.
        """
        self._finalize(clock)
        self.killed = True
        self.state = ProcessState.TERMINATED

    def _finalize(self, clock: int) -> None:
        if self.finished:
            raise ValueError(f"P{self.pid}: already finished")
        self.finished = True
        self.finish_time = clock
        self.turnaround = self.finish_time - self.arrival
        self.waiting = self.turnaround - self.burst

    def is_finished(self) -> bool:
        return self.finished

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"Process(pid={self.pid}, priority={self.priority}, "
            f"state={self.state.value}, remaining={self.remaining}/{self.burst})"
        )


class ProcessTable:
    """Process records of one run, kept in admission (input) order."""

    def __init__(self, processes: Optional[List[Process]] = None):
        self._processes: Dict[int, Process] = {}
        for process in processes or []:
            self.add(process)

    def add(self, process: Process) -> None:
        if process.pid in self._processes:
            raise ConfigurationError(f"Duplicate process id P{process.pid}", snapshot={"pid": process.pid})
        self._processes[process.pid] = process

    def get(self, pid: int) -> Process:
        return self._processes[pid]

    def pids(self) -> List[int]:
        return list(self._processes)

    def unfinished(self) -> List[Process]:
        return [p for p in self._processes.values() if not p.is_finished()]

    def all_finished(self) -> bool:
        return all(p.is_finished() for p in self._processes.values())

    def __contains__(self, pid: int) -> bool:
        return pid in self._processes

    def __iter__(self) -> Iterator[Process]:
        return iter(self._processes.values())

    def __len__(self) -> int:
        return len(self._processes)
