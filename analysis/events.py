"""
Event Model for the Hybrid Scheduling & Deadlock Simulator.

Defines the dispatch timeline entries, deadlock resolution records and the
general event log of a run.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class EventType(Enum):
    """Types of events in the simulation."""
    ADMISSION = "admission"
    ALLOCATION = "allocation"
    DENIAL = "denial"
    DISPATCH = "dispatch"
    FINISH = "finish"
    DEADLOCK = "deadlock"
    RECOVERY = "recovery"
    IDLE = "idle"


@dataclass
class DispatchEvent:
    """One bar of the Gantt chart: pid ran for duration time units."""
    pid: int
    duration: int


@dataclass(frozen=True)
class ResolutionEvent:
    """
    A deadlock broken by terminating a victim.

    Attributes:
        clock: Clock value at resolution
        victim: PID of the terminated process
        cycle: PIDs forming the detected cycle
        released: Resource ids returned to the pool, one entry per unit
    """
    clock: int
    victim: int
    cycle: tuple
    released: tuple


@dataclass
class SimulationEvent:
    """
    Represents a single event in the simulation.

    Attributes:
        clock: Clock value when event occurred
        event_type: Type of event
        process_id: PID involved in event (-1 for system-wide events)
        resource_id: Resource involved (if applicable)
        duration: Slice length (dispatch events only)
        message: Human-readable description
    """
    clock: int
    event_type: EventType
    process_id: int
    resource_id: Optional[int] = None
    duration: Optional[int] = None
    message: str = ""

    def __str__(self) -> str:
        """Format event for logging."""
        base = f"t={self.clock}: P{self.process_id}"

        if self.event_type == EventType.ADMISSION:
            return f"{base} admitted"
        elif self.event_type == EventType.ALLOCATION:
            return f"{base} acquires R{self.resource_id}"
        elif self.event_type == EventType.DENIAL:
            return f"{base} waits for R{self.resource_id}"
        elif self.event_type == EventType.DISPATCH:
            return f"{base} runs for {self.duration} ({self.message})"
        elif self.event_type == EventType.FINISH:
            return f"{base} - FINISHED"
        elif self.event_type == EventType.DEADLOCK:
            return f"t={self.clock}: DEADLOCK DETECTED ({self.message})"
        elif self.event_type == EventType.RECOVERY:
            return f"{base} - RECOVERY ({self.message})"
        elif self.event_type == EventType.IDLE:
            return f"t={self.clock}: CPU idle"
        else:
            return f"{base} - {self.event_type.value}: {self.message}"


@dataclass
class EventLog:
    """Collection of simulation events."""
    events: List[SimulationEvent] = field(default_factory=list)

    def add(self, event: SimulationEvent) -> None:
        """Add an event to the log."""
        self.events.append(event)

    def get_events_by_type(self, event_type: EventType) -> list:
        """Get all events of a specific type."""
        return [e for e in self.events if e.event_type == event_type]

    def get_events_by_process(self, pid: int) -> list:
        return [e for e in self.events if e.process_id == pid]

    def display(self) -> str:
        """Format all events for display."""
        return "\n".join(str(event) for event in self.events)
