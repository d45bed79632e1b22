"""
Metrics and text reports for the Hybrid Scheduling & Deadlock Simulator.

Turns a finished (or stalled) run into per-process rows, summary metrics
and the Gantt / RAG text renderings.
"""

from dataclasses import dataclass, field
from typing import List, Sequence, Tuple
import statistics

from models.process import ProcessState
from models.system_state import SimulationState
from analysis.events import DispatchEvent


@dataclass(frozen=True)
class PerformanceRow:
    """Per-process statistics row."""
    pid: int
    arrival: int
    burst: int
    waiting: int
    turnaround: int


@dataclass
class SimulationMetrics:
    """
    Summary metrics for a single simulation run.

    Tracks:
    1. Average Waiting Time over processes that completed normally
    2. Average Turnaround Time over processes that completed normally
    3. CPU Utilization %: busy time / elapsed clock x 100
    4. System Throughput: completed processes / elapsed clock
    """
    total_time: int = 0
    busy_time: int = 0
    total_processes: int = 0
    completed_processes: int = 0
    terminated_processes: int = 0
    context_switches: int = 0
    deadlocks_resolved: int = 0
    completed_waiting_times: List[int] = field(default_factory=list)
    completed_turnaround_times: List[int] = field(default_factory=list)

    @classmethod
    def from_state(cls, system_state: SimulationState) -> "SimulationMetrics":
        metrics = cls(
            total_time=system_state.clock,
            busy_time=system_state.busy_time,
            total_processes=len(system_state.processes),
            context_switches=system_state.context_switches,
            deadlocks_resolved=system_state.deadlocks_resolved,
        )
        for p in system_state.processes:
            if p.state == ProcessState.FINISHED:
                metrics.completed_processes += 1
                metrics.completed_waiting_times.append(p.waiting)
                metrics.completed_turnaround_times.append(p.turnaround)
            elif p.state == ProcessState.TERMINATED:
                metrics.terminated_processes += 1
        return metrics

    def get_avg_waiting_time(self) -> float:
        if not self.completed_waiting_times:
            return 0.0
        return statistics.mean(self.completed_waiting_times)

    def get_avg_turnaround_time(self) -> float:
        if not self.completed_turnaround_times:
            return 0.0
        return statistics.mean(self.completed_turnaround_times)

    def get_cpu_utilization(self) -> float:
        """Formula: busy time / total time x 100."""
        if self.total_time == 0:
            return 0.0
        return (self.busy_time / self.total_time) * 100

    def get_throughput(self) -> float:
        """
        Calculate system throughput.

        Formula: Processes reaching FINISHED state / total time.
        Deadlock victims are not counted.
        """
        if self.total_time == 0:
            return 0.0
        return self.completed_processes / self.total_time


def performance_rows(system_state: SimulationState) -> List[PerformanceRow]:
    """One row per process, in pid order."""
    return [
        PerformanceRow(
            pid=p.pid,
            arrival=p.arrival,
            burst=p.burst,
            waiting=p.waiting,
            turnaround=p.turnaround,
        )
        for p in sorted(system_state.processes, key=lambda p: p.pid)
    ]


def format_gantt(dispatch_events: Sequence[DispatchEvent]) -> str:
    """Render the dispatch timeline as '| P1(2) | P0(4) |'."""
    if not dispatch_events:
        return "(no dispatches)"
    return "".join(f"| P{e.pid}({e.duration}) " for e in dispatch_events) + "|"


def format_rag(
    request_edges: Sequence[Tuple[int, int]],
    allocation_edges: Sequence[Tuple[int, int]]
) -> str:
    """Render RAG edges, request edges first."""
    lines = [f"P{pid} --> R{rid}" for pid, rid in request_edges]
    lines += [f"R{rid} --> P{pid}" for rid, pid in allocation_edges]
    return "\n".join(lines) if lines else "(no edges)"


def format_metrics_report(
    metrics: SimulationMetrics,
    rows: Sequence[PerformanceRow],
    scenario: str = None,
    stop_reason: str = None
) -> str:
    """
    Format the per-process table and summary metrics.

    Args:
        metrics: SimulationMetrics instance
        rows: Per-process rows in pid order
        scenario: Scenario file path
        stop_reason: Reason simulation stopped

    Returns:
        Formatted metrics report string
    """
    lines = []
    lines.append("\n" + "="*60)
    lines.append("SIMULATION METRICS")
    lines.append("="*60)

    if scenario:
        lines.append(f"Scenario: {scenario}")
    if stop_reason:
        lines.append(f"Stop Reason: {stop_reason}")
    if scenario or stop_reason:
        lines.append("")

    lines.append("PID\tArrival\tBurst\tWaiting\tTurnaround")
    for row in rows:
        lines.append(f"{row.pid}\t{row.arrival}\t{row.burst}\t{row.waiting}\t{row.turnaround}")
    lines.append("")

    lines.append(f"Total Time: {metrics.total_time}")
    lines.append(f"Processes: {metrics.total_processes} "
                 f"(completed={metrics.completed_processes}, terminated={metrics.terminated_processes})")
    lines.append(f"Context Switches: {metrics.context_switches}")
    lines.append(f"Deadlocks Detected and Resolved: {metrics.deadlocks_resolved}")
    lines.append(f"Average Waiting Time: {metrics.get_avg_waiting_time():.2f}")
    lines.append(f"Average Turnaround Time: {metrics.get_avg_turnaround_time():.2f}")
    lines.append(f"CPU Utilization: {metrics.get_cpu_utilization():.2f}%")
    lines.append(f"Throughput: {metrics.get_throughput():.4f} processes/unit")
    lines.append("="*60)
    return "\n".join(lines)
