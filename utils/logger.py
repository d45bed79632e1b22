"""
Logger utility for the Hybrid Scheduling & Deadlock Simulator.

Provides clock-stamped logging with verbosity levels.
"""

from typing import Optional
from datetime import datetime


class SimulatorLogger:
    """
    Logger for simulation events and decisions.

    Format: "t=X: P3 runs for 3 (policy SRT)"
    """

    def __init__(self, verbose: bool = False, log_file: Optional[str] = None):
        """
        Initialize logger.

        Args:
            verbose: Enable verbose output
            log_file: Optional file path for logging
        """
        self.verbose = verbose
        self.log_file = log_file
        self.file_handle = None

        if self.log_file:
            self.file_handle = open(self.log_file, 'w', encoding='utf-8')
            self._write_header()

    def _write_header(self) -> None:
        """Write log file header."""
        if self.file_handle:
            timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
            self.file_handle.write(f"Simulation Log - {timestamp}\n")
            self.file_handle.write("="*60 + "\n\n")

    def log(self, message: str, level: str = "info") -> None:
        """
        Log a message.

        Args:
            message: Message to log
            level: Log level (info, debug, warning, error)
        """
        if level == "debug" and not self.verbose:
            return

        formatted = self._format_message(message, level)

        print(formatted)

        if self.file_handle:
            self.file_handle.write(formatted + "\n")
            self.file_handle.flush()

    def _format_message(self, message: str, level: str) -> str:
        """Format message with level prefix."""
        if level == "error":
            return f"[ERROR] {message}"
        elif level == "warning":
            return f"[WARNING] {message}"
        elif level == "debug":
            return f"[DEBUG] {message}"
        else:
            return message

    def log_clock(self, clock: int, message: str, level: str = "info") -> None:
        """Log a message stamped with the simulation clock."""
        self.log(f"t={clock}: {message}", level)

    def log_dispatch(self, clock: int, pid: int, duration: int, policy: str, ready_size: int) -> None:
        """
        Log a dispatch decision.

        Args:
            clock: Clock value when the slice started
            pid: Selected process
            duration: Slice length
            policy: Policy that made the decision
            ready_size: Ready queue length at decision time
        """
        self.log_clock(clock, f"P{pid} runs for {duration} (policy {policy}, ready={ready_size})")

    def log_allocation(self, clock: int, pid: int, rid: int, granted: bool) -> None:
        """Log one acquisition attempt (debug level)."""
        status = "GRANTED" if granted else "WAITING"
        self.log_clock(clock, f"P{pid} requests R{rid} - {status}", "debug")

    def log_finish(self, clock: int, pid: int, turnaround: int, waiting: int) -> None:
        self.log_clock(clock, f"P{pid} - FINISHED (turnaround={turnaround}, waiting={waiting})")

    def log_deadlock(self, clock: int, cycle: list) -> None:
        """
        Log deadlock detection.

        Args:
            clock: Current clock value
            cycle: PIDs on the detected cycle
        """
        pids_str = " -> ".join(f"P{pid}" for pid in cycle)
        self.log_clock(clock, f"DEADLOCK DETECTED - cycle: [{pids_str}]")

    def log_recovery(self, clock: int, message: str) -> None:
        self.log_clock(clock, f"RECOVERY - {message}")

    def log_system_state(self, clock: int, state_str: str) -> None:
        """
        Log system state snapshot.

        Args:
            clock: Current clock value
            state_str: Formatted system state
        """
        if self.verbose:
            self.log_clock(clock, f"System State:\n{state_str}", "debug")

    def close(self) -> None:
        """Close log file if open."""
        if self.file_handle:
            self.file_handle.close()
            self.file_handle = None

    def __del__(self):
        """Cleanup on destruction."""
        self.close()
