"""Console output formatting utilities for cargoci."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Iterable, Optional

if TYPE_CHECKING:
    from ..checks import Violation
    from ..runner import JobResult


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug

    def print_run_started(
        self,
        repository: str,
        job: str,
        platforms: list[str],
        sources: str,
    ) -> None:
        """Print run start information."""
        print("\nRUN STARTED")
        print(f"Repository: {repository}")
        print(f"Job: {job}")
        print(f"Platforms: {', '.join(platforms)}")
        print(f"Sources: {sources}")
        print()

    def print_job_start(self, name: str, vm_image: str) -> None:
        """Print job (matrix leg) start message."""
        print(f"\nJOB STARTED: {name} ({vm_image})")

    def print_step(self, name: str) -> None:
        """Print step start message."""
        print(f"STEP: {name}")

    def print_command(self, cmd: str, cwd: str) -> None:
        print(f"  $ {cmd}  (in {cwd})")

    def print_step_skipped(self, name: str, reason: str) -> None:
        print(f"STEP: {name}")
        print(f"STATUS: skipped ({reason})")

    def print_success(self, name: str) -> None:
        """Print success message."""
        print("STATUS: success")

    def print_failure(
        self,
        name: str,
        reason: str,
        exit_code: Optional[int] = None,
        hint: Optional[str] = None,
    ) -> None:
        """
        Print failure message.

        Args:
            name: Step name
            reason: Failure reason/error message
            exit_code: Optional exit code
            hint: Optional hint for user
        """
        print(f"STEP FAILED: {name}")
        if exit_code is not None:
            print(f"Exit code: {exit_code}")
        if hint:
            print(f"Hint: {hint}")
        if self.debug:
            print(f"Error details: {reason}")
        else:
            error_line = reason.split("\n")[0] if reason else "Unknown error"
            if error_line:
                print(f"Error: {error_line}")

    def print_results(self, results: dict[str, "JobResult"]) -> None:
        """Print final results summary, one line per step."""
        print("\n" + "=" * 40)
        print("RESULTS")
        print("=" * 40)
        for name, result in results.items():
            print(f"{name}: {result.status.upper()}")
            for step in result.steps:
                label = f"crate {step.crate}" if step.crate else step.name
                print(f"  {label}: {step.status.upper()}")

    def print_violations(self, source: str, violations: Iterable["Violation"]) -> None:
        violations = list(violations)
        if not violations:
            print(f"OK: {source} satisfies all job checks")
            return
        print(f"FAILED: {source} has {len(violations)} violation(s)", file=sys.stderr)
        for v in violations:
            print(f"  {v}", file=sys.stderr)

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


# Global console instance (initialized by the CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
