# runner.py
# Local execution of one or more matrix legs of a job on the current host.
from __future__ import annotations

import os
import platform as _platform
import re
import shlex
import shutil
import subprocess
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from . import settings
from .dsl import crate_of
from .git_facts.git import repo_root
from .model import Job, JobInstance, Step
from .step_templates import compile_template
from .ui.console import get_console

STATUS_OK = "ok"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"
STATUS_DRY_RUN = "dry-run"

_MACRO = re.compile(r"\$\(([A-Za-z0-9_.]+)\)")


@dataclass
class CIError(Exception):
    """
    Structured CI error with enough context for:
      - clean CLI output
      - debugging without full tracebacks
    """
    kind: str
    job: str
    step: str | None
    message: str
    details: dict

    def __str__(self) -> str:
        lines = [f"{self.kind}: {self.message}", f"job={self.job}"]
        if self.step:
            lines.append(f"step={self.step}")
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


@dataclass
class StepFailure(Exception):
    job: str
    step: str
    cmd: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    def __str__(self) -> str:
        return f"[{self.job}] step '{self.step}' failed (exit={self.exit_code}): {self.cmd}"


TOOL_HINTS = {
    "cargo": "Install a Rust toolchain with rustup (https://rustup.rs) or fix PATH.",
    "rustup": "Install rustup (https://rustup.rs) or fix PATH.",
    "rustc": "Install a Rust toolchain with rustup or fix PATH.",
    "git": "Install Git or fix PATH.",
}


@dataclass
class StepResult:
    name: str
    status: str
    crate: str | None = None
    exit_code: int | None = None
    error: str | None = None
    duration: float = 0.0


@dataclass
class JobResult:
    name: str
    platform: str
    steps: List[StepResult] = field(default_factory=list)

    @property
    def status(self) -> str:
        if any(s.status == STATUS_FAILED for s in self.steps):
            return STATUS_FAILED
        if self.steps and all(s.status == STATUS_DRY_RUN for s in self.steps):
            return STATUS_DRY_RUN
        return STATUS_OK

    @property
    def failed(self) -> bool:
        return self.status == STATUS_FAILED

    def crate_status(self) -> Dict[str, str]:
        """Per-crate pass/fail, in step order."""
        return {s.crate: s.status for s in self.steps if s.crate}


# ----------------------------------------------------------------------
# Variables
# ----------------------------------------------------------------------

def expand_macros(text: str, variables: Dict[str, str]) -> str:
    """Replace $(Name) macros; unknown names are left as written."""
    return _MACRO.sub(lambda m: variables.get(m.group(1), m.group(0)), text)


def host_platform() -> str:
    system = _platform.system()
    if system == "Darwin":
        return "MacOs"
    if system == "Windows":
        return "Windows"
    return "Linux"


def resolve_sources_dir(override: str | Path | None = None) -> Path:
    """
    $(Build.SourcesDirectory) for a local run: explicit override, then the
    CARGOCI_SOURCES_DIR setting, then the enclosing git repository, then cwd.
    """
    if override:
        return Path(override).expanduser().resolve()
    if settings.SOURCES_DIR:
        return Path(settings.SOURCES_DIR).expanduser().resolve()
    try:
        return repo_root()
    except (subprocess.CalledProcessError, FileNotFoundError):
        return Path.cwd()


def _variables(instance: JobInstance, sources_dir: Path) -> Dict[str, str]:
    out = {
        "Build.SourcesDirectory": str(sources_dir),
        "Agent.JobName": instance.name,
        "System.JobDisplayName": instance.job.display_name or instance.job.name,
    }
    out.update(instance.variables)
    return out


# ----------------------------------------------------------------------
# Execution primitives
# ----------------------------------------------------------------------

def _check_tool(job_name: str, step: Step, cmd: str) -> None:
    try:
        tool = shlex.split(cmd)[0]
    except (ValueError, IndexError):
        return
    if tool in TOOL_HINTS and shutil.which(tool) is None:
        raise CIError(
            kind="tool_unavailable",
            job=job_name,
            step=step.name,
            message=f"{tool} is not available",
            details={"hint": TOOL_HINTS[tool], "tool": tool},
        )


def _run_step(job_name: str, step: Step, variables: Dict[str, str], *, dry_run: bool = False) -> None:
    cmd = expand_macros(step.run or "", variables)
    cwd = Path(expand_macros(step.cwd or "$(Build.SourcesDirectory)", variables))

    console = get_console()
    console.print_command(cmd, str(cwd))
    if dry_run:
        return

    if not cwd.exists():
        raise CIError(
            kind="cwd_missing",
            job=job_name,
            step=step.name,
            message=f"working directory not found: {cwd}",
            details={},
        )
    _check_tool(job_name, step, cmd)

    env = os.environ.copy()
    env.update({k: expand_macros(v, variables) for k, v in step.env.items()})

    proc = subprocess.run(
        cmd,
        shell=True,
        cwd=str(cwd),
        env=env,
        text=True,
        capture_output=True,
    )
    console.print_debug(proc.stdout[-settings.OUTPUT_TAIL:])

    if proc.returncode != 0:
        raise StepFailure(
            job=job_name,
            step=step.name,
            cmd=cmd,
            exit_code=proc.returncode,
            stdout=proc.stdout[-settings.OUTPUT_TAIL:],
            stderr=proc.stderr[-settings.OUTPUT_TAIL:],
        )


def run_instance(instance: JobInstance, sources_dir: Path, *, dry_run: bool = False) -> JobResult:
    """
    Run every step of one matrix leg in order.

    After the first failing step the remaining steps are reported as skipped.
    Template steps are expanded before anything runs, so an unknown template
    raises ValueError without executing a single command.
    """
    console = get_console()
    job_name = instance.name
    compiled = [(step, compile_template(step)) for step in instance.job.steps]
    variables = _variables(instance, sources_dir)

    result = JobResult(name=job_name, platform=instance.platform.name)
    console.print_job_start(job_name, instance.platform.vm_image)

    failed_step: Optional[str] = None
    for step, commands in compiled:
        crate = crate_of(step)
        if failed_step is not None:
            console.print_step_skipped(step.name, f"after failure of '{failed_step}'")
            result.steps.append(StepResult(step.name, STATUS_SKIPPED, crate=crate))
            continue

        console.print_step(step.name)
        started = time.monotonic()
        try:
            for sub in commands:
                _run_step(job_name, sub, variables, dry_run=dry_run)
        except StepFailure as e:
            failed_step = step.name
            console.print_failure(step.name, e.stderr or str(e), exit_code=e.exit_code)
            result.steps.append(
                StepResult(
                    step.name,
                    STATUS_FAILED,
                    crate=crate,
                    exit_code=e.exit_code,
                    error=str(e),
                    duration=time.monotonic() - started,
                )
            )
            continue
        except CIError as e:
            failed_step = step.name
            console.print_failure(step.name, str(e), hint=e.details.get("hint"))
            result.steps.append(
                StepResult(step.name, STATUS_FAILED, crate=crate, error=str(e), duration=time.monotonic() - started)
            )
            continue

        status = STATUS_DRY_RUN if dry_run else STATUS_OK
        if not dry_run:
            console.print_success(step.name)
        result.steps.append(StepResult(step.name, status, crate=crate, duration=time.monotonic() - started))

    return result


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def select_instances(job: Job, platforms: Sequence[str] | None = None) -> List[JobInstance]:
    """
    Matrix legs to run locally. Defaults to the leg matching the host OS.

    Raises UnknownPlatformError if a requested platform is not in the job's matrix.
    """
    wanted = list(platforms) if platforms else [host_platform()]
    out: List[JobInstance] = []
    for name in wanted:
        inst = JobInstance(job=job, platform=job.platform(name))
        if inst not in out:
            out.append(inst)
    return out


def run_matrix(
    job: Job,
    *,
    platforms: Sequence[str] | None = None,
    sources_dir: str | Path | None = None,
    max_workers: int | None = None,
    dry_run: bool = False,
) -> Dict[str, JobResult]:
    """
    Run the selected matrix legs of `job`; legs are independent and run in
    a thread pool. Returns results keyed by leg name in matrix order.
    """
    instances = select_instances(job, platforms)
    root = resolve_sources_dir(sources_dir)

    if max_workers is None:
        max_workers = len(instances)

    results: Dict[str, JobResult] = {}
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        futures = {pool.submit(run_instance, inst, root, dry_run=dry_run): inst.name for inst in instances}
        for fut in as_completed(futures):
            res = fut.result()
            results[res.name] = res

    return {inst.name: results[inst.name] for inst in instances}
