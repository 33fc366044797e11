# src/cargoci/dsl.py
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from .model import LINUX, MACOS, SOURCES_DIR, WINDOWS, Crate, Job, Platform, Step
from .params import JobParameters

INSTALL_RUST = "azure-install-rust.yml"
CLONE_PATCH_OTP = "azure-clone-patch-otp.yml"

BUILD_TESTS = "cargo build --tests"
CRATE_TEST = "cargo test"

CI_ENV = {"CI": "True"}


# ---------------------------------------------------------------------
# Step helpers
# ---------------------------------------------------------------------

def sh(name: str, cmd: str, *, cwd: str | None = None, env: Optional[Dict[str, str]] = None) -> Step:
    """Create a shell step."""
    return Step(name=name, run=cmd, cwd=cwd, env=dict(env or {}))


def template(path: str, **parameters: Any) -> Step:
    """Reference a step template; the step is named after the file."""
    return Step(name=path, template=path, parameters=parameters)


def crate_tests(crates: Iterable[Crate | str]) -> List[Step]:
    """One `cargo test` step per crate, run from the crate's directory."""
    out: List[Step] = []
    for c in crates:
        crate = c if isinstance(c, Crate) else Crate(c)
        out.append(
            sh(
                f"{crate.key} - {CRATE_TEST}",
                CRATE_TEST,
                cwd=crate.working_directory,
                env=CI_ENV,
            )
        )
    return out


# ---------------------------------------------------------------------
# Matrix
# ---------------------------------------------------------------------

def platform_matrix(cross: bool = False) -> List[Platform]:
    """Linux always; cross adds macOS and Windows."""
    if cross:
        return [LINUX, MACOS, WINDOWS]
    return [LINUX]


# ---------------------------------------------------------------------
# Functional Job helper
# ---------------------------------------------------------------------

def job(
    name: str,
    *steps: Step,  # allow: job("x", sh(...), sh(...))
    steps_list: Optional[List[Step]] = None,
    display_name: Optional[str] = None,
    matrix: Optional[List[Platform]] = None,
    cross: bool = False,
) -> Job:
    steps_final: List[Step] = []
    if steps_list:
        steps_final.extend(steps_list)
    steps_final.extend(steps)

    if not steps_final:
        raise ValueError(f"job({name!r}) must have at least one step")

    return Job(
        name=name,
        steps=steps_final,
        display_name=display_name,
        matrix=list(matrix) if matrix is not None else platform_matrix(cross),
    )


# ---------------------------------------------------------------------
# Builder API
# ---------------------------------------------------------------------

class JobBuilder:
    def __init__(self, name: str):
        self.name = name
        self._display_name: Optional[str] = None
        self._matrix: List[Platform] = [LINUX]
        self._steps: List[Step] = []

    def display(self, display_name: str):
        self._display_name = display_name
        return self

    def on(self, *platforms: Platform):
        self._matrix = list(platforms)
        return self

    def cross(self, enabled: bool = True):
        self._matrix = platform_matrix(enabled)
        return self

    def define_step(self, name: str, run: str, cwd: str | None = None, **env: Any):
        self._steps.append(sh(name, run, cwd=cwd, env={k: str(v) for k, v in env.items()}))
        return self

    def use_template(self, path: str, **parameters: Any):
        self._steps.append(template(path, **parameters))
        return self

    def test_crates(self, *crates: Crate | str):
        self._steps.extend(crate_tests(crates))
        return self

    def build(self) -> Job:
        if not self._steps:
            raise ValueError(f"Job '{self.name}' has no steps")
        if not self._matrix:
            raise ValueError(f"Job '{self.name}' has an empty platform matrix")
        return Job(
            name=self.name,
            steps=list(self._steps),
            display_name=self._display_name,
            matrix=list(self._matrix),
        )


def build(name: str) -> JobBuilder:
    """Convenience: build('test').define_step(...).build()"""
    return JobBuilder(name)


# ---------------------------------------------------------------------
# The per-crate test job
# ---------------------------------------------------------------------

def crate_job(params: JobParameters) -> Job:
    """
    Expand template parameters into the concrete test job:

        install toolchain -> clone OTP -> cargo build --tests -> cargo test per crate
    """
    return (
        build(params.name)
        .display(params.display_name)
        .cross(params.cross)
        .use_template(INSTALL_RUST, rust_version=params.rust)
        .use_template(CLONE_PATCH_OTP)
        .define_step(BUILD_TESTS, BUILD_TESTS, **CI_ENV)
        .test_crates(*params.crate_list)
        .build()
    )


def crate_of(step: Step) -> Optional[str]:
    """Crate key a `cargo test` step runs for, read from its working directory."""
    if step.is_template or (step.run or "").strip() != CRATE_TEST:
        return None
    cwd = (step.cwd or "").replace("\\", "/").rstrip("/")
    prefix = SOURCES_DIR + "/"
    if not cwd.startswith(prefix):
        return None
    return cwd[len(prefix):]
