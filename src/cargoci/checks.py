# checks.py
# Contract checks over a job: the properties a per-crate test job must hold
# no matter whether it was rendered here or written by hand.
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .dsl import BUILD_TESTS, CLONE_PATCH_OTP, INSTALL_RUST, crate_of, platform_matrix
from .model import LINUX, Job, Step
from .params import JobParameters
from .render import dict_to_job


@dataclass(frozen=True)
class Violation:
    check: str
    message: str
    job: str

    def __str__(self) -> str:
        return f"[{self.job}] {self.check}: {self.message}"


def _norm(path: str | None) -> str:
    return (path or "").replace("\\", "/").rstrip("/")


def _is_build(step: Step) -> bool:
    return not step.is_template and (step.run or "").strip() == BUILD_TESTS


def _names_crate(display_name: str, key: str) -> bool:
    # the key must stand on its own: crate "a" is not named by "cargo test"
    return re.search(rf"(^|[^\w/]){re.escape(key)}($|[^\w/])", display_name) is not None


def _template_index(job: Job, path: str) -> Optional[int]:
    for i, s in enumerate(job.steps):
        if s.is_template and _norm(s.template).endswith(path):
            return i
    return None


def _check_matrix(job: Job, params: Optional[JobParameters]) -> List[Violation]:
    out: List[Violation] = []
    if not job.matrix:
        out.append(Violation("matrix.vm_image", "platform matrix is empty", job.name))
    for p in job.matrix:
        if not p.vm_image.strip():
            out.append(Violation("matrix.vm_image", f"matrix entry '{p.name}' has no vmImage", job.name))

    if LINUX.name not in job.platform_names:
        out.append(Violation("matrix.linux", "no Linux entry in the platform matrix", job.name))

    if params is not None:
        expected = [p.name for p in platform_matrix(params.cross)]
        if sorted(job.platform_names) != sorted(expected):
            out.append(
                Violation(
                    "matrix.cross",
                    f"cross={str(params.cross).lower()} expects {expected}, found {job.platform_names}",
                    job.name,
                )
            )
    return out


def _check_crates(job: Job, params: Optional[JobParameters]) -> List[Violation]:
    out: List[Violation] = []
    by_key: Dict[str, List[Step]] = {}
    for s in job.steps:
        key = crate_of(s)
        if key is not None:
            by_key.setdefault(key, []).append(s)

    if params is not None:
        for crate in params.crate_list:
            found = by_key.get(crate.key, [])
            if not found:
                out.append(
                    Violation(
                        "crate.step",
                        f"no test step runs in {crate.working_directory}",
                        job.name,
                    )
                )
            elif len(found) > 1:
                out.append(Violation("crate.step", f"{len(found)} test steps for crate '{crate.key}'", job.name))

    for key, steps in by_key.items():
        for s in steps:
            if not _names_crate(s.name, key):
                out.append(
                    Violation(
                        "crate.step",
                        f"display name {s.name!r} does not mention crate '{key}'",
                        job.name,
                    )
                )
    return out


def _check_order(job: Job, params: Optional[JobParameters]) -> List[Violation]:
    out: List[Violation] = []
    build_idx = next((i for i, s in enumerate(job.steps) if _is_build(s)), None)
    if build_idx is None:
        out.append(Violation("order.build_first", f"no '{BUILD_TESTS}' step", job.name))
    else:
        for i, s in enumerate(job.steps):
            key = crate_of(s)
            if key is not None and i < build_idx:
                out.append(
                    Violation(
                        "order.build_first",
                        f"test step for crate '{key}' runs before '{BUILD_TESTS}'",
                        job.name,
                    )
                )

    for path in (INSTALL_RUST, CLONE_PATCH_OTP):
        idx = _template_index(job, path)
        if idx is None:
            out.append(Violation("templates.present", f"no '{path}' template step", job.name))
        elif build_idx is not None and idx > build_idx:
            out.append(Violation("templates.present", f"'{path}' runs after '{BUILD_TESTS}'", job.name))

    if params is not None:
        idx = _template_index(job, INSTALL_RUST)
        if idx is not None:
            version = job.steps[idx].parameters.get("rust_version")
            if str(version) != params.rust:
                out.append(
                    Violation(
                        "templates.present",
                        f"rust_version is {version!r}, expected {params.rust!r}",
                        job.name,
                    )
                )
    return out


def check_job(job: Job, params: Optional[JobParameters] = None) -> List[Violation]:
    """
    Return every contract violation in `job`.

    With `params`, the job is also checked against the parameters it was
    supposedly expanded from (matrix shape, crate list, toolchain version).
    """
    return _check_matrix(job, params) + _check_crates(job, params) + _check_order(job, params)


def check_document(doc: Dict[str, Any], params: Optional[JobParameters] = None) -> List[Violation]:
    jobs = doc.get("jobs") if isinstance(doc, dict) else None
    if not isinstance(jobs, list) or not jobs:
        return [Violation("document", "no 'jobs' list", "<document>")]

    out: List[Violation] = []
    for entry in jobs:
        try:
            job = dict_to_job(entry)
        except ValueError as e:
            name = entry.get("job", "<unknown>") if isinstance(entry, dict) else "<unknown>"
            out.append(Violation("document", str(e), str(name)))
            continue
        out.extend(check_job(job, params))
    return out
