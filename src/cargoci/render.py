"""Render jobs to the CI service's YAML layout, and read rendered jobs back."""

from __future__ import annotations

from typing import Any, Dict, List

import yaml

from .dsl import BUILD_TESTS, CLONE_PATCH_OTP, CRATE_TEST, INSTALL_RUST
from .model import LINUX, MACOS, SOURCES_DIR, VM_IMAGE, WINDOWS, Job, Platform, Step


def step_to_dict(step: Step) -> Dict[str, Any]:
    if step.is_template:
        out: Dict[str, Any] = {"template": step.template}
        if step.parameters:
            out["parameters"] = dict(step.parameters)
        return out

    out = {"script": step.run}
    if step.env:
        out["env"] = dict(step.env)
    out["displayName"] = step.name
    if step.cwd:
        out["workingDirectory"] = step.cwd
    return out


def job_to_dict(job: Job) -> Dict[str, Any]:
    out: Dict[str, Any] = {"job": job.name}
    if job.display_name:
        out["displayName"] = job.display_name
    out["strategy"] = {"matrix": {p.name: {"vmImage": p.vm_image} for p in job.matrix}}
    out["pool"] = {"vmImage": job.pool_image}
    out["steps"] = [step_to_dict(s) for s in job.steps]
    return out


def render_document(*jobs: Job) -> Dict[str, Any]:
    return {"jobs": [job_to_dict(j) for j in jobs]}


def dump_yaml(doc: Dict[str, Any]) -> str:
    return yaml.safe_dump(doc, sort_keys=False, default_flow_style=False, width=120)


# ---------------------------------------------------------------------
# Reading rendered documents
# ---------------------------------------------------------------------

def dict_to_step(data: Dict[str, Any]) -> Step:
    if not isinstance(data, dict):
        raise ValueError(f"step must be a mapping, got {type(data).__name__}")

    if "template" in data:
        path = str(data["template"])
        parameters = data.get("parameters") or {}
        if not isinstance(parameters, dict):
            raise ValueError(f"template '{path}' parameters must be a mapping")
        return Step(name=path, template=path, parameters=dict(parameters))

    if "script" not in data:
        raise ValueError(f"step has neither 'script' nor 'template': {sorted(data)}")

    run = str(data["script"])
    env = data.get("env") or {}
    if not isinstance(env, dict):
        raise ValueError(f"step env must be a mapping, got {type(env).__name__}")
    env = {str(k): str(v) for k, v in env.items()}
    return Step(
        name=str(data.get("displayName") or run),
        run=run,
        cwd=data.get("workingDirectory"),
        env=env,
    )


def _matrix_from_dict(data: Dict[str, Any]) -> List[Platform]:
    strategy = data.get("strategy") or {}
    if not isinstance(strategy, dict):
        raise ValueError("strategy must be a mapping")
    matrix = strategy.get("matrix") or {}
    if not isinstance(matrix, dict):
        raise ValueError("strategy.matrix must be a mapping")
    out: List[Platform] = []
    for name, entry in matrix.items():
        # A missing vmImage is kept as "" so the checker can report it.
        image = entry.get("vmImage") if isinstance(entry, dict) else None
        out.append(Platform(str(name), str(image or "")))
    return out


def dict_to_job(data: Dict[str, Any]) -> Job:
    if not isinstance(data, dict) or "job" not in data:
        raise ValueError("job entry must be a mapping with a 'job' key")
    steps = [dict_to_step(s) for s in (data.get("steps") or [])]
    pool = data.get("pool") or {}
    return Job(
        name=str(data["job"]),
        steps=steps,
        display_name=data.get("displayName"),
        matrix=_matrix_from_dict(data),
        pool_image=str((pool.get("vmImage") if isinstance(pool, dict) else pool) or VM_IMAGE),
    )


def load_document(text: str) -> List[Job]:
    doc = yaml.safe_load(text)
    if not isinstance(doc, dict) or not isinstance(doc.get("jobs"), list):
        raise ValueError("document must be a mapping with a 'jobs' list")
    return [dict_to_job(j) for j in doc["jobs"]]


# ---------------------------------------------------------------------
# The parameterised template itself
# ---------------------------------------------------------------------

_TEMPLATE = """\
parameters:
  name: ''
  displayName: ''
  cross: false
  rust: ''
  crates: []

jobs:
  - job: ${{{{ parameters.name }}}}
    displayName: ${{{{ parameters.displayName }}}}
    strategy:
      matrix:
        {linux.name}:
          vmImage: {linux.vm_image}

        ${{{{ if parameters.cross }}}}:
          {macos.name}:
            vmImage: {macos.vm_image}
          {windows.name}:
            vmImage: {windows.vm_image}
    pool:
      vmImage: {pool}

    steps:
      - template: {install_rust}
        parameters:
          rust_version: ${{{{ parameters.rust }}}}

      - template: {clone_otp}

      - script: {build}
        env:
          CI: 'True'
        displayName: {build}

      - ${{{{ each crate in parameters.crates }}}}:
          - script: {test}
            env:
              CI: 'True'
            displayName: ${{{{ crate.key }}}} - {test}
            workingDirectory: {sources}/${{{{ crate.key }}}}
"""


def emit_template() -> str:
    """Text of the job template a pipeline includes with `- template:`."""
    return _TEMPLATE.format(
        linux=LINUX,
        macos=MACOS,
        windows=WINDOWS,
        pool=VM_IMAGE,
        install_rust=INSTALL_RUST,
        clone_otp=CLONE_PATCH_OTP,
        build=BUILD_TESTS,
        test=CRATE_TEST,
        sources=SOURCES_DIR,
    )
