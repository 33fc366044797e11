from __future__ import annotations

from typing import Callable, Dict, List

from ..dsl import CLONE_PATCH_OTP, INSTALL_RUST
from ..model import Step
from .otp import compile_clone_patch_otp
from .rust import compile_install_rust

COMPILERS: Dict[str, Callable[[Step], List[Step]]] = {
    INSTALL_RUST: compile_install_rust,
    CLONE_PATCH_OTP: compile_clone_patch_otp,
}


def compile_template(step: Step) -> List[Step]:
    """
    Expand a template step into shell steps the local runner can execute.
    Script steps pass through unchanged.
    """
    if not step.is_template:
        return [step]

    name = (step.template or "").replace("\\", "/").rsplit("/", 1)[-1]
    compiler = COMPILERS.get(name)
    if compiler is None:
        raise ValueError(f"Unknown step template: {step.template!r}. Known: {sorted(COMPILERS)}")
    return compiler(step)


def compile_steps(steps: List[Step]) -> List[Step]:
    out: List[Step] = []
    for s in steps:
        out.extend(compile_template(s))
    return out
