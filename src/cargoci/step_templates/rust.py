# step_templates/rust.py
from __future__ import annotations

from ..dsl import sh
from ..model import Step


def compile_install_rust(step: Step) -> list[Step]:
    """
    Turn the install-rust template step into runnable shell steps.
    The toolchain becomes the default so later `cargo` steps pick it up.
    """
    version = str(step.parameters.get("rust_version") or "").strip()
    if not version:
        raise ValueError(f"step '{step.name}' needs a rust_version parameter")

    return [
        sh(f"Install rust {version}", f"rustup toolchain install {version} --profile minimal"),
        sh(f"Use rust {version}", f"rustup default {version}"),
        sh("Toolchain versions", "rustc --version && cargo --version"),
    ]
