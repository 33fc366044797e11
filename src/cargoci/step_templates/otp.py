# step_templates/otp.py
from __future__ import annotations

from .. import settings
from ..dsl import sh
from ..model import SOURCES_DIR, Step


def compile_clone_patch_otp(step: Step) -> list[Step]:
    """Clone the pinned OTP checkout next to the crates, then apply the local patch if one is configured."""
    repo = step.parameters.get("repo") or settings.OTP_REPO
    ref = step.parameters.get("ref") or settings.OTP_REF
    target = step.parameters.get("dir") or settings.OTP_DIR

    out = [
        sh(
            f"Clone OTP {ref}",
            f"git clone --depth 1 --branch {ref} {repo} {target}",
            cwd=SOURCES_DIR,
        )
    ]

    patch = step.parameters.get("patch") or settings.OTP_PATCH
    if patch:
        out.append(sh("Patch OTP", patch, cwd=f"{SOURCES_DIR}/{target}"))
    return out
