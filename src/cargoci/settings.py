from __future__ import annotations
import os

# Pinned OTP checkout used by the clone-patch-otp step template.
OTP_REPO = os.environ.get("CARGOCI_OTP_REPO", "https://github.com/erlang/otp.git")
OTP_REF = os.environ.get("CARGOCI_OTP_REF", "OTP-22.0")
OTP_DIR = os.environ.get("CARGOCI_OTP_DIR", "otp")
OTP_PATCH = os.environ.get("CARGOCI_OTP_PATCH", "")

# Overrides $(Build.SourcesDirectory); empty means "git repo root, else cwd".
SOURCES_DIR = os.environ.get("CARGOCI_SOURCES_DIR", "")

OUTPUT_TAIL = int(os.environ.get("CARGOCI_OUTPUT_TAIL", "4000"))
