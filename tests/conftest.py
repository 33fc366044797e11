from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from cargoci.params import JobParameters


@pytest.fixture
def params() -> JobParameters:
    return JobParameters.model_validate(
        {
            "name": "test_libeir",
            "displayName": "libeir tests",
            "cross": False,
            "rust": "nightly",
            "crates": [{"key": "libeir_ir"}, {"key": "libeir_passes"}],
        }
    )


@pytest.fixture
def cross_params(params: JobParameters) -> JobParameters:
    return params.model_copy(update={"cross": True})


@pytest.fixture
def params_file(tmp_path: Path, params: JobParameters) -> Path:
    path = tmp_path / "crates.yml"
    path.write_text(yaml.safe_dump(params.as_template_parameters(), sort_keys=False), encoding="utf-8")
    return path
