from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from cargoci.model import Crate
from cargoci.params import JobParameters, ParameterError, load_parameters, parse_parameters


def _write(path: Path, payload: object) -> Path:
    path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
    return path


def test_bare_mapping_keeps_wire_names(params_file: Path) -> None:
    params = load_parameters(params_file)
    assert params.name == "test_libeir"
    assert params.display_name == "libeir tests"
    assert params.crate_list == [Crate("libeir_ir"), Crate("libeir_passes")]
    dumped = params.as_template_parameters()
    assert set(dumped) == {"name", "displayName", "cross", "rust", "crates"}
    assert dumped["crates"] == [{"key": "libeir_ir"}, {"key": "libeir_passes"}]


def test_cross_defaults_to_false() -> None:
    params = parse_parameters({"name": "t", "displayName": "T", "rust": "stable"})
    assert params.cross is False
    assert params.crates == []


def test_reads_parameters_from_pipeline_template_entry(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "pipeline.yml",
        {
            "jobs": [
                {"job": "lint", "steps": [{"script": "cargo fmt -- --check"}]},
                {"template": "ci/other.yml", "parameters": {"name": "o", "displayName": "O", "rust": "beta"}},
                {
                    "template": "ci/azure-test.yml",
                    "parameters": {"name": "t", "displayName": "T", "cross": True, "rust": "nightly"},
                },
            ]
        },
    )
    assert load_parameters(path).name == "o"
    picked = load_parameters(path, template_name="azure-test.yml")
    assert picked.name == "t"
    assert picked.cross is True


def test_pipeline_without_matching_template_is_rejected(tmp_path: Path) -> None:
    path = _write(tmp_path / "pipeline.yml", {"jobs": [{"job": "lint", "steps": []}]})
    with pytest.raises(ParameterError, match="no job entry references"):
        load_parameters(path)


def test_unquoted_rust_version_keeps_its_digits(tmp_path: Path) -> None:
    path = tmp_path / "params.yml"
    path.write_text("name: t\ndisplayName: T\nrust: 1.40\n", encoding="utf-8")
    assert load_parameters(path).rust == "1.40"


def test_integer_rust_version_becomes_text() -> None:
    assert parse_parameters({"name": "t", "displayName": "T", "rust": 2}).rust == "2"


def test_float_rust_version_is_rejected() -> None:
    with pytest.raises(ParameterError) as info:
        parse_parameters({"name": "t", "displayName": "T", "rust": 1.4})
    assert any("quote it" in d for d in info.value.details)


@pytest.mark.parametrize(
    "crates",
    [
        ["libeir_ir"],
        [{"key": "a"}, {"key": "a"}],
        [{"key": "../outside"}],
        [{"key": "/abs"}],
        [{"key": ""}],
        [{"key": "a", "path": "b"}],
    ],
)
def test_bad_crate_lists_are_rejected(crates: list) -> None:
    with pytest.raises(ParameterError) as info:
        parse_parameters({"name": "t", "displayName": "T", "rust": "stable", "crates": crates})
    assert info.value.details


def test_cross_must_be_boolean() -> None:
    with pytest.raises(ParameterError):
        parse_parameters({"name": "t", "displayName": "T", "rust": "stable", "cross": "sometimes"})


def test_unknown_parameter_is_rejected() -> None:
    with pytest.raises(ParameterError, match="invalid template parameters"):
        parse_parameters({"name": "t", "displayName": "T", "rust": "stable", "toolchain": "x"})


def test_missing_file_and_bad_yaml(tmp_path: Path) -> None:
    with pytest.raises(ParameterError, match="not found"):
        load_parameters(tmp_path / "nope.yml")

    bad = tmp_path / "bad.yml"
    bad.write_text("name: [unclosed\n", encoding="utf-8")
    with pytest.raises(ParameterError, match="could not parse YAML"):
        load_parameters(bad)


def test_display_name_accepts_field_name_too() -> None:
    params = JobParameters(name="t", display_name="T", rust="stable")
    assert params.as_template_parameters()["displayName"] == "T"
