from __future__ import annotations

from dataclasses import replace

from cargoci.checks import check_document, check_job
from cargoci.dsl import crate_job, sh
from cargoci.model import LINUX, MACOS, Platform
from cargoci.params import JobParameters
from cargoci.render import render_document


def _checks(violations) -> set[str]:
    return {v.check for v in violations}


def test_expanded_jobs_satisfy_every_check(params: JobParameters, cross_params: JobParameters) -> None:
    assert check_job(crate_job(params), params) == []
    assert check_job(crate_job(cross_params), cross_params) == []
    assert check_job(crate_job(cross_params)) == []


def test_matrix_entry_without_vm_image(params: JobParameters) -> None:
    j = crate_job(params)
    j.matrix = [LINUX, Platform("MacOs", "")]
    violations = check_job(j)
    assert _checks(violations) == {"matrix.vm_image"}
    assert "MacOs" in violations[0].message


def test_matrix_must_match_cross_flag(params: JobParameters, cross_params: JobParameters) -> None:
    assert _checks(check_job(crate_job(params), cross_params)) == {"matrix.cross"}
    assert _checks(check_job(crate_job(cross_params), params)) == {"matrix.cross"}

    partial = crate_job(cross_params)
    partial.matrix = [LINUX, MACOS]
    assert _checks(check_job(partial, cross_params)) == {"matrix.cross"}


def test_linux_is_required(params: JobParameters) -> None:
    j = crate_job(params)
    j.matrix = [MACOS]
    assert "matrix.linux" in _checks(check_job(j))


def test_every_crate_needs_its_own_step(params: JobParameters) -> None:
    j = crate_job(params)
    j.steps = j.steps[:-1]
    violations = check_job(j, params)
    assert _checks(violations) == {"crate.step"}
    assert "libeir_passes" in violations[0].message

    doubled = crate_job(params)
    doubled.steps = doubled.steps + [doubled.steps[-1]]
    assert _checks(check_job(doubled, params)) == {"crate.step"}


def test_crate_display_name_must_embed_key(params: JobParameters) -> None:
    j = crate_job(params)
    j.steps[-1] = replace(j.steps[-1], name="cargo test")
    violations = check_job(j)
    assert _checks(violations) == {"crate.step"}
    assert "libeir_passes" in violations[0].message


def test_build_must_precede_crate_tests(params: JobParameters) -> None:
    j = crate_job(params)
    build_step = j.steps.pop(2)
    j.steps.insert(3, build_step)
    violations = check_job(j, params)
    assert _checks(violations) == {"order.build_first"}
    assert "libeir_ir" in violations[0].message


def test_missing_build_step(params: JobParameters) -> None:
    j = crate_job(params)
    del j.steps[2]
    assert "order.build_first" in _checks(check_job(j))


def test_template_steps_required_before_build(params: JobParameters) -> None:
    j = crate_job(params)
    del j.steps[1]
    assert _checks(check_job(j)) == {"templates.present"}

    late = crate_job(params)
    late.steps.append(late.steps.pop(0))
    assert "templates.present" in _checks(check_job(late))


def test_toolchain_version_matches_parameters(params: JobParameters) -> None:
    other = params.model_copy(update={"rust": "stable"})
    violations = check_job(crate_job(params), other)
    assert _checks(violations) == {"templates.present"}
    assert "stable" in violations[0].message


def test_hand_written_extra_steps_are_allowed(params: JobParameters) -> None:
    j = crate_job(params)
    j.steps.insert(3, sh("clippy", "cargo clippy"))
    assert check_job(j, params) == []


def test_check_document(params: JobParameters) -> None:
    doc = render_document(crate_job(params))
    assert check_document(doc, params) == []

    doc["jobs"][0]["strategy"]["matrix"]["Linux"] = {}
    assert _checks(check_document(doc)) == {"matrix.vm_image"}


def test_check_document_reports_malformed_entries() -> None:
    assert _checks(check_document({})) == {"document"}
    assert _checks(check_document({"jobs": ["not a job"]})) == {"document"}
    violations = check_document({"jobs": [{"job": "x", "steps": [{"bash": "echo"}]}]})
    assert _checks(violations) == {"document"}
    assert violations[0].job == "x"
    env_as_list = check_document({"jobs": [{"job": "y", "steps": [{"script": "cargo test", "env": ["CI=True"]}]}]})
    assert _checks(env_as_list) == {"document"}
    assert env_as_list[0].job == "y"
    assert "env" in env_as_list[0].message

    params_as_list = check_document(
        {"jobs": [{"job": "z", "steps": [{"template": "ci/azure-install-rust.yml", "parameters": ["nightly"]}]}]}
    )
    assert _checks(params_as_list) == {"document"}
    assert params_as_list[0].job == "z"


def test_one_letter_crate_key_is_matched_as_a_word(params: JobParameters) -> None:
    short = JobParameters.model_validate({**params.as_template_parameters(), "crates": [{"key": "a"}]})
    j = crate_job(short)
    assert check_job(j, short) == []

    j.steps[-1] = replace(j.steps[-1], name="cargo test")
    violations = check_job(j, short)
    assert _checks(violations) == {"crate.step"}
    assert "'a'" in violations[0].message

    j.steps[-1] = replace(j.steps[-1], name="crate a: cargo test")
    assert check_job(j, short) == []
