from __future__ import annotations

import pytest

from cargoci.dsl import (
    BUILD_TESTS,
    CLONE_PATCH_OTP,
    INSTALL_RUST,
    build,
    crate_job,
    crate_of,
    crate_tests,
    job,
    platform_matrix,
    sh,
)
from cargoci.model import LINUX, MACOS, WINDOWS, Crate
from cargoci.params import JobParameters


def test_platform_matrix_cross_adds_exactly_macos_and_windows() -> None:
    assert platform_matrix(False) == [LINUX]
    assert platform_matrix(True) == [LINUX, MACOS, WINDOWS]
    assert all(p.vm_image for p in platform_matrix(True))


def test_crate_tests_run_from_crate_directory() -> None:
    steps = crate_tests([Crate("libeir_ir"), "util/listing"])
    assert [s.name for s in steps] == ["libeir_ir - cargo test", "util/listing - cargo test"]
    assert [s.cwd for s in steps] == [
        "$(Build.SourcesDirectory)/libeir_ir",
        "$(Build.SourcesDirectory)/util/listing",
    ]
    assert all(s.run == "cargo test" and s.env == {"CI": "True"} for s in steps)
    assert [crate_of(s) for s in steps] == ["libeir_ir", "util/listing"]


def test_crate_of_ignores_other_steps() -> None:
    assert crate_of(sh("build", BUILD_TESTS)) is None
    assert crate_of(sh("x - cargo test", "cargo test", cwd="/elsewhere/x")) is None


def test_crate_job_step_order(params: JobParameters) -> None:
    j = crate_job(params)
    assert j.name == "test_libeir"
    assert j.display_name == "libeir tests"
    assert j.platform_names == ["Linux"]

    assert j.steps[0].template == INSTALL_RUST
    assert j.steps[0].parameters == {"rust_version": "nightly"}
    assert j.steps[1].template == CLONE_PATCH_OTP
    assert j.steps[2].run == BUILD_TESTS
    assert j.steps[2].env == {"CI": "True"}
    assert [crate_of(s) for s in j.steps[3:]] == ["libeir_ir", "libeir_passes"]


def test_crate_job_with_cross(cross_params: JobParameters) -> None:
    assert crate_job(cross_params).platform_names == ["Linux", "MacOs", "Windows"]


def test_crate_job_without_crates_still_builds() -> None:
    params = JobParameters(name="t", display_name="T", rust="stable")
    j = crate_job(params)
    assert [s.name for s in j.steps][-1] == BUILD_TESTS


def test_job_requires_steps() -> None:
    with pytest.raises(ValueError, match="at least one step"):
        job("empty")
    with pytest.raises(ValueError, match="no steps"):
        build("empty").build()


def test_builder_matrix_and_templates() -> None:
    j = (
        build("custom")
        .on(LINUX, WINDOWS)
        .use_template(INSTALL_RUST, rust_version="1.40.0")
        .define_step("fmt", "cargo fmt -- --check", CI=True)
        .build()
    )
    assert j.platform_names == ["Linux", "Windows"]
    assert j.steps[0].is_template
    assert j.steps[1].env == {"CI": "True"}

    with pytest.raises(ValueError, match="empty platform matrix"):
        build("none").on().define_step("x", "true").build()


def test_job_instances_are_named_per_platform(cross_params: JobParameters) -> None:
    names = [i.name for i in crate_job(cross_params).instances()]
    assert names == ["test_libeir_Linux", "test_libeir_MacOs", "test_libeir_Windows"]
