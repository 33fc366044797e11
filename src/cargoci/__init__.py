from .dsl import sh, template, job, build, JobBuilder, crate_tests, crate_job, platform_matrix
from .model import Crate, Job, Platform, Step
from .params import JobParameters, ParameterError, load_parameters
from .render import emit_template, render_document, dump_yaml
from .checks import Violation, check_job, check_document
from .runner import run_matrix

__all__ = [
    "sh", "template", "job", "build", "JobBuilder", "crate_tests", "crate_job", "platform_matrix",
    "Crate", "Job", "Platform", "Step",
    "JobParameters", "ParameterError", "load_parameters",
    "emit_template", "render_document", "dump_yaml",
    "Violation", "check_job", "check_document",
    "run_matrix",
]
