# cli.py
from __future__ import annotations

import sys
from pathlib import Path

import click
import yaml

from cargoci.checks import check_document, check_job
from cargoci.dsl import crate_job
from cargoci.git_facts.git import repo_name
from cargoci.model import Job, UnknownPlatformError
from cargoci.params import DEFAULT_TEMPLATE, JobParameters, ParameterError, load_parameters
from cargoci.render import dump_yaml, emit_template, load_document, render_document
from cargoci.runner import resolve_sources_dir, run_matrix
from cargoci.ui.console import Console, get_console, set_console


def _write_or_echo(text: str, output: str | None) -> None:
    if output:
        out_path = Path(output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(text, encoding="utf-8")
        get_console().print_info(f"Wrote {out_path}")
    else:
        click.echo(text, nl=False)


def _load_params_or_exit(path: str, template_name: str | None) -> JobParameters:
    console = get_console()
    try:
        return load_parameters(path, template_name=template_name)
    except ParameterError as e:
        console.print_error(
            "Invalid template parameters",
            e.message if e.path is None else f"{e.path}: {e.message}",
            details=e.details or None,
            suggestion="Parameters must look like:\n"
            "  name: test\n  displayName: Test\n  cross: false\n  rust: stable\n  crates:\n    - key: my_crate",
        )
        sys.exit(1)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and command output)",
)
@click.pass_context
def cli(ctx, debug):
    """cargoci: per-crate Rust test jobs for Azure-style CI pipelines."""
    set_console(Console(debug=debug))
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@click.option("-o", "--output", default=None, help="Write the template to this file instead of stdout")
def template(output):
    """Print the parameterised job template."""
    _write_or_echo(emit_template(), output)


@cli.command()
@click.option("--params", "params_path", required=True, help="YAML file with the template parameters")
@click.option("--template-name", default=None, help=f"Template entry to read from a pipeline file (e.g. {DEFAULT_TEMPLATE})")
@click.option("-o", "--output", default=None, help="Write the rendered job to this file instead of stdout")
@click.option("--check/--no-check", default=True, show_default=True, help="Verify the rendered job before writing it")
def render(params_path, template_name, output, check):
    """Expand template parameters into a concrete job document."""
    console = get_console()
    params = _load_params_or_exit(params_path, template_name)
    job = crate_job(params)

    if check:
        violations = check_job(job, params)
        if violations:
            console.print_violations(job.name, violations)
            sys.exit(1)

    _write_or_echo(dump_yaml(render_document(job)), output)


@cli.command()
@click.argument("document", type=click.Path(exists=True, dir_okay=False))
@click.option("--params", "params_path", default=None, help="Also check against these template parameters")
@click.option("--template-name", default=None, help="Template entry to read from a pipeline parameter file")
def check(document, params_path, template_name):
    """Check a rendered job document against the per-crate job contract."""
    console = get_console()
    params = _load_params_or_exit(params_path, template_name) if params_path else None

    try:
        doc = yaml.safe_load(Path(document).read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        console.print_error("Could not parse document", str(document), details=[str(e)])
        sys.exit(1)

    violations = check_document(doc, params)
    console.print_violations(str(document), violations)
    if violations:
        sys.exit(1)


def _job_for_run(params_path: str | None, document: str | None, template_name: str | None) -> Job:
    console = get_console()
    if bool(params_path) == bool(document):
        console.print_error(
            "Nothing to run",
            "Pass exactly one of --params or --document.",
            suggestion="  cargoci run --params ci/crates.yml",
        )
        sys.exit(2)

    if params_path:
        return crate_job(_load_params_or_exit(params_path, template_name))

    try:
        jobs = load_document(Path(document).read_text(encoding="utf-8"))
    except (OSError, ValueError, yaml.YAMLError) as e:
        console.print_error("Could not load document", str(document), details=[str(e)])
        sys.exit(1)
    if len(jobs) != 1:
        console.print_error(
            "Ambiguous document",
            f"{document} defines {len(jobs)} jobs; local runs take exactly one.",
        )
        sys.exit(1)
    return jobs[0]


@cli.command()
@click.option("--params", "params_path", default=None, help="YAML file with the template parameters")
@click.option("--document", default=None, help="Rendered job document to run instead of parameters")
@click.option("--template-name", default=None, help="Template entry to read from a pipeline parameter file")
@click.option("--platform", "platforms", multiple=True, help="Matrix entry to run (repeatable; defaults to the host OS)")
@click.option("--workers", default=None, type=int, help="Number of matrix legs to run in parallel")
@click.option("--sources-dir", default=None, help="Directory standing in for $(Build.SourcesDirectory)")
@click.option("--dry-run", is_flag=True, default=False, help="Print the commands without running them")
def run(params_path, document, template_name, platforms, workers, sources_dir, dry_run):
    """Run the job's steps locally for one or more matrix entries."""
    console = get_console()
    job = _job_for_run(params_path, document, template_name)

    try:
        sources = resolve_sources_dir(sources_dir)
        console.print_run_started(
            repository=repo_name(sources),
            job=job.display_name or job.name,
            platforms=list(platforms) or ["<host>"],
            sources=str(sources),
        )

        results = run_matrix(
            job,
            platforms=platforms or None,
            sources_dir=sources,
            max_workers=workers,
            dry_run=dry_run,
        )
        console.print_results(results)

        if any(r.failed for r in results.values()):
            sys.exit(1)

    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except UnknownPlatformError as e:
        console.print_error("Unknown platform", str(e))
        sys.exit(1)
    except ValueError as e:
        console.print_error("Invalid job", str(e))
        sys.exit(1)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)


if __name__ == "__main__":
    cli()
