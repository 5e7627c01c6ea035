"""
Image provisioner — CLI entrypoint.

Usage:
    provision --help
    provision run
    provision config check
    provision resolve

Exit codes of `provision run`:
    0    package manager bootstrapped (later-stage warnings are listed)
    1    a fatal stage failed (init, cleanup_pre, bootstrap)
    2    configuration missing or invalid, or a usage error
    130  cancelled by SIGTERM or Ctrl-C
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from provisioner import __version__
from provisioner.core.observability.logging_config import (
    FILE_ENV,
    FILE_LEVEL_ENV,
    LEVEL_ENV,
    setup_logging,
)

_STATUS_COLORS = {"ok": "green", "degraded": "yellow", "cancelled": "yellow", "failed": "red"}


@click.group()
@click.version_option(version=__version__, prog_name="provision")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to provision.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """Image provisioner — bootstrap a package manager and apply a configuration."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get(LEVEL_ENV, "INFO")

    setup_logging(
        level=level,
        log_file=os.environ.get(FILE_ENV),
        log_file_level=os.environ.get(FILE_LEVEL_ENV),
        quiet_third_party=not debug,
    )


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--dry-run", is_flag=True, help="Fetch artifacts but start no external process.")
@click.option(
    "--settle",
    "settle_seconds",
    type=click.FloatRange(min=0),
    default=None,
    help="Seconds to wait after the service restore (overrides config).",
)
@click.option(
    "--work-root",
    type=click.Path(file_okay=False),
    default=None,
    help="Parent directory of the working area (overrides config).",
)
@click.pass_context
def run(
    ctx: click.Context,
    as_json: bool,
    dry_run: bool,
    settle_seconds: float | None,
    work_root: str | None,
) -> None:
    """Run the full provisioning pipeline once.

    Exit code 0 when the package manager was bootstrapped (warnings from
    later stages are listed), 1 when bootstrapping failed, 2 on invalid
    configuration, 130 when cancelled (SIGTERM or Ctrl-C).

    Examples:

        provision run

        provision run --settle 0 --dry-run
    """
    from provisioner.core.use_cases.provision import run_provision

    result = run_provision(
        config_path=ctx.obj.get("config_path"),
        dry_run=dry_run,
        settle_seconds=settle_seconds,
        work_root=work_root,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(result.exit_code)

    report = result.report
    assert report is not None

    mode_label = "[dry-run] " if dry_run else ""
    click.secho(f"\n⚡ {mode_label}provision — run {report.run_id}", fg="cyan", bold=True)
    click.echo(f"   Working area: {report.work_dir}")
    click.echo()

    # Per-stage results
    for stage in report.stages:
        timing = f" ({stage.duration_ms}ms)" if stage.duration_ms else ""
        if stage.ok:
            click.secho(f"   ✓ {stage.stage}", fg="green", nl=False)
            click.echo(timing)
        elif stage.failed:
            color = "red" if stage.fatal else "yellow"
            click.secho(f"   ✗ {stage.stage}", fg=color, nl=False)
            click.echo(timing)
            for line in (stage.diagnostic or "").split("\n")[:5]:
                click.echo(f"     │ {line}")
        else:
            click.secho(f"   ⊘ {stage.stage} ", fg="yellow", nl=False)
            click.echo(f"({stage.diagnostic})")

    # Summary
    click.echo()
    fatal = report.fatal_stage
    if fatal is not None:
        click.secho(f"❌ {fatal.stage} failed: {fatal.diagnostic}", fg="red", bold=True)

    if report.warnings and not ctx.obj.get("quiet"):
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in report.warnings:
            click.echo(f"   • {warn}")
        click.echo()

    click.secho(
        f"   Result: {report.status}",
        fg=_STATUS_COLORS.get(report.status, "white"),
        bold=True,
    )
    click.echo()
    sys.exit(result.exit_code)


@cli.group()
def config() -> None:
    """Provisioning configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate provision.yml configuration."""
    from provisioner.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        assert result.config is not None  # guaranteed when valid
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        click.echo(f"   Config: {result.config_path}")
        click.echo(f"   Working area: {result.config.work_dir}")
        for role, uri in result.config.uris().items():
            click.echo(f"   {role}: {uri}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        click.echo()
        sys.exit(1)

    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def resolve(ctx: click.Context, as_json: bool) -> None:
    """Locate the package manager in the refreshed environment."""
    from provisioner.core.use_cases.resolve import resolve_executable

    result = resolve_executable(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(2 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(2)

    resolution = result.resolution
    assert resolution is not None
    if resolution.found:
        click.secho(f"✓ {resolution.locator}", fg="green")
    else:
        click.secho(f"⚠️  {resolution.reason}", fg="yellow")
        click.echo(f"   Fallback: {resolution.locator}")


if __name__ == "__main__":
    cli()
