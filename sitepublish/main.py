"""
sitepublish — CLI entrypoint.

Usage:
    sitepublish --help
    sitepublish publish
    sitepublish publish --draft --dry-run
    sitepublish config check
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from sitepublish.core.observability.logging_config import setup_logging

from sitepublish import __version__


@click.group()
@click.version_option(version=__version__, prog_name="sitepublish")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to publish.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """sitepublish — build, post-process and mirror a static site."""
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
        level = os.environ.get("SITEPUBLISH_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("SITEPUBLISH_LOG_FILE"),
        log_file_level=os.environ.get("SITEPUBLISH_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
    )


@cli.command()
@click.option("--draft", is_flag=True, help="Publish a draft preview instead of production.")
@click.option("--dry-run", is_flag=True, help="Build locally, but only report remote changes.")
@click.option("--mock", is_flag=True, help="Use mock adapters for rsync and ssh.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def publish(ctx: click.Context, draft: bool, dry_run: bool, mock: bool, as_json: bool) -> None:
    """Build the site and mirror it to its destination.

    Examples:

        sitepublish publish

        sitepublish publish --draft

        sitepublish publish --dry-run
    """
    from sitepublish.core.models.publish import BuildMode
    from sitepublish.core.use_cases.publish import publish as run_publish

    mode = BuildMode.DRAFT if draft else BuildMode.PRODUCTION
    result = run_publish(
        mode,
        config_path=ctx.obj.get("config_path"),
        dry_run=dry_run,
        mock_remote=mock,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(result.exit_code)

    report = result.report
    assert report is not None
    quiet = ctx.obj.get("quiet", False)

    mode_label = "[dry-run] " if dry_run else "[mock] " if mock else ""
    if not quiet:
        click.secho(
            f"\n🚀 {mode_label}{mode.value} → {report.destination}",
            fg="cyan",
            bold=True,
        )
        click.echo(f"   {report.operation_id}")
        click.echo()

    for stage in report.stages:
        if stage.status == "done":
            click.secho(f"   ✓ {stage.label}", fg="green", nl=False)
            click.echo(f" ({stage.duration_ms}ms)")
            if ctx.obj.get("verbose"):
                for line in stage.log_lines[-10:]:
                    click.echo(f"     │ {line}")
        elif stage.status == "error":
            click.secho(f"   ✗ {stage.label}", fg="red", nl=False)
            click.echo(f" ({stage.duration_ms}ms)")
            for line in stage.error.split("\n")[:5]:
                click.echo(f"     │ {line}")
        elif not quiet:
            click.secho(f"   ⊘ {stage.label} (skipped)", fg="yellow")

    click.echo()
    if report.ok:
        click.secho(
            f"   Published in {report.total_duration_ms}ms",
            fg="green",
            bold=True,
        )
        click.echo()
        return

    failed = report.failed_stage
    assert failed is not None
    click.secho(
        f"   Failed at {failed.name} (exit {report.exit_code})",
        fg="red",
        bold=True,
    )
    click.echo()
    sys.exit(report.exit_code)


@cli.group()
def config() -> None:
    """Publish configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate publish.yml and the site it points at."""
    from sitepublish.core.errors import EXIT_CONFIG
    from sitepublish.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else EXIT_CONFIG)

    if result.valid:
        assert result.config is not None
        dest = result.config.destinations
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        if result.config.name:
            click.echo(f"   Site: {result.config.name}")
        click.echo(f"   base_url: {result.base_url}")
        click.echo(f"   Production → {dest.production}")
        click.echo(f"   Draft      → {dest.draft}")
        click.echo(f"   Patch rules: {len(result.config.patches)}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    click.echo()
    if not result.valid:
        sys.exit(EXIT_CONFIG)


@config.command("restore")
@click.pass_context
def config_restore(ctx: click.Context) -> None:
    """Restore the generator config left behind by an interrupted run."""
    from sitepublish.core.config.loader import ConfigError, find_config_file, load_config, resolve_paths
    from sitepublish.core.errors import EXIT_CONFIG, ConfigRestoreError
    from sitepublish.core.services.config_scope import restore_from_backup

    config_path = ctx.obj.get("config_path") or find_config_file()
    if config_path is None:
        click.secho("❌ No publish.yml found.", fg="red")
        sys.exit(EXIT_CONFIG)

    try:
        paths = resolve_paths(load_config(config_path), config_path)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(EXIT_CONFIG)

    try:
        restored = restore_from_backup(paths.config)
    except ConfigRestoreError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(e.exit_code)

    if restored:
        click.secho(f"✅ Restored {paths.config}", fg="green")
    else:
        click.echo(f"Nothing to restore for {paths.config}")


@cli.command()
@click.option("-n", "count", default=10, show_default=True, help="Number of entries to show.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def history(ctx: click.Context, count: int, as_json: bool) -> None:
    """Show recent publish runs from the audit ledger."""
    from sitepublish.core.config.loader import ConfigError, find_config_file, load_config, resolve_paths
    from sitepublish.core.errors import EXIT_CONFIG
    from sitepublish.core.persistence.audit import AuditWriter, default_audit_path

    config_path: Path | None = ctx.obj.get("config_path") or find_config_file()
    site_root = Path.cwd()
    if config_path is not None:
        try:
            site_root = resolve_paths(load_config(config_path), config_path).root
        except ConfigError as e:
            click.secho(f"❌ {e}", fg="red")
            sys.exit(EXIT_CONFIG)

    entries = AuditWriter(default_audit_path(site_root)).read_recent(count)

    if as_json:
        click.echo(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
        return

    if not entries:
        click.echo("No publish runs recorded.")
        return

    for entry in reversed(entries):
        color = "green" if entry.status == "ok" else "red"
        dry = " [dry-run]" if entry.dry_run else ""
        click.secho(f"   {entry.status:<6}", fg=color, nl=False)
        click.echo(f" {entry.timestamp}  {entry.mode}{dry} → {entry.destination}")
        if entry.failed_stage:
            click.echo(f"          {entry.failed_stage}: {entry.error}")


if __name__ == "__main__":
    cli()
