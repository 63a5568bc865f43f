"""
Box — Neutron package manager CLI entrypoint.

Usage:
    box --help
    box install base64
    box install base64@1.0.0 --global
    box search crypto
    box build native mymodule
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from boxpm import __version__
from boxpm.core.config.loader import BoxConfig, ConfigError, load_config
from boxpm.core.observability.logging_config import (
    ENV_FILE,
    ENV_FILE_LEVEL,
    resolve_level,
    setup_logging,
)


@click.group()
@click.version_option(version=__version__, prog_name="box")
@click.option("--verbose", "-v", is_flag=True, help="Show progress output.")
@click.option("--quiet", "-q", is_flag=True, help="Only show errors.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to box.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """Box — install and build Neutron native modules from NUR."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get(ENV_FILE),
        log_file_level=os.environ.get(ENV_FILE_LEVEL),
        quiet_third_party=not debug,
    )


def _config(ctx: click.Context) -> BoxConfig:
    """Load configuration once per invocation; exit 1 on errors."""
    if "config" not in ctx.obj:
        try:
            ctx.obj["config"] = load_config(ctx.obj.get("config_path"))
        except ConfigError as e:
            click.secho(f"❌ {e}", fg="red", err=True)
            sys.exit(1)
    return ctx.obj["config"]


def _installer(ctx: click.Context):
    from boxpm.core.services.installer import Installer

    return Installer(_config(ctx))


def _registry(ctx: click.Context):
    from boxpm.core.services.registry.client import RegistryClient

    config = _config(ctx)
    return RegistryClient(config.registry_url, index_file=config.index_file)


def _scope_label(global_: bool) -> str:
    return "global" if global_ else "local"


# ── Installation ────────────────────────────────────────────────


@cli.command()
@click.argument("spec")
@click.option("--global", "-g", "global_", is_flag=True, help="Install into ~/.box/modules.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install(ctx: click.Context, spec: str, global_: bool, as_json: bool) -> None:
    """Install a module (NAME or NAME@VERSION) from NUR."""
    result = _installer(ctx).install(spec, global_=global_)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.ok else 1)

    if not result.ok:
        click.secho(f"❌ {result.error}", fg="red", err=True)
        sys.exit(1)

    click.secho(f"✓ Installed {result.module}@{result.version}", fg="green", bold=True)
    click.echo(f"   {result.path}")
    if result.manifest in ("added", "updated"):
        click.echo(f"   .quark: {result.manifest} {result.module}={result.version}")


@cli.command()
@click.argument("name")
@click.option("--global", "-g", "global_", is_flag=True, help="Remove from ~/.box/modules.")
@click.pass_context
def uninstall(ctx: click.Context, name: str, global_: bool) -> None:
    """Remove an installed module."""
    result = _installer(ctx).uninstall(name, global_=global_)
    if not result.ok:
        click.secho(f"❌ {result.error}", fg="red", err=True)
        sys.exit(1)
    click.secho(f"✓ Uninstalled {name}", fg="green")


@cli.command()
@click.argument("spec")
@click.option("--global", "-g", "global_", is_flag=True, help="Update in ~/.box/modules.")
@click.pass_context
def update(ctx: click.Context, spec: str, global_: bool) -> None:
    """Reinstall a module at its latest (or given) version."""
    result = _installer(ctx).update(spec, global_=global_)
    if not result.ok:
        click.secho(f"❌ {result.error}", fg="red", err=True)
        sys.exit(1)
    click.secho(f"✓ Updated {result.module} to {result.version}", fg="green")


@cli.command("list")
@click.option("--global", "-g", "global_", is_flag=True, help="List ~/.box/modules.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_cmd(ctx: click.Context, global_: bool, as_json: bool) -> None:
    """List installed modules."""
    modules = _installer(ctx).list_installed(global_=global_)

    if as_json:
        click.echo(json.dumps([m.model_dump() for m in modules], indent=2))
        return

    if not modules:
        click.echo(f"No modules installed ({_scope_label(global_)})")
        return

    click.secho(f"Installed modules ({_scope_label(global_)}):", fg="cyan", bold=True)
    for mod in modules:
        version = f"@{mod.version}" if mod.version else ""
        click.echo(f"  • {mod.name}{version}")


# ── Information ─────────────────────────────────────────────────


@cli.command()
@click.argument("query", required=False)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def search(ctx: click.Context, query: str | None, as_json: bool) -> None:
    """Search NUR module names (all modules when QUERY is omitted)."""
    registry = _registry(ctx)
    if not registry.fetch_index():
        click.secho(f"❌ {registry.last_error}", fg="red", err=True)
        sys.exit(1)

    names = registry.search(query) if query else registry.list_modules()
    results = sorted(names)

    if as_json:
        click.echo(json.dumps(results, indent=2))
        return

    if not results:
        click.echo(f"No modules found matching '{query}'")
        return

    click.echo(f"Found {len(results)} module(s):")
    for name in results:
        click.echo(f"  {name}")


@cli.command()
@click.argument("name")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def info(ctx: click.Context, name: str, as_json: bool) -> None:
    """Show registry metadata for a module."""
    registry = _registry(ctx)
    if not registry.fetch_index():
        click.secho(f"❌ {registry.last_error}", fg="red", err=True)
        sys.exit(1)

    metadata = registry.fetch_metadata(name)
    if not metadata.found:
        click.secho(f"❌ Module not found: {name}", fg="red", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(metadata.model_dump(by_alias=True), indent=2))
        return

    click.secho(f"Module: {metadata.name}", fg="cyan", bold=True)
    for label, value in (
        ("Description", metadata.description),
        ("Author", metadata.author),
        ("License", metadata.license),
        ("Repository", metadata.repository),
    ):
        if value:
            click.echo(f"{label}: {value}")
    click.echo(f"Latest: {metadata.latest}")

    click.echo("\nAvailable Versions:")
    for version, meta in metadata.versions.items():
        marker = " (latest)" if version == metadata.latest else ""
        click.echo(f"  {version}{marker}")
        if meta.description:
            click.echo(f"    {meta.description}")
        if meta.dependencies:
            deps = ", ".join(f"{dep} {constraint}" for dep, constraint in meta.dependencies.items())
            click.echo(f"    depends on: {deps}")


@cli.command()
def version() -> None:
    """Show box version and platform."""
    from boxpm.core.services import platform

    click.echo(f"Box Package Manager v{__version__}")
    click.echo(f"Platform: {platform.os_label()}")
    click.echo(f"Library Extension: {platform.library_extension()}")


# ── Building ────────────────────────────────────────────────────


@cli.group()
def build() -> None:
    """Build modules from local sources."""


@build.command("native")
@click.argument("module")
@click.argument("module_version", metavar="VERSION", default="1.0.0")
@click.option("--source", "source_dir", default=None, help="Source directory (default: ./MODULE).")
@click.option("--output", "output_dir", default="box-modules", show_default=True,
              help="Output directory.")
@click.pass_context
def build_native(
    ctx: click.Context,
    module: str,
    module_version: str,
    source_dir: str | None,
    output_dir: str,
) -> None:
    """Build a native module for the current platform."""
    from boxpm.core.services.builder import BuildSynthesizer

    config = _config(ctx)
    root = config.root()
    source = Path(source_dir) if source_dir else root / module
    output = Path(output_dir) if Path(output_dir).is_absolute() else root / output_dir

    result = BuildSynthesizer(config).build_native(module, source, output, module_version)
    if not result.ok:
        click.secho(f"❌ Failed to build {module}: {result.error}", fg="red", err=True)
        sys.exit(1)
    click.secho(f"✓ Built {module} v{module_version}", fg="green", bold=True)
    click.echo(f"   {result.output_path}")


@build.command("nt")
@click.argument("module")
def build_nt(module: str) -> None:
    """Build a Neutron source module (not yet implemented)."""
    click.secho(f"❌ Neutron source builds are not yet implemented ({module})", fg="red", err=True)
    sys.exit(1)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
