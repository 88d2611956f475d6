"""CLI entry point for standalone usage: gitlocation.

Subcommands:
    gitlocation versions https://github.com/ org/repo          # list versions
    gitlocation versions git@host org/repo --json              # SCP-style base
    gitlocation download https://github.com/ org/repo 1.2.0 ./out
    gitlocation encode-auth USERNAME                           # credential token
"""

from __future__ import annotations

import asyncio
import json
import sys
from dataclasses import asdict
from pathlib import Path

import click

from gitlocation.auth import encode_credentials
from gitlocation.core.config import GitLocationOptions
from gitlocation.core.logging import setup_logging
from gitlocation.exceptions import GitLocationError
from gitlocation.location import GitLocation
from gitlocation.models import Credential, VersionMap, VersionRecord


def _sort_key(item: tuple[str, VersionRecord]) -> tuple[bool, str]:
    version, record = item
    # tags first, then branches
    return (not record.stable, version)


def _print_versions(versions: VersionMap, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps({v: asdict(r) for v, r in versions.items()}, indent=2))
        return
    if not versions:
        click.echo("No tags or branches found.")
        return
    for version, record in sorted(versions.items(), key=_sort_key):
        kind = "tag" if record.stable else "branch"
        prefix = " (v)" if record.meta.v_prefix else ""
        click.echo(f"  {version:<30} {record.hash[:12]}  {kind}{prefix}")


def _build_location(base_url: str, **overrides: object) -> GitLocation:
    options = GitLocationOptions.from_env(base_url=base_url, **overrides)
    return GitLocation(options, on_warning=lambda msg: click.echo(f"Warning: {msg}", err=True))


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
def main(verbose: bool) -> None:
    """gitlocation: resolve and download packages from git repositories."""
    setup_logging("DEBUG" if verbose else None)


@main.command("versions")
@click.argument("base_url")
@click.argument("repo")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def versions_cmd(base_url: str, repo: str, as_json: bool) -> None:
    """List the tags and branches of REPO under BASE_URL."""
    try:
        location = _build_location(base_url)
        versions = asyncio.run(location.lookup(repo))
    except GitLocationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if versions is None:
        click.echo(f"Repository {repo} not found", err=True)
        sys.exit(2)
    _print_versions(versions, as_json)


@main.command("download")
@click.argument("base_url")
@click.argument("repo")
@click.argument("version")
@click.argument("out_dir", type=click.Path(file_okay=False, path_type=Path))
@click.option("--full", is_flag=True, help="Disable shallow cloning")
def download_cmd(base_url: str, repo: str, version: str, out_dir: Path, full: bool) -> None:
    """Download VERSION of REPO into OUT_DIR and print its manifest."""

    async def _run() -> dict | None:
        location = _build_location(base_url, shallow_clone=not full)
        versions = await location.lookup(repo)
        if versions is None:
            click.echo(f"Repository {repo} not found", err=True)
            return None
        record = versions.get(version)
        if record is None:
            click.echo(f"Version {version} not found in {repo}", err=True)
            return None
        if not record.stable:
            click.echo(f"Warning: {version} is a branch head and may move", err=True)
        return await location.download(repo, version, record.hash, record.meta, out_dir)

    try:
        manifest = asyncio.run(_run())
    except GitLocationError as e:
        hint = " (retriable)" if e.retriable else ""
        click.echo(f"Error{hint}: {e}", err=True)
        sys.exit(1)

    if manifest is None:
        sys.exit(2)
    click.echo(json.dumps(manifest, indent=2))


@main.command("encode-auth")
@click.argument("username")
@click.password_option("--password", prompt="Password", confirmation_prompt=False)
def encode_auth(username: str, password: str) -> None:
    """Print the credential token for USERNAME (set it as GITLOCATION_AUTH)."""
    click.echo(encode_credentials(Credential(username=username, password=password)))


if __name__ == "__main__":
    main()
