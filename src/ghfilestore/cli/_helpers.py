"""Shared helpers, option decorators, and the main CLI group."""

from __future__ import annotations

import asyncio
import logging

import click

from ..api import DEFAULT_API_URL, GitHubContentsAPI, RemoteContentAPI
from ..config import ENV_API_URL, ENV_BRANCH, ENV_REPO
from ..exceptions import ConflictError, StoreError
from ..store import FileStore
from ..tree import _normalize_dir, _normalize_path


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _strip_colon(raw: str) -> str:
    """Strip an optional leading ':' from a repo-side path."""
    return raw[1:] if raw.startswith(":") else raw


def _normalize_repo_path(path: str) -> str:
    """Normalize and validate a repo-side file path."""
    path = _strip_colon(path)
    if not path:
        raise click.ClickException("Repo path must not be empty")
    try:
        return _normalize_path(path)
    except ValueError as exc:
        raise click.ClickException(f"Invalid repo path: {exc}")


def _normalize_repo_dir(path: str | None) -> str:
    """Normalize a repo-side directory path; empty means the root."""
    try:
        return _normalize_dir(_strip_colon(path or ""))
    except ValueError as exc:
        raise click.ClickException(f"Invalid repo path: {exc}")


def _split_repo_path(path: str) -> tuple[str, str]:
    """Split a repo file path into (directory, name)."""
    directory, _, name = _normalize_repo_path(path).rpartition("/")
    return directory, name


def _status(ctx, msg):
    """Emit a status message to stderr when verbose mode (-v) is on."""
    if ctx.obj.get("verbose"):
        click.echo(msg, err=True)


def _store_obj(key):
    """Click callback factory: store an option value in the context."""
    def callback(ctx, param, value):
        ctx.ensure_object(dict)
        if value is not None:
            ctx.obj[key] = value
        return value
    return callback


def _repo_option(f):
    """Shared --repo/-r option decorator for all commands."""
    return click.option(
        "--repo", "-r", envvar=ENV_REPO,
        help=f"Repository as owner/name (or set {ENV_REPO}).",
        expose_value=False, callback=_store_obj("repo"), is_eager=True,
    )(f)


def _require_repo(ctx) -> str:
    """Get the repository from context, raising a clear error if missing."""
    repo = ctx.obj.get("repo")
    if not repo:
        raise click.ClickException(
            f"No repository specified. Use --repo or set {ENV_REPO}."
        )
    return repo


def _make_api(ctx) -> RemoteContentAPI:
    """Build the remote API from the group options."""
    try:
        return GitHubContentsAPI.open(
            _require_repo(ctx),
            ctx.obj.get("token"),
            branch=ctx.obj.get("branch"),
            api_url=ctx.obj.get("api_url") or DEFAULT_API_URL,
        )
    except ValueError as exc:
        raise click.ClickException(str(exc))


def _run(ctx, func):
    """Open the store, await ``func(store)``, and close the store.

    Store errors become :class:`click.ClickException` so the user sees a
    one-line message instead of a traceback.
    """
    async def runner():
        async with FileStore(_make_api(ctx)) as store:
            return await func(store)

    try:
        return asyncio.run(runner())
    except ConflictError as exc:
        raise click.ClickException(f"{exc} (file modified concurrently, retry)")
    except (StoreError, ValueError, IsADirectoryError, NotADirectoryError) as exc:
        raise click.ClickException(str(exc))


def _format_option(f):
    """Shared --format text|json option."""
    return click.option(
        "--format", "fmt", type=click.Choice(["text", "json"]), default="text",
        show_default=True, help="Output format.",
    )(f)


def _descriptor_dict(entry) -> dict:
    return {
        "name": entry.name,
        "path": entry.path,
        "kind": "directory" if entry.is_dir else "file",
        "revision": entry.revision,
        "url": entry.url,
    }


# ---------------------------------------------------------------------------
# Main group
# ---------------------------------------------------------------------------

@click.group()
@_repo_option
@click.option("--token", envvar="GITHUB_TOKEN", default=None, expose_value=False,
              callback=_store_obj("token"),
              help="Access token (or set GITHUB_TOKEN; falls back to git credentials and gh).")
@click.option("--branch", "-b", envvar=ENV_BRANCH, default=None, expose_value=False,
              callback=_store_obj("branch"),
              help=f"Branch to read and commit to (or set {ENV_BRANCH}).")
@click.option("--api-url", envvar=ENV_API_URL, default=None, expose_value=False,
              callback=_store_obj("api_url"),
              help=f"API base URL (default {DEFAULT_API_URL}).")
@click.option("-v", "--verbose", count=True, help="Verbose output on stderr (-vv for HTTP debug).")
@click.pass_context
def main(ctx, verbose):
    """ghfilestore: files in a GitHub repository, through the contents API.

    \b
    Quick start:
      export GHFILESTORE_REPO=owner/name
      ghfilestore put notes.txt docs/notes.txt
      ghfilestore ls -R docs
      ghfilestore cat docs/notes.txt
      ghfilestore zip docs.zip --path docs
      ghfilestore rm docs/notes.txt

    \b
    Every write reads the file's current revision first and sends it with
    the change, so a concurrent edit fails instead of being overwritten.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    if verbose >= 2:
        logging.basicConfig(level=logging.DEBUG)
