"""Basic commands: ls, info, cat, put, rm."""

from __future__ import annotations

import json
import os
import sys

import click

from .._types import OverwritePolicy, UploadStatus
from ._helpers import (
    main,
    _repo_option,
    _format_option,
    _descriptor_dict,
    _normalize_repo_dir,
    _normalize_repo_path,
    _split_repo_path,
    _strip_colon,
    _status,
    _run,
)


# ---------------------------------------------------------------------------
# ls
# ---------------------------------------------------------------------------

@main.command()
@_repo_option
@click.argument("path", required=False, default="")
@click.option("-R", "--recursive", is_flag=True, help="List all files recursively with full paths.")
@click.option("-l", "--long", "long_", is_flag=True, help="Show kinds and short revisions.")
@_format_option
@click.pass_context
def ls(ctx, path, recursive, long_, fmt):
    """List files/directories at PATH (or root).

    \b
    Examples:
        ghfilestore ls                 # root listing
        ghfilestore ls docs            # subdirectory
        ghfilestore ls -R docs         # every file under docs, recursively
        ghfilestore ls --format json   # JSON output
    """
    directory = _normalize_repo_dir(path)

    async def list_entries(store):
        if recursive:
            return await store.list_all_files(directory)
        return await store.list_files(directory)

    entries = _run(ctx, list_entries)

    if fmt == "json":
        click.echo(json.dumps([_descriptor_dict(e) for e in entries], indent=2))
        return
    for entry in entries:
        label = entry.path if recursive else entry.name
        if entry.is_dir:
            label += "/"
        if long_:
            click.echo(f"{entry.revision[:7]:<7}  {str(entry.kind):<4}  {label}")
        else:
            click.echo(label)


# ---------------------------------------------------------------------------
# info
# ---------------------------------------------------------------------------

@main.command()
@_repo_option
@click.argument("path")
@click.pass_context
def info(ctx, path):
    """Show metadata for the file at PATH as JSON."""
    directory, name = _split_repo_path(path)
    item = _run(ctx, lambda store: store.fetch_metadata(directory, name))
    data = _descriptor_dict(item.descriptor)
    data["size"] = item.size
    data["inline"] = item.encoded is not None
    click.echo(json.dumps(data, indent=2))


# ---------------------------------------------------------------------------
# cat
# ---------------------------------------------------------------------------

@main.command()
@_repo_option
@click.argument("paths", nargs=-1, required=True)
@click.pass_context
def cat(ctx, paths):
    """Concatenate file contents to stdout."""
    targets = [_split_repo_path(p) for p in paths]

    async def read_all(store):
        return [await store.read(directory, name) for directory, name in targets]

    out = sys.stdout.buffer
    for data in _run(ctx, read_all):
        out.write(data)


# ---------------------------------------------------------------------------
# put
# ---------------------------------------------------------------------------

@main.command()
@_repo_option
@click.argument("source", type=click.Path(exists=True, dir_okay=False, allow_dash=True))
@click.argument("dest")
@click.option("--no-overwrite", is_flag=True, default=False,
              help="Leave an existing file alone instead of updating it.")
@click.option("-m", "--message", default=None, help="Commit message.")
@click.pass_context
def put(ctx, source, dest, no_overwrite, message):
    """Upload a local file to DEST in the repository.

    SOURCE may be '-' to read from stdin.  A DEST ending in '/' keeps the
    local file name.

    \b
    Examples:
        ghfilestore put notes.txt docs/notes.txt
        ghfilestore put notes.txt docs/
        cat report.pdf | ghfilestore put - reports/report.pdf
    """
    raw_dest = _strip_colon(dest)
    if raw_dest.endswith("/") or not raw_dest:
        if source == "-":
            raise click.ClickException("DEST must name a file when reading from stdin")
        directory, name = _normalize_repo_dir(raw_dest), os.path.basename(source)
    else:
        directory, name = _split_repo_path(raw_dest)

    if source == "-":
        data = sys.stdin.buffer.read()
    else:
        with open(source, "rb") as f:
            data = f.read()
    if not data:
        raise click.ClickException(f"Refusing to upload empty file: {source}")

    policy = OverwritePolicy.REJECT if no_overwrite else OverwritePolicy.ALLOW
    outcome = _run(ctx, lambda store: store.upload(data, directory, name, policy, message=message))

    if outcome.status == UploadStatus.SKIPPED_EXISTS:
        click.echo(f"Skipped {outcome.path}: already exists", err=True)
    else:
        _status(ctx, f"{outcome.status.value.capitalize()} {outcome.path} ({outcome.revision[:7]})")


# ---------------------------------------------------------------------------
# rm
# ---------------------------------------------------------------------------

@main.command()
@_repo_option
@click.argument("paths", nargs=-1, required=True)
@click.option("-m", "--message", default=None, help="Commit message.")
@click.pass_context
def rm(ctx, paths, message):
    """Delete files from the repository.  Each file is a separate commit."""
    targets = [_normalize_repo_path(p) for p in paths]

    async def remove_all(store):
        outcomes = []
        for target in targets:
            directory, _, name = target.rpartition("/")
            outcomes.append(await store.delete_file(directory, name, message=message))
        return outcomes

    for outcome in _run(ctx, remove_all):
        _status(ctx, f"Deleted {outcome.path} ({outcome.revision[:7]})")
