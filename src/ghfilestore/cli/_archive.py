"""Archive command: zip."""

from __future__ import annotations

import os
import sys

import click

from ..archive import ARCHIVE_FILENAME
from ._helpers import (
    main,
    _repo_option,
    _normalize_repo_dir,
    _status,
    _run,
)


@main.command("zip")
@_repo_option
@click.argument("output")
@click.option("--path", "-p", "src", default="", help="Repository directory to archive (default: root).")
@click.option("--keep-paths", is_flag=True, default=False,
              help="Name entries by path relative to --path instead of by file name.")
@click.pass_context
def zip_cmd(ctx, output, src, keep_paths):
    """Download every file under --path into a zip archive at OUTPUT.

    OUTPUT may be '-' for stdout.  If OUTPUT is an existing directory the
    archive is written to OUTPUT/output.zip.

    \b
    Examples:
        ghfilestore zip docs.zip --path docs
        ghfilestore zip backups/ --path docs
        ghfilestore zip - --path docs > docs.zip
    """
    directory = _normalize_repo_dir(src)

    if output == "-":
        sink = sys.stdout.buffer
        label = "stdout"
    else:
        if os.path.isdir(output):
            output = os.path.join(output, ARCHIVE_FILENAME)
        sink = label = output

    result = _run(ctx, lambda store: store.download_archive(directory, sink, keep_paths=keep_paths))
    _status(ctx, f"Wrote {result.count} file(s) to {label}")
