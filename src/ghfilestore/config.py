"""Configuration defaults and access-token resolution."""

from __future__ import annotations

import os
import subprocess

ENV_REPO = "GHFILESTORE_REPO"
ENV_BRANCH = "GHFILESTORE_BRANCH"
ENV_API_URL = "GHFILESTORE_API_URL"
TOKEN_ENV_VARS = ("GITHUB_TOKEN", "GH_TOKEN")


def _git_credential_fill(host: str) -> str | None:
    """Ask the configured git credential helper for a password for *host*."""
    try:
        proc = subprocess.run(
            ["git", "credential", "fill"],
            input=f"protocol=https\nhost={host}\n\n",
            capture_output=True, text=True, timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    if proc.returncode != 0:
        return None
    creds = {}
    for line in proc.stdout.strip().splitlines():
        if "=" in line:
            k, _, v = line.partition("=")
            creds[k] = v
    return creds.get("password") or None


def _gh_auth_token(host: str) -> str | None:
    """Return ``gh auth token`` for *host*, if the GitHub CLI is logged in."""
    try:
        proc = subprocess.run(
            ["gh", "auth", "token", "--hostname", host],
            capture_output=True, text=True, timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    token = proc.stdout.strip()
    if proc.returncode == 0 and token:
        return token
    return None


def resolve_token(host: str = "github.com") -> str | None:
    """Find an access token for *host*.

    Checks ``GITHUB_TOKEN`` and ``GH_TOKEN`` first, then ``git credential
    fill`` (works with any configured helper: osxkeychain, wincred,
    libsecret, ``gh auth setup-git``, etc.), then ``gh auth token``.
    Returns ``None`` when nothing is found.
    """
    for var in TOKEN_ENV_VARS:
        token = os.environ.get(var)
        if token:
            return token
    return _git_credential_fill(host) or _gh_auth_token(host)
