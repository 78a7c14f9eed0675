from __future__ import annotations

import re
from pathlib import Path

from repo_merger.config import FALLBACK_REPO_NAME

_REPO_NAME_RE = re.compile(r"/([^/]+?)(\.git)?$")

_REMOTE_URL_RE = re.compile(
    r"^(?:(?:https?|ssh|git|file)://\S+|[\w.-]+@[\w.-]+:\S+)$",
    re.IGNORECASE,
)


def resolve_repo_name(url: str) -> str:
    """Derive a short repository name from its URL.

    Takes the last path segment and strips a trailing `.git`. URLs without a
    final segment (no slash, or a trailing slash) map to "repository".

    Args:
        url (str): the repository URL

    Returns:
        str: the repository name used for the tree root and file markers
    """
    match = _REPO_NAME_RE.search(url.strip())
    return match.group(1) if match else FALLBACK_REPO_NAME


def looks_like_repository_url(url: str) -> bool:
    """Check that a value can be handed to `git clone`.

    Accepts http(s), ssh, git and file URLs, scp-like `user@host:path`
    remotes and existing local directories.
    """
    value = url.strip()
    if not value:
        return False
    if _REMOTE_URL_RE.match(value):
        return True
    return Path(value).expanduser().is_dir()
