"""Thin wrappers around the `git` binary.

Every call goes through `run_git`, which turns a failed invocation into a
`GitCommandError` carrying the captured output. The helpers below classify
that output by substring, which is all git offers to tell a missing
repository from a missing branch.
"""

from __future__ import annotations

import os
import subprocess  # noqa: S404
from typing import TYPE_CHECKING

from repo_merger.exceptions import CloneError, CloneFailureKind, GitCommandError
from repo_merger.logging import logger

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

GIT_EXECUTABLE = "git"

NOT_FOUND_MARKERS = (
    "repository not found",
    "not found",
    "does not exist",
    "does not appear to be a git repository",
    "could not read from remote repository",
    "could not resolve host",
    "could not read username",
    "authentication failed",
    "access denied",
    "permission denied",
)

DESTINATION_EXISTS_MARKERS = ("already exists and is not an empty directory",)


def _git_env() -> dict[str, str]:
    env = dict(os.environ)
    # credential prompts would block forever behind captured pipes
    env["GIT_TERMINAL_PROMPT"] = "0"
    return env


def run_git(args: Sequence[str], *, cwd: Path | None = None) -> str:
    """Run a git command and return its standard output.

    Args:
        args (Sequence[str]): git arguments, without the leading `git`
        cwd (Path | None): working directory, defaults to the current one

    Raises:
        GitCommandError: if git exits with a non-zero status or cannot be started

    Returns:
        str: the captured standard output
    """
    command = [GIT_EXECUTABLE, *args]
    printable = " ".join(command)
    logger.debug("git_command", command=printable, cwd=str(cwd) if cwd else None)
    try:
        out = subprocess.run(  # noqa: S603
            command,
            cwd=str(cwd) if cwd else None,
            text=True,
            capture_output=True,
            check=True,
            env=_git_env(),
        )
    except subprocess.CalledProcessError as e:
        raise GitCommandError(
            command=printable,
            returncode=e.returncode,
            stdout=e.stdout or "",
            stderr=e.stderr or "",
        ) from e
    except OSError as e:
        raise GitCommandError(command=printable, returncode=127, stdout="", stderr=str(e)) from e
    return out.stdout


def indicates_missing_repository(message: str) -> bool:
    """Check whether git error output says the repository is missing or inaccessible."""
    low = message.lower()
    return any(marker in low for marker in NOT_FOUND_MARKERS)


def classify_clone_failure(message: str) -> CloneFailureKind:
    """Classify the error output of a failed `git clone`.

    The branch check comes first: git reports a missing branch as
    "Remote branch X not found in upstream origin", which also contains the
    generic not-found marker.

    Args:
        message (str): the stderr of the failed clone

    Returns:
        CloneFailureKind: the failure cause
    """
    low = message.lower()
    if "remote branch" in low and "not found" in low:
        return CloneFailureKind.BRANCH_MISSING
    if any(marker in low for marker in DESTINATION_EXISTS_MARKERS):
        return CloneFailureKind.DESTINATION_EXISTS
    if indicates_missing_repository(low):
        return CloneFailureKind.NOT_FOUND
    return CloneFailureKind.OTHER


def ls_remote_heads(url: str) -> str:
    """List the branch heads of a remote (`git ls-remote --heads`)."""
    return run_git(["ls-remote", "--heads", url])


def clone_bare(url: str, dest: Path) -> None:
    """Clone a repository without a working tree into `dest`."""
    run_git(["clone", "--bare", url, str(dest)])


def list_branches(repo_dir: Path) -> str:
    """List all branches known to a (bare) clone (`git branch -a`)."""
    return run_git(["branch", "-a"], cwd=repo_dir)


def clone_repository(
    url: str,
    dest: Path,
    *,
    branch: str | None = None,
    depth: int | None = None,
) -> None:
    """Clone a repository into `dest`, optionally at a branch and shallow.

    Args:
        url (str): the repository URL
        dest (Path): the target directory; it must be absent or empty
        branch (str | None): branch to check out, None for the remote default
        depth (int | None): history depth for a shallow clone

    Raises:
        CloneError: with the classified cause when git fails
    """
    args = ["clone"]
    if branch:
        args.extend(["--branch", branch])
    if depth:
        args.append(f"--depth={depth}")
    args.extend([url, str(dest)])
    try:
        run_git(args)
    except GitCommandError as e:
        kind = classify_clone_failure(e.stderr)
        logger.warning("clone_failed", url=url, branch=branch, kind=str(kind), stderr=e.stderr.strip())
        raise CloneError(url=url, kind=kind, branch=branch, detail=e.stderr.strip()) from e
    logger.info("cloned", url=url, branch=branch, dest=str(dest), depth=depth)
