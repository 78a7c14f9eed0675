"""Branch discovery with a tiered fallback.

The tiers run in order until one of them settles the answer:

1. `remote-heads`: `git ls-remote --heads` against the URL.
2. `bare-clone-fallback`: a bare clone into a scratch directory, then the
   branches it knows about.
3. `default-constants`: `main` and `master`.

A failing `ls-remote` either stops everything (the repository does not
exist, guessing branch names would be wrong) or jumps straight to the
defaults for any other error.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum, auto
from typing import TYPE_CHECKING

from repo_merger import git
from repo_merger.config import BranchSet, DiscoveryTier, default_branch_set
from repo_merger.exceptions import GitCommandError, RepositoryUnreachableError
from repo_merger.logging import logger

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from pathlib import Path

    Strategy = Callable[[str, Path], "StrategyResult"]

_HEAD_REF_RE = re.compile(r"refs/heads/(.+)$")


class StrategyOutcome(StrEnum):
    SUCCESS = auto()
    TRY_NEXT = auto()
    FAIL = auto()


@dataclass(frozen=True)
class StrategyResult:
    """Tagged result of one discovery tier."""

    outcome: StrategyOutcome
    branches: BranchSet | None = None
    error: RepositoryUnreachableError | None = None

    @classmethod
    def success(cls, branches: BranchSet) -> StrategyResult:
        return cls(StrategyOutcome.SUCCESS, branches=branches)

    @classmethod
    def try_next(cls) -> StrategyResult:
        return cls(StrategyOutcome.TRY_NEXT)

    @classmethod
    def fail(cls, error: RepositoryUnreachableError) -> StrategyResult:
        return cls(StrategyOutcome.FAIL, error=error)


def parse_remote_heads(output: str) -> list[str]:
    """Extract branch names from `git ls-remote --heads` output.

    Args:
        output (str): lines of `<sha>\\trefs/heads/<name>`

    Returns:
        list[str]: distinct branch names, sorted
    """
    names: set[str] = set()
    for line in output.splitlines():
        match = _HEAD_REF_RE.search(line.strip())
        if match:
            names.add(match.group(1))
    return sorted(names)


def parse_branch_listing(output: str) -> list[str]:
    """Extract branch names from `git branch` output of a bare clone.

    Current-branch markers and the `remotes/` and `origin/` prefixes are
    stripped; `HEAD` and symbolic entries such as `origin/HEAD -> origin/dev`
    are dropped.

    Args:
        output (str): one branch per line

    Returns:
        list[str]: distinct branch names, sorted
    """
    names: set[str] = set()
    for line in output.splitlines():
        name = line.strip()
        if name[:2] in {"* ", "+ "}:
            name = name[2:].strip()
        if not name or "->" in name:
            continue
        name = name.removeprefix("remotes/").removeprefix("origin/")
        if name and name != "HEAD":
            names.add(name)
    return sorted(names)


def remote_heads(url: str, scratch_dir: Path) -> StrategyResult:  # noqa: ARG001
    """Tier 1: ask the remote for its heads."""
    try:
        output = git.ls_remote_heads(url)
    except GitCommandError as e:
        if git.indicates_missing_repository(e.stderr):
            logger.error("repository_unreachable", url=url, stderr=e.stderr.strip())
            return StrategyResult.fail(RepositoryUnreachableError(url=url, detail=e.stderr.strip()))
        logger.warning("branch_discovery_degraded", url=url, stderr=e.stderr.strip(), fallback="default-constants")
        return StrategyResult.success(default_branch_set())

    names = parse_remote_heads(output)
    if not names:
        logger.warning("no_remote_heads", url=url)
        return StrategyResult.try_next()
    return StrategyResult.success(BranchSet(names=tuple(names), tier=DiscoveryTier.REMOTE_HEADS))


def bare_clone_fallback(url: str, scratch_dir: Path) -> StrategyResult:
    """Tier 2: clone bare into the scratch directory and list its branches."""
    try:
        git.clone_bare(url, scratch_dir)
        output = git.list_branches(scratch_dir)
    except GitCommandError as e:
        logger.warning("bare_clone_fallback_failed", url=url, stderr=e.stderr.strip())
        return StrategyResult.try_next()

    names = parse_branch_listing(output)
    if not names:
        logger.warning("no_branches_in_bare_clone", url=url)
        return StrategyResult.try_next()
    return StrategyResult.success(BranchSet(names=tuple(names), tier=DiscoveryTier.BARE_CLONE_FALLBACK))


def default_constants(url: str, scratch_dir: Path) -> StrategyResult:  # noqa: ARG001
    """Tier 3: fall back to the usual default branch names."""
    return StrategyResult.success(default_branch_set())


DEFAULT_STRATEGIES: tuple[Strategy, ...] = (remote_heads, bare_clone_fallback, default_constants)


def discover_branches(
    url: str,
    scratch_dir: Path,
    strategies: Sequence[Strategy] = DEFAULT_STRATEGIES,
) -> BranchSet:
    """Discover the branches of a remote repository.

    Args:
        url (str): the repository URL
        scratch_dir (Path): empty directory the bare-clone tier may clone into
        strategies (Sequence[Strategy]): the tiers, tried in order

    Raises:
        RepositoryUnreachableError: if a tier reports the repository missing

    Returns:
        BranchSet: the branches and the tier that found them
    """
    for strategy in strategies:
        result = strategy(url, scratch_dir)
        if result.outcome is StrategyOutcome.SUCCESS and result.branches is not None:
            logger.info("branches_discovered", url=url, tier=str(result.branches.tier), count=len(result.branches.names))
            return result.branches
        if result.outcome is StrategyOutcome.FAIL and result.error is not None:
            raise result.error
    return default_branch_set()
