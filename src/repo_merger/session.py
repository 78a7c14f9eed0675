"""Interactive merge flow as an explicit state machine.

The session owns no user interface. Every question goes to a `Prompter`,
so the retry and abort decisions can be driven by a console, by command
line flags, or by a test double.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

from repo_merger import git
from repo_merger.branches import discover_branches
from repo_merger.config import DEFAULT_OUTPUT, SCAN_EXCLUDE_DIRS, SELECT_ALL, BranchSet, MergeConfig, MergeOutcome
from repo_merger.exceptions import (
    CloneError,
    CloneFailureKind,
    EmptyResultError,
    FileProcessingError,
    InvalidRepositoryUrlError,
    OutputWriteError,
    RepoMergerError,
    RepositoryUnreachableError,
)
from repo_merger.identity import looks_like_repository_url, resolve_repo_name
from repo_merger.logging import logger
from repo_merger.merger import merge_repository
from repo_merger.tree import scan_extensions

if TYPE_CHECKING:
    from repo_merger.workspace import WorkspaceRegistry


class SessionState(StrEnum):
    AWAITING_URL = "awaiting-url"
    CHECKING_REPO = "checking-repo"
    DISCOVERING_BRANCHES = "discovering-branches"
    SCANNING_EXTENSIONS = "scanning-extensions"
    MERGING = "merging"
    DONE = "done"
    ABORTED = "aborted"


TERMINAL_STATES = frozenset({SessionState.DONE, SessionState.ABORTED})


class Transition(StrEnum):
    URL_ENTERED = "url-entered"
    URL_MISSING = "url-missing"
    URL_ACCEPTED = "url-accepted"
    URL_REJECTED = "url-rejected"
    BRANCH_SELECTED = "branch-selected"
    REPOSITORY_UNREACHABLE = "repository-unreachable"
    EXTENSIONS_SELECTED = "extensions-selected"
    CLONE_FAILED = "clone-failed"
    MERGED = "merged"
    EMPTY_RESULT = "empty-result"
    WRITE_FAILED = "write-failed"
    READ_FAILED = "read-failed"


class Prompter(Protocol):
    """Collaborator answering the questions of a merge session."""

    def ask_url(self) -> str: ...

    def select_branch(self, branches: BranchSet) -> str | None: ...

    def select_extensions(self, available: Sequence[str]) -> Sequence[str]: ...

    def ask_output_path(self, default: str) -> str: ...

    def confirm_retry(self, error: RepoMergerError) -> bool: ...


def resolve_extension_selection(
    available: Sequence[str],
    selection: Sequence[str],
    configured: Iterable[str] | None = None,
) -> list[str] | None:
    """Turn an extension selection into the include filter of a merge.

    Selecting `*ALL*`, or nothing at all, keeps the configured extensions
    when there are some and every available extension otherwise. A
    repository without any extension gets the configured filter, or none.

    Args:
        available (Sequence[str]): extensions found by the scan
        selection (Sequence[str]): what the user picked
        configured (Iterable[str] | None): extensions from the merge config

    Returns:
        list[str] | None: the extensions to include, None for no filter
    """
    fallback = sorted(configured) if configured else None
    if not available:
        return fallback
    chosen = [s for s in selection if s and s.strip()]
    if not chosen or SELECT_ALL in chosen:
        return fallback or list(available)
    return chosen


class MergeSession:
    """Drive one URL from input to merged output.

    Attributes:
        state: Current state.
        history: Every transition taken, as (from, transition, to).
        outcome: The merge result once the session is done.
    """

    def __init__(
        self,
        registry: WorkspaceRegistry,
        prompter: Prompter,
        base_config: MergeConfig | None = None,
    ) -> None:
        self.registry = registry
        self.prompter = prompter
        self.base_config = base_config or MergeConfig()
        self.state = SessionState.AWAITING_URL
        self.history: list[tuple[SessionState, Transition, SessionState]] = []
        self.url = ""
        self.repo_name = ""
        self.branches: BranchSet | None = None
        self.branch: str | None = None
        self.include_extensions: list[str] | None = None
        self.outcome: MergeOutcome | None = None
        self.last_error: RepoMergerError | None = None

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def run(self) -> SessionState:
        """Step until the session is done or aborted."""
        while not self.finished:
            self.step()
        return self.state

    def step(self) -> SessionState:
        """Perform one transition from the current state."""
        handlers = {
            SessionState.AWAITING_URL: self._await_url,
            SessionState.CHECKING_REPO: self._check_repo,
            SessionState.DISCOVERING_BRANCHES: self._discover_branches,
            SessionState.SCANNING_EXTENSIONS: self._scan_extensions,
            SessionState.MERGING: self._merge,
        }
        handler = handlers.get(self.state)
        if handler is None:
            return self.state
        transition, target = handler()
        logger.debug("session_transition", source=str(self.state), transition=str(transition), target=str(target))
        self.history.append((self.state, transition, target))
        self.state = target
        return target

    def _retry_or_abort(self, error: RepoMergerError, retry_state: SessionState) -> SessionState:
        self.last_error = error
        if self.prompter.confirm_retry(error):
            return retry_state
        return SessionState.ABORTED

    def _await_url(self) -> tuple[Transition, SessionState]:
        url = (self.prompter.ask_url() or "").strip()
        if not url:
            return Transition.URL_MISSING, SessionState.ABORTED
        self.url = url
        return Transition.URL_ENTERED, SessionState.CHECKING_REPO

    def _check_repo(self) -> tuple[Transition, SessionState]:
        if not looks_like_repository_url(self.url):
            error = InvalidRepositoryUrlError(url=self.url)
            return Transition.URL_REJECTED, self._retry_or_abort(error, SessionState.AWAITING_URL)
        self.repo_name = resolve_repo_name(self.url)
        return Transition.URL_ACCEPTED, SessionState.DISCOVERING_BRANCHES

    def _discover_branches(self) -> tuple[Transition, SessionState]:
        try:
            with self.registry.workspace("branch") as scratch:
                self.branches = discover_branches(self.url, scratch.path)
        except RepositoryUnreachableError as e:
            return Transition.REPOSITORY_UNREACHABLE, self._retry_or_abort(e, SessionState.AWAITING_URL)
        self.branch = self.prompter.select_branch(self.branches) or None
        return Transition.BRANCH_SELECTED, SessionState.SCANNING_EXTENSIONS

    def _clone_failed(self, error: CloneError) -> tuple[Transition, SessionState]:
        if error.kind is CloneFailureKind.NOT_FOUND:
            return Transition.REPOSITORY_UNREACHABLE, self._retry_or_abort(error, SessionState.AWAITING_URL)
        return Transition.CLONE_FAILED, self._retry_or_abort(error, SessionState.DISCOVERING_BRANCHES)

    def _scan_extensions(self) -> tuple[Transition, SessionState]:
        try:
            with self.registry.workspace("scan") as scan:
                git.clone_repository(self.url, scan.path, branch=self.branch, depth=1)
                available = scan_extensions(scan.path, SCAN_EXCLUDE_DIRS)
        except CloneError as e:
            return self._clone_failed(e)
        logger.info("extensions_scanned", url=self.url, count=len(available))
        selection = self.prompter.select_extensions(available)
        self.include_extensions = resolve_extension_selection(
            available,
            selection,
            self.base_config.include_extensions,
        )
        return Transition.EXTENSIONS_SELECTED, SessionState.MERGING

    def _merge(self) -> tuple[Transition, SessionState]:
        default_output = self.base_config.output_path
        if default_output == DEFAULT_OUTPUT:
            default_output = f"{self.repo_name or resolve_repo_name(self.url)}.txt"
        output_path = (self.prompter.ask_output_path(default_output) or "").strip() or default_output
        config = MergeConfig(
            **{
                **self.base_config.model_dump(),
                "include_extensions": self.include_extensions,
                "output_path": output_path,
                "branch": self.branch,
            },
        )
        try:
            self.outcome = merge_repository(self.url, config, self.registry)
        except EmptyResultError as e:
            return Transition.EMPTY_RESULT, self._retry_or_abort(e, SessionState.SCANNING_EXTENSIONS)
        except CloneError as e:
            return self._clone_failed(e)
        except FileProcessingError as e:
            return Transition.READ_FAILED, self._retry_or_abort(e, SessionState.MERGING)
        except OutputWriteError as e:
            return Transition.WRITE_FAILED, self._retry_or_abort(e, SessionState.MERGING)
        return Transition.MERGED, SessionState.DONE
