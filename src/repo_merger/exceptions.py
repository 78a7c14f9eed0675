from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path


@dataclass
class RepoMergerError(Exception):
    """Base exception for errors in the repo_merger package."""

    def __str__(self) -> str:
        return repr(self)


@dataclass
class GitCommandError(RepoMergerError):
    """Raised when a git command fails."""

    command: str
    returncode: int
    stdout: str
    stderr: str

    def __str__(self) -> str:
        return f"`{self.command}` exited with status {self.returncode}: {self.stderr.strip()}"


@dataclass
class RepositoryUnreachableError(RepoMergerError):
    """Raised when the remote repository does not exist or cannot be accessed."""

    url: str
    detail: str = ""
    message: str = "The repository could not be found or is not accessible."

    def __str__(self) -> str:
        return f"{self.message} ({self.url})"


@dataclass
class InvalidRepositoryUrlError(RepoMergerError):
    """Raised when the given URL does not look like a git remote."""

    url: str
    message: str = "The value does not look like a git repository URL."

    def __str__(self) -> str:
        return f"{self.message} ({self.url!r})"


class CloneFailureKind(StrEnum):
    """Cause of a failed `git clone`, classified from its error output."""

    NOT_FOUND = "not-found"
    DESTINATION_EXISTS = "destination-exists"
    BRANCH_MISSING = "branch-missing"
    OTHER = "other"


_CLONE_FAILURE_TEXT = {
    CloneFailureKind.NOT_FOUND: "the repository could not be found or is not accessible",
    CloneFailureKind.DESTINATION_EXISTS: "the clone directory already exists",
    CloneFailureKind.BRANCH_MISSING: "the branch does not exist",
    CloneFailureKind.OTHER: "git reported an error",
}


@dataclass
class CloneError(RepoMergerError):
    """Raised when cloning the repository into a workspace fails."""

    url: str
    kind: CloneFailureKind
    branch: str | None = None
    detail: str = ""

    def __str__(self) -> str:
        target = f"{self.url} (branch: {self.branch})" if self.branch else self.url
        text = f"Cloning {target} failed: {_CLONE_FAILURE_TEXT[self.kind]}."
        return f"{text}\n{self.detail}" if self.detail else text


@dataclass
class EmptyResultError(RepoMergerError):
    """Raised when no file survives filtering; nothing is written."""

    url: str
    message: str = "No files matched the selected filters."

    def __str__(self) -> str:
        return self.message


@dataclass
class FileProcessingError(RepoMergerError):
    """Raised when a file or directory of the checkout cannot be read."""

    path: Path
    detail: str = ""

    def __str__(self) -> str:
        return f"Cannot read {self.path}: {self.detail}"


@dataclass
class OutputWriteError(RepoMergerError):
    """Raised when the merged output cannot be written."""

    path: Path
    detail: str = ""

    def __str__(self) -> str:
        return f"Cannot write {self.path}: {self.detail}"
