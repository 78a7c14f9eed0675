from __future__ import annotations

import os
from collections.abc import Iterable
from enum import StrEnum, auto
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

TEMP_ROOT_NAME = "repo-merger"
DEFAULT_OUTPUT = "merged-output.txt"
FALLBACK_REPO_NAME = "repository"
SELECT_ALL = "*ALL*"

DEFAULT_EXCLUDE_DIRS = frozenset({
    "node_modules",
    ".git",
    "dist",
    "build",
    ".github",
    ".vscode",
})

DEFAULT_EXCLUDE_FILES = frozenset({
    ".env",
    ".gitignore",
    "package-lock.json",
    "yarn.lock",
    ".DS_Store",
})

# the extension scan runs on a shallow clone and only skips the heavy directories
SCAN_EXCLUDE_DIRS = frozenset({"node_modules", ".git", "dist", "build"})

DEFAULT_BRANCHES: tuple[str, ...] = ("main", "master")


def file_extension(name: str) -> str:
    """Return the lowercase extension of a file name, leading dot included.

    Dotfiles without a further dot (`.bashrc`) have no extension.

    Args:
        name (str): the file name (not a path)

    Returns:
        str: the extension such as ".ts", or "" when there is none
    """
    return os.path.splitext(name)[1].lower()


def normalize_extensions(extensions: Iterable[str]) -> frozenset[str]:
    """Normalize user supplied extensions to lowercase with a leading dot.

    Args:
        extensions (Iterable[str]): values such as "ts", ".TS" or " .md "

    Returns:
        frozenset[str]: normalized extensions, blanks dropped
    """
    out: set[str] = set()
    for ext in extensions:
        e = (ext or "").strip().lower()
        if not e:
            continue
        out.add(e if e.startswith(".") else f".{e}")
    return frozenset(out)


def matches_extension(name: str, include_extensions: frozenset[str] | None) -> bool:
    """Check a file name against an optional extension whitelist (None means all)."""
    return include_extensions is None or file_extension(name) in include_extensions


class NodeKind(StrEnum):
    """Kind of a node in a rendered repository tree."""

    FILE = auto()
    DIRECTORY = auto()


class TreeNode(BaseModel):
    """A file or directory of the filtered repository tree.

    Attributes:
        name: Entry name (the repository name for the root).
        kind: File or directory.
        children: Ordered children of a directory: directories first, then
            files, each group sorted by name. Always empty for files.
    """

    name: str = Field(..., description="Entry name")
    kind: NodeKind = Field(..., description="File or directory")
    children: list[TreeNode] = Field(default_factory=list, description="Ordered children")

    @property
    def is_directory(self) -> bool:
        return self.kind is NodeKind.DIRECTORY

    def count_files(self) -> int:
        """Count the file leaves below this node."""
        total = 0
        stack = [self]
        while stack:
            node = stack.pop()
            if node.kind is NodeKind.FILE:
                total += 1
            stack.extend(node.children)
        return total


TreeNode.model_rebuild()


class DiscoveryTier(StrEnum):
    """Strategy of the branch discovery chain that produced a branch list."""

    REMOTE_HEADS = "remote-heads"
    BARE_CLONE_FALLBACK = "bare-clone-fallback"
    DEFAULT_CONSTANTS = "default-constants"


class BranchSet(BaseModel):
    """Ordered, deduplicated branch names tagged with their discovery tier."""

    model_config = ConfigDict(frozen=True)

    names: tuple[str, ...] = Field(..., description="Branch names in display order")
    tier: DiscoveryTier = Field(..., description="Tier that produced the names")

    @field_validator("names")
    @classmethod
    def _dedupe(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(dict.fromkeys(value))


def default_branch_set() -> BranchSet:
    """Return the literal fallback branches."""
    return BranchSet(names=DEFAULT_BRANCHES, tier=DiscoveryTier.DEFAULT_CONSTANTS)


class Workspace(BaseModel):
    """A process-owned temporary directory holding one cloned repository."""

    model_config = ConfigDict(frozen=True)

    path: Path = Field(..., description="Absolute directory path")
    label: str = Field(..., description="Purpose prefix (repo, branch, scan)")


class MergeConfig(BaseModel):
    """Options of a single merge operation.

    Attributes:
        exclude_dirs: Directory names never descended into.
        exclude_files: File names never merged, whatever their extension.
        include_extensions: Lowercase extensions (leading dot) to keep; None keeps all.
        output_path: Destination of the merged text, overwritten if present.
        branch: Branch to clone; None clones the remote default branch.
    """

    model_config = ConfigDict(frozen=True)

    exclude_dirs: frozenset[str] = Field(default=DEFAULT_EXCLUDE_DIRS, description="Excluded directory names")
    exclude_files: frozenset[str] = Field(default=DEFAULT_EXCLUDE_FILES, description="Excluded file names")
    include_extensions: frozenset[str] | None = Field(default=None, description="Extension whitelist")
    output_path: str = Field(default=DEFAULT_OUTPUT, description="Output file path")
    branch: str | None = Field(default=None, description="Branch to merge")

    @field_validator("include_extensions", mode="before")
    @classmethod
    def _normalize_extensions(cls, value: Iterable[str] | None) -> frozenset[str] | None:
        if value is None:
            return None
        return normalize_extensions(value)

    @field_validator("branch", mode="before")
    @classmethod
    def _blank_branch_is_default(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return str(value).strip() or None

    def accepts_file(self, name: str) -> bool:
        """Check whether a file qualifies for merging (name and extension)."""
        return name not in self.exclude_files and matches_extension(name, self.include_extensions)


class MergeOutcome(BaseModel):
    """Result of a successful merge."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(..., description="Merged repository URL")
    branch: str | None = Field(default=None, description="Merged branch")
    output_path: Path = Field(..., description="Written file")
    files_merged: int = Field(..., ge=0, description="Number of file blocks written")
    tree: TreeNode = Field(..., description="Filtered tree")
    tree_text: str = Field(..., description="Rendered tree embedded in the header")
