from __future__ import annotations

import io
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from repo_merger import git
from repo_merger.config import MergeConfig, MergeOutcome
from repo_merger.exceptions import EmptyResultError, FileProcessingError, OutputWriteError
from repo_merger.identity import resolve_repo_name
from repo_merger.logging import logger
from repo_merger.tree import build_tree, iter_files, render_tree

if TYPE_CHECKING:
    from repo_merger.config import TreeNode
    from repo_merger.workspace import WorkspaceRegistry


def now_iso() -> str:
    """Return the current date and time in ISO 8601 format with timezone.

    Returns:
        str: the current date and time in ISO 8601 format with timezone
    """
    return datetime.now(UTC).astimezone().isoformat(timespec="seconds")


def build_header(url: str, branch: str | None, tree_text: str, *, merged_at: str | None = None) -> str:
    """Build the header of the merged output.

    Args:
        url (str): the repository URL, written verbatim
        branch (str | None): the merged branch, omitted when None
        tree_text (str): the rendered tree
        merged_at (str | None): timestamp override, defaults to now

    Returns:
        str: source and timestamp comments followed by the tree in a block comment
    """
    out = io.StringIO()
    out.write(f"// Source: {url}")
    if branch:
        out.write(f" (branch: {branch})")
    out.write("\n")
    out.write(f"// Merged on: {merged_at or now_iso()}\n\n")
    out.write("/*\n")
    out.write(tree_text)
    out.write("*/\n\n")
    return out.getvalue()


def read_raw(path: Path) -> str:
    """Read a file as UTF-8 text without newline translation."""
    with path.open(encoding="utf-8", errors="replace", newline="") as fh:
        return fh.read()


def merge_files(checkout: Path, repo_name: str, config: MergeConfig, out: io.StringIO) -> int:
    """Append every qualifying file of a checkout to `out`.

    Each file becomes a `// File: <repo_name>/<path>` marker line followed by
    its raw content, line endings untouched. Files are visited in the same
    order as the tree.

    Args:
        checkout (Path): the cloned working tree
        repo_name (str): replaces the checkout directory in the markers
        config (MergeConfig): exclusion and extension filters
        out (io.StringIO): buffer receiving the file blocks

    Raises:
        FileProcessingError: if a directory or file cannot be read

    Returns:
        int: number of files written
    """
    count = 0
    try:
        for path in iter_files(checkout, config.exclude_dirs):
            if not config.accepts_file(path.name):
                continue
            rel = path.relative_to(checkout).as_posix()
            content = read_raw(path)
            out.write(f"\n// File: {repo_name}/{rel}\n")
            out.write(f"{content}\n")
            count += 1
    except OSError as e:
        raise FileProcessingError(path=Path(e.filename or checkout), detail=str(e)) from e
    return count


def write_output(path: Path, content: str) -> None:
    """Write the merged text, replacing any existing file.

    Raises:
        OutputWriteError: if the file cannot be written
    """
    try:
        path.write_text(content, encoding="utf-8", newline="")
    except OSError as e:
        raise OutputWriteError(path=path, detail=str(e)) from e


def merge_repository(url: str, config: MergeConfig, registry: WorkspaceRegistry) -> MergeOutcome:
    """Clone a repository and merge its qualifying files into one text file.

    The clone lives in a fresh workspace that is released whatever happens.
    Nothing is written when no file survives the tree filters.

    Args:
        url (str): the repository URL
        config (MergeConfig): filters, output path and branch
        registry (WorkspaceRegistry): owner of the temporary clone

    Raises:
        CloneError: if the clone fails
        EmptyResultError: if the filtered tree is empty
        FileProcessingError: if the checkout cannot be read
        OutputWriteError: if the output cannot be written

    Returns:
        MergeOutcome: what was written where
    """
    repo_name = resolve_repo_name(url)
    output_path = Path(config.output_path)
    with registry.workspace("repo") as ws:
        git.clone_repository(url, ws.path, branch=config.branch)

        try:
            tree: TreeNode = build_tree(ws.path, config.exclude_dirs, repo_name, config.include_extensions)
        except OSError as e:
            raise FileProcessingError(path=Path(e.filename or ws.path), detail=str(e)) from e
        if not tree.children:
            logger.warning("empty_result", url=url, branch=config.branch)
            raise EmptyResultError(url=url)

        tree_text = render_tree(tree)
        out = io.StringIO()
        out.write(build_header(url, config.branch, tree_text))
        files_merged = merge_files(ws.path, repo_name, config, out)
        write_output(output_path, out.getvalue())

    logger.info("merged", url=url, branch=config.branch, output=str(output_path), files=files_merged)
    return MergeOutcome(
        url=url,
        branch=config.branch,
        output_path=output_path,
        files_merged=files_merged,
        tree=tree,
        tree_text=tree_text,
    )
