from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

from repo_merger.config import NodeKind, TreeNode, file_extension, matches_extension, normalize_extensions
from repo_merger.logging import logger

if TYPE_CHECKING:
    from collections.abc import Callable, Collection, Iterable, Iterator

    ErrorCallback = Callable[[Path, OSError], None]


def list_directory(
    directory: Path,
    exclude_dirs: Collection[str],
    *,
    on_error: ErrorCallback | None = None,
) -> tuple[list[Path], list[Path]]:
    """List a directory split into subdirectories and files, each sorted by name.

    Excluded directory names are dropped. Symlinked directories are neither
    descended nor reported; symlinks to files count as files.

    Args:
        directory (Path): the directory to list
        exclude_dirs (Collection[str]): directory names to skip
        on_error (ErrorCallback | None): called for entries that cannot be
            inspected; when None the error propagates

    Raises:
        OSError: if the directory cannot be read

    Returns:
        tuple[list[Path], list[Path]]: (subdirectories, files)
    """
    dirs: list[Path] = []
    files: list[Path] = []
    with os.scandir(directory) as it:
        for entry in it:
            try:
                if entry.is_dir(follow_symlinks=False):
                    if entry.name not in exclude_dirs:
                        dirs.append(Path(entry.path))
                elif entry.is_file():
                    files.append(Path(entry.path))
            except OSError as e:
                if on_error is None:
                    raise
                on_error(Path(entry.path), e)
    dirs.sort(key=lambda p: p.name)
    files.sort(key=lambda p: p.name)
    return dirs, files


def iter_files(
    root: Path,
    exclude_dirs: Collection[str],
    *,
    on_error: ErrorCallback | None = None,
) -> Iterator[Path]:
    """Yield the files under `root` depth-first.

    In every directory the subdirectories come first, each fully walked, then
    the files; both groups in name order. The walk keeps its own stack so deep
    layouts do not hit the interpreter recursion limit.

    Args:
        root (Path): the directory to walk
        exclude_dirs (Collection[str]): directory names never descended into
        on_error (ErrorCallback | None): called for unreadable entries and
            directories, which are then skipped; when None errors propagate

    Yields:
        Path: absolute file paths
    """
    stack: list[tuple[Path, bool]] = [(Path(root), True)]
    while stack:
        path, is_dir = stack.pop()
        if not is_dir:
            yield path
            continue
        try:
            dirs, files = list_directory(path, exclude_dirs, on_error=on_error)
        except OSError as e:
            if on_error is None:
                raise
            on_error(path, e)
            continue
        stack.extend((f, False) for f in reversed(files))
        stack.extend((d, True) for d in reversed(dirs))


def build_tree(
    root_dir: Path,
    exclude_dirs: Collection[str],
    root_label: str,
    include_extensions: Iterable[str] | None = None,
) -> TreeNode:
    """Build the filtered tree of a checked-out repository.

    Directories are created on demand when a file below them passes the
    extension filter, so directories left empty after filtering never appear.

    Args:
        root_dir (Path): the checkout to describe
        exclude_dirs (Collection[str]): directory names to skip
        root_label (str): name of the root node, usually the repository name
        include_extensions (Iterable[str] | None): extensions to keep, None keeps all

    Returns:
        TreeNode: the root directory node
    """
    wanted = None if include_extensions is None else normalize_extensions(include_extensions)
    root_dir = Path(root_dir)
    root = TreeNode(name=root_label, kind=NodeKind.DIRECTORY)
    nodes: dict[tuple[str, ...], TreeNode] = {(): root}
    for path in iter_files(root_dir, exclude_dirs):
        if not matches_extension(path.name, wanted):
            continue
        parts = path.relative_to(root_dir).parts
        parent = root
        for depth in range(1, len(parts)):
            key = parts[:depth]
            node = nodes.get(key)
            if node is None:
                node = TreeNode(name=parts[depth - 1], kind=NodeKind.DIRECTORY)
                parent.children.append(node)
                nodes[key] = node
            parent = node
        parent.children.append(TreeNode(name=parts[-1], kind=NodeKind.FILE))
    return root


def scan_extensions(root_dir: Path, exclude_dirs: Collection[str]) -> list[str]:
    """Collect the distinct file extensions present under `root_dir`.

    Unreadable entries and directories are skipped; the scan never fails
    because of one of them.

    Args:
        root_dir (Path): the directory to scan
        exclude_dirs (Collection[str]): directory names to skip

    Returns:
        list[str]: sorted lowercase extensions with their leading dot
    """

    def skip(path: Path, error: OSError) -> None:
        logger.debug("scan_skipped", path=str(path), error=str(error))

    extensions: set[str] = set()
    for path in iter_files(Path(root_dir), exclude_dirs, on_error=skip):
        ext = file_extension(path.name)
        if ext:
            extensions.add(ext)
    return sorted(extensions)


def render_tree(node: TreeNode) -> str:
    """Render a tree with box-drawing branches.

    The root is printed as `<name>/`; every descendant gets `├─ ` or, when it
    is the last of its siblings, `└─ `. Children continue the parent's prefix
    with `│  ` or three spaces when the parent was last.

    Args:
        node (TreeNode): the root of the tree

    Returns:
        str: the rendered tree, one entry per line, newline terminated
    """
    lines: list[str] = [f"{node.name}/" if node.is_directory else node.name]
    stack: list[tuple[TreeNode, str, bool]] = []
    stack.extend((child, "", idx == len(node.children) - 1) for idx, child in reversed(list(enumerate(node.children))))
    while stack:
        current, prefix, last = stack.pop()
        branch = "└─ " if last else "├─ "
        lines.append(prefix + branch + current.name)
        if current.children:
            child_prefix = prefix + ("   " if last else "│  ")
            count = len(current.children)
            stack.extend(
                (child, child_prefix, idx == count - 1) for idx, child in reversed(list(enumerate(current.children)))
            )
    return "\n".join(lines) + "\n"
