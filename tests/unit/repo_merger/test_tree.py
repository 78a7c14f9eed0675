import os
from pathlib import Path

import pytest
from conftest import write_layout
from pytest_mock import MockerFixture

from repo_merger.config import SCAN_EXCLUDE_DIRS, NodeKind, TreeNode
from repo_merger.tree import build_tree, iter_files, render_tree, scan_extensions


def _directories(node: TreeNode) -> list[TreeNode]:
    found: list[TreeNode] = []
    stack = [node]
    while stack:
        current = stack.pop()
        if current.is_directory:
            found.append(current)
        stack.extend(current.children)
    return found


def test_build_tree_orders_directories_before_files(tmp_path: Path) -> None:
    write_layout(
        tmp_path,
        {"b.txt": "", "A.txt": "", "src/z.py": "", "lib/a.py": "", "Zeta/x.md": ""},
    )

    tree = build_tree(tmp_path, set(), "repo")

    assert tree.name == "repo"
    assert [c.name for c in tree.children] == ["Zeta", "lib", "src", "A.txt", "b.txt"]


def test_build_tree_prunes_directories_without_matching_files(tmp_path: Path) -> None:
    write_layout(tmp_path, {"docs/readme.md": "", "a/b/c/notes.md": "", "src/main.ts": ""})
    (tmp_path / "empty").mkdir()

    tree = build_tree(tmp_path, set(), "repo", include_extensions=[".ts"])

    assert [c.name for c in tree.children] == ["src"]
    assert all(d.children for d in _directories(tree))


def test_build_tree_matches_extensions_case_insensitively(tmp_path: Path) -> None:
    write_layout(tmp_path, {"X.TS": "", "y.md": ""})

    tree = build_tree(tmp_path, set(), "repo", include_extensions=["ts"])

    assert [c.name for c in tree.children] == ["X.TS"]


def test_build_tree_skips_excluded_directories(tmp_path: Path) -> None:
    write_layout(tmp_path, {"node_modules/dep/index.ts": "", "index.ts": ""})

    tree = build_tree(tmp_path, {"node_modules"}, "repo")

    assert [c.name for c in tree.children] == ["index.ts"]


def test_build_tree_handles_deep_layouts(tmp_path: Path) -> None:
    deep = Path(*(["d"] * 150))
    write_layout(tmp_path, {str(deep / "leaf.txt"): "x"})

    tree = build_tree(tmp_path, set(), "repo")

    assert tree.count_files() == 1
    assert render_tree(tree).rstrip("\n").endswith("└─ leaf.txt")


def test_iter_files_walks_subdirectories_first(tmp_path: Path) -> None:
    write_layout(tmp_path, {"b.txt": "", "a/z.txt": "", "a/y/x.txt": "", "A.txt": ""})

    rel = [p.relative_to(tmp_path).as_posix() for p in iter_files(tmp_path, set())]

    assert rel == ["a/y/x.txt", "a/z.txt", "A.txt", "b.txt"]


def test_iter_files_propagates_unreadable_directories(tmp_path: Path, mocker: MockerFixture) -> None:
    write_layout(tmp_path, {"locked/a.ts": "", "b.md": ""})
    real_scandir = os.scandir

    def flaky_scandir(path: str | os.PathLike[str]) -> object:
        if Path(path).name == "locked":
            raise PermissionError(13, "Permission denied", str(path))
        return real_scandir(path)

    mocker.patch("repo_merger.tree.os.scandir", side_effect=flaky_scandir)

    with pytest.raises(PermissionError):
        list(iter_files(tmp_path, set()))


def test_scan_extensions_collects_sorted_lowercase(tmp_path: Path) -> None:
    write_layout(
        tmp_path,
        {"a.TS": "", "b.md": "", "Makefile": "", ".bashrc": "", "node_modules/c.js": "", "src/d.ts": ""},
    )

    assert scan_extensions(tmp_path, SCAN_EXCLUDE_DIRS) == [".md", ".ts"]


def test_scan_extensions_skips_unreadable_directories(tmp_path: Path, mocker: MockerFixture) -> None:
    write_layout(tmp_path, {"locked/a.ts": "", "b.md": ""})
    real_scandir = os.scandir

    def flaky_scandir(path: str | os.PathLike[str]) -> object:
        if Path(path).name == "locked":
            raise PermissionError(13, "Permission denied", str(path))
        return real_scandir(path)

    mocker.patch("repo_merger.tree.os.scandir", side_effect=flaky_scandir)

    assert scan_extensions(tmp_path, SCAN_EXCLUDE_DIRS) == [".md"]


def test_render_tree() -> None:
    tree = TreeNode(
        name="repo",
        kind=NodeKind.DIRECTORY,
        children=[
            TreeNode(
                name="src",
                kind=NodeKind.DIRECTORY,
                children=[
                    TreeNode(
                        name="lib",
                        kind=NodeKind.DIRECTORY,
                        children=[TreeNode(name="util.ts", kind=NodeKind.FILE)],
                    ),
                    TreeNode(name="a.ts", kind=NodeKind.FILE),
                ],
            ),
            TreeNode(name="README.md", kind=NodeKind.FILE),
        ],
    )

    assert render_tree(tree) == (
        "repo/\n"
        "├─ src\n"
        "│  ├─ lib\n"
        "│  │  └─ util.ts\n"
        "│  └─ a.ts\n"
        "└─ README.md\n"
    )


def test_render_tree_of_empty_root() -> None:
    assert render_tree(TreeNode(name="repo", kind=NodeKind.DIRECTORY)) == "repo/\n"
