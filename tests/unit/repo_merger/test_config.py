from pathlib import Path

import pytest
from pydantic import ValidationError

from repo_merger.config import (
    BranchSet,
    DiscoveryTier,
    MergeConfig,
    MergeOutcome,
    NodeKind,
    TreeNode,
    Workspace,
    default_branch_set,
    file_extension,
    normalize_extensions,
)


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("index.TS", ".ts"),
        ("archive.tar.gz", ".gz"),
        ("Makefile", ""),
        (".bashrc", ""),
    ],
)
def test_file_extension(name: str, expected: str) -> None:
    assert file_extension(name) == expected


def test_normalize_extensions_adds_dot_and_lowercases() -> None:
    assert normalize_extensions(["TS", ".Md", " ", ""]) == frozenset({".ts", ".md"})


def test_merge_config_matches_extensions_case_insensitively() -> None:
    config = MergeConfig(include_extensions=[".ts"])

    assert config.accepts_file("X.TS")
    assert not config.accepts_file("readme.md")


def test_merge_config_excluded_file_names_win_over_extensions() -> None:
    config = MergeConfig(exclude_files={"secrets.env"}, include_extensions=None)

    assert not config.accepts_file("secrets.env")
    assert config.accepts_file("app.env")


def test_merge_config_blank_branch_means_default() -> None:
    assert MergeConfig(branch="  ").branch is None
    assert MergeConfig(branch="dev").branch == "dev"


def test_merge_config_is_frozen() -> None:
    config = MergeConfig()

    with pytest.raises(ValidationError):
        config.output_path = "other.txt"  # type: ignore[misc]


def test_branch_set_dedupes_keeping_order() -> None:
    branches = BranchSet(names=("main", "dev", "main"), tier=DiscoveryTier.REMOTE_HEADS)

    assert branches.names == ("main", "dev")


def test_default_branch_set() -> None:
    branches = default_branch_set()

    assert branches.names == ("main", "master")
    assert branches.tier is DiscoveryTier.DEFAULT_CONSTANTS


def test_tree_node_counts_files() -> None:
    tree = TreeNode(
        name="repo",
        kind=NodeKind.DIRECTORY,
        children=[
            TreeNode(name="src", kind=NodeKind.DIRECTORY, children=[TreeNode(name="a.ts", kind=NodeKind.FILE)]),
            TreeNode(name="b.ts", kind=NodeKind.FILE),
        ],
    )

    assert tree.count_files() == 2
    assert tree.is_directory
    assert not tree.children[1].is_directory


def test_merge_config_output_path_default() -> None:
    assert Path(MergeConfig().output_path).name == "merged-output.txt"


def test_workspace_and_outcome_carry_only_used_fields(tmp_path: Path) -> None:
    workspace = Workspace(path=tmp_path, label="repo")

    assert set(Workspace.model_fields) == {"path", "label"}
    assert workspace.label == "repo"
    assert not MergeOutcome.model_config.get("arbitrary_types_allowed", False)
