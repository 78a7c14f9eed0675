import subprocess
from pathlib import Path

import pytest
from pytest_mock import MockerFixture

from repo_merger import git
from repo_merger.exceptions import CloneError, CloneFailureKind, GitCommandError


@pytest.mark.parametrize(
    ("stderr", "expected"),
    [
        ("fatal: Remote branch nope not found in upstream origin", CloneFailureKind.BRANCH_MISSING),
        (
            "fatal: destination path 'x' already exists and is not an empty directory.",
            CloneFailureKind.DESTINATION_EXISTS,
        ),
        ("remote: Repository not found.\nfatal: repository 'x' not found", CloneFailureKind.NOT_FOUND),
        ("fatal: Could not read from remote repository.", CloneFailureKind.NOT_FOUND),
        ("fatal: early EOF", CloneFailureKind.OTHER),
    ],
)
def test_classify_clone_failure(stderr: str, expected: CloneFailureKind) -> None:
    assert git.classify_clone_failure(stderr) is expected


def test_indicates_missing_repository() -> None:
    assert git.indicates_missing_repository("ERROR: Repository does not exist")
    assert not git.indicates_missing_repository("fatal: unable to access: SSL certificate problem")


def test_run_git_returns_stdout_and_disables_prompts(mocker: MockerFixture) -> None:
    run = mocker.patch(
        "repo_merger.git.subprocess.run",
        return_value=subprocess.CompletedProcess(["git"], 0, stdout="ok\n", stderr=""),
    )

    assert git.run_git(["status"], cwd=Path("/tmp")) == "ok\n"

    args, kwargs = run.call_args
    assert args[0] == ["git", "status"]
    assert kwargs["cwd"] == "/tmp"
    assert kwargs["env"]["GIT_TERMINAL_PROMPT"] == "0"


def test_run_git_wraps_failures(mocker: MockerFixture) -> None:
    mocker.patch(
        "repo_merger.git.subprocess.run",
        side_effect=subprocess.CalledProcessError(128, ["git", "ls-remote"], output="", stderr="boom"),
    )

    with pytest.raises(GitCommandError) as exc_info:
        git.run_git(["ls-remote"])

    assert exc_info.value.returncode == 128
    assert exc_info.value.stderr == "boom"
    assert exc_info.value.command == "git ls-remote"


def test_run_git_reports_missing_binary(mocker: MockerFixture) -> None:
    mocker.patch("repo_merger.git.subprocess.run", side_effect=FileNotFoundError("git"))

    with pytest.raises(GitCommandError) as exc_info:
        git.run_git(["--version"])

    assert exc_info.value.returncode == 127


def test_clone_repository_builds_arguments(mocker: MockerFixture, tmp_path: Path) -> None:
    run_git = mocker.patch.object(git, "run_git", return_value="")

    git.clone_repository("https://example.org/acme/project.git", tmp_path, branch="dev", depth=1)

    run_git.assert_called_once_with(
        ["clone", "--branch", "dev", "--depth=1", "https://example.org/acme/project.git", str(tmp_path)],
    )


def test_clone_repository_classifies_failure(mocker: MockerFixture, tmp_path: Path) -> None:
    mocker.patch.object(
        git,
        "run_git",
        side_effect=GitCommandError(
            command="git clone",
            returncode=128,
            stdout="",
            stderr="fatal: Remote branch nope not found in upstream origin\n",
        ),
    )

    with pytest.raises(CloneError) as exc_info:
        git.clone_repository("https://example.org/acme/project.git", tmp_path, branch="nope")

    assert exc_info.value.kind is CloneFailureKind.BRANCH_MISSING
    assert exc_info.value.branch == "nope"
    assert "Remote branch nope" in exc_info.value.detail
