"""
repo_merger: merge the files of a git repository into a single text file.

Overview
--------
The tool clones a repository into a temporary workspace, lets you pick a
branch and the file extensions to keep, and writes one text file holding:

- a `// Source:` and `// Merged on:` header,
- a tree of the kept files inside a block comment,
- every kept file, preceded by a `// File: <repo>/<path>` marker.

Temporary clones live under the system temp directory and are removed on
success, on failure and on Ctrl+C.

Usage
-----
Run `repo-merger --help` for all options. Common examples:
    - Interactive:
        uv run repo-merger

    - Non-interactive, TypeScript only, into out.txt:
        uv run repo-merger --url https://github.com/org/project --ext .ts --output out.txt

    - Extra exclusions and a log file:
        uv run repo-merger --url git@github.com:org/project.git --exclude-dir docs --log-file merge.log
"""

from __future__ import annotations

import argparse
import logging
from typing import TYPE_CHECKING

from rich.console import Console
from rich.prompt import Confirm, Prompt

from repo_merger import __version__
from repo_merger.config import SELECT_ALL
from repo_merger.logging import logger, setup_logging
from repo_merger.session import MergeSession, SessionState
from repo_merger.settings import Settings, build_merge_config, env_defaults
from repo_merger.workspace import WorkspaceRegistry

if TYPE_CHECKING:
    from collections.abc import Sequence

    from repo_merger.config import BranchSet
    from repo_merger.exceptions import RepoMergerError


console = Console()


class ConsolePrompter:
    """Ask the session questions on the terminal with rich prompts."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def ask_url(self) -> str:
        return Prompt.ask("Repository URL", default="", show_default=False, console=self.console).strip()

    def select_branch(self, branches: BranchSet) -> str | None:
        self.console.print(f"[bold]Branches[/] ({branches.tier}):")
        self.console.print("  0. Default branch")
        for idx, name in enumerate(branches.names, start=1):
            self.console.print(f"  {idx}. {name}", markup=False)
        numbers = [str(idx) for idx in range(len(branches.names) + 1)]
        answer = Prompt.ask(
            "Select a branch",
            choices=[*numbers, *branches.names],
            default="0",
            show_choices=False,
            console=self.console,
        )
        if answer in numbers:
            idx = int(answer)
            return branches.names[idx - 1] if idx else None
        return answer

    def select_extensions(self, available: Sequence[str]) -> Sequence[str]:
        if not available:
            self.console.print("No file types found in repository, including all files.")
            return []
        self.console.print(f"File types ({len(available)} available): {', '.join(available)}", markup=False)
        answer = Prompt.ask("Extensions to include, comma separated", default="all", console=self.console).strip()
        if answer.lower() in {"", "*", "all", SELECT_ALL.lower()}:
            return [SELECT_ALL]
        return [part.strip() for part in answer.split(",") if part.strip()]

    def ask_output_path(self, default: str) -> str:
        return Prompt.ask("Output file", default=default, console=self.console).strip() or default

    def confirm_retry(self, error: RepoMergerError) -> bool:
        self.console.print(f"Error: {error}", style="red", markup=False)
        return Confirm.ask("Try again?", default=False, console=self.console)


class PresetPrompter:
    """Answer the session questions from command line settings, never retrying."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def ask_url(self) -> str:
        return self.settings.url

    def select_branch(self, branches: BranchSet) -> str | None:
        return self.settings.branch or None

    def select_extensions(self, available: Sequence[str]) -> Sequence[str]:  # noqa: ARG002
        return self.settings.ext

    def ask_output_path(self, default: str) -> str:
        return self.settings.output or default

    def confirm_retry(self, error: RepoMergerError) -> bool:
        logger.error("merge_failed", error=repr(error))
        return False


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    defaults = env_defaults()
    p = argparse.ArgumentParser(
        description="Merge the files of a git repository into a single text file.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument(
        "--url",
        type=str,
        default=defaults.get("url", ""),
        help="Repository URL (prompts when omitted).",
    )
    p.add_argument(
        "--branch",
        type=str,
        default=defaults.get("branch", ""),
        help="Branch to merge (default branch when omitted).",
    )
    p.add_argument(
        "--ext",
        action="append",
        default=[],
        help="Extension to include, e.g. .ts (repeatable, default: all).",
    )
    p.add_argument(
        "--exclude-dir",
        action="append",
        default=[],
        help="Extra directory name to exclude (repeatable).",
    )
    p.add_argument(
        "--exclude-file",
        action="append",
        default=[],
        help="Extra file name to exclude (repeatable).",
    )
    p.add_argument(
        "--output",
        type=str,
        default=defaults.get("output", ""),
        help="Output file (default: <repo>.txt).",
    )
    p.add_argument(
        "--config",
        type=str,
        default=defaults.get("config"),
        help="YAML file with merge options.",
    )
    p.add_argument("--log-file", type=str, default=defaults.get("log_file", ""), help="Log file path.")
    p.add_argument(
        "--temp-root",
        type=str,
        default=defaults.get("temp_root", ""),
        help="Directory for temporary clones.",
    )
    p.add_argument("--verbose", action="store_true", default=defaults.get("verbose", False), help="Debug logging.")
    args = p.parse_args(argv)
    return Settings(**vars(args))


def main(argv: Sequence[str] | None = None) -> int:
    settings = parse_args(argv)
    if settings.log_file or settings.verbose:
        setup_logging(
            settings.log_file or None,
            level=logging.DEBUG if settings.verbose else logging.INFO,
            force=True,
        )

    base_config = build_merge_config(settings)
    registry = WorkspaceRegistry(settings.temp_root or None)
    registry.install_signal_handlers()

    prompter = PresetPrompter(settings) if settings.url else ConsolePrompter(console)
    if not settings.url:
        console.print("[bold]Repository File Merger[/]")
        console.print("Press Ctrl+C at any time to exit safely.\n")

    session = MergeSession(registry, prompter, base_config)
    try:
        state = session.run()
    finally:
        registry.release_all()
        registry.restore_signal_handlers()

    if state is SessionState.DONE and session.outcome is not None:
        outcome = session.outcome
        print(f"Wrote {outcome.output_path} files={outcome.files_merged}")
        return 0
    print("Merge aborted.")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
