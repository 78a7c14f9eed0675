from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import dotenv_values, find_dotenv
from pydantic import BaseModel, ConfigDict, Field

from repo_merger.config import DEFAULT_EXCLUDE_DIRS, DEFAULT_EXCLUDE_FILES, MergeConfig

ENV_FILE = find_dotenv(usecwd=True)
ENV_PREFIX = "REPO_MERGER_"

CONFIG_FILE_KEYS = frozenset({"exclude_dirs", "exclude_files", "include_extensions", "output_path"})


class Settings(BaseModel):
    """Configuration settings for the repo_merger command line."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    url: str = Field(default="", description="Repository URL; prompts when empty.")
    branch: str = Field(default="", description="Branch to merge; default branch when empty.")
    output: str = Field(default="", description="Output file; <repo>.txt when empty.")
    ext: list[str] = Field(default_factory=list, description="Extensions to include.")
    exclude_dir: list[str] = Field(default_factory=list, description="Extra excluded directory names.")
    exclude_file: list[str] = Field(default_factory=list, description="Extra excluded file names.")
    config: Path | None = Field(default=None, description="YAML file with merge options.")
    log_file: str = Field(default="", description="Log file path.")
    temp_root: str = Field(default="", description="Directory holding temporary clones.")
    verbose: bool = Field(default=False, description="Debug logging.")


def env_defaults(env_file: str | None = None) -> dict[str, str]:
    """Collect `REPO_MERGER_*` defaults from a `.env` file and the environment.

    The process environment wins over the `.env` file. Keys are returned
    without the prefix and lowercased (`REPO_MERGER_LOG_FILE` -> `log_file`).

    Args:
        env_file (str | None): explicit `.env` path; the one found from the
            current directory when None

    Returns:
        dict[str, str]: settings field names mapped to their raw values
    """
    path = ENV_FILE if env_file is None else env_file
    values: dict[str, str | None] = dict(dotenv_values(path)) if path else {}
    values.update(os.environ)
    out: dict[str, str] = {}
    for key, value in values.items():
        if not key.startswith(ENV_PREFIX) or value is None:
            continue
        name = key.removeprefix(ENV_PREFIX).lower()
        if name in Settings.model_fields:
            out[name] = value
    return out


def load_config_file(path: Path) -> dict[str, Any]:
    """Load merge options from a YAML file.

    Only `exclude_dirs`, `exclude_files`, `include_extensions` and
    `output_path` are read; other keys are ignored.

    Args:
        path (Path): the YAML file

    Raises:
        ValueError: if the document is not a mapping

    Returns:
        dict[str, Any]: the recognized options
    """
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping of merge options")
    return {k: v for k, v in data.items() if k in CONFIG_FILE_KEYS}


def build_merge_config(settings: Settings) -> MergeConfig:
    """Combine defaults, the optional YAML file and the command line.

    Command line exclusions extend the configured sets; extensions and the
    output path replace them.

    Args:
        settings (Settings): parsed command line settings

    Returns:
        MergeConfig: base options for the merge session
    """
    options: dict[str, Any] = {
        "exclude_dirs": set(DEFAULT_EXCLUDE_DIRS),
        "exclude_files": set(DEFAULT_EXCLUDE_FILES),
    }
    if settings.config:
        options.update(load_config_file(settings.config))
    options["exclude_dirs"] = set(options["exclude_dirs"] or ()) | set(settings.exclude_dir)
    options["exclude_files"] = set(options["exclude_files"] or ()) | set(settings.exclude_file)
    if settings.ext:
        options["include_extensions"] = settings.ext
    if settings.output:
        options["output_path"] = settings.output
    if settings.branch:
        options["branch"] = settings.branch
    return MergeConfig(**options)
