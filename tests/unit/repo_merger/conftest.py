from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from pathlib import Path


def write_layout(root: Path, layout: Mapping[str, str]) -> None:
    """Create files (and their parent directories) below `root`."""
    for rel, content in layout.items():
        target = root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")


@pytest.fixture
def fake_clone() -> Callable[[Mapping[str, str]], Callable[..., None]]:
    """Build a stand-in for `git.clone_repository` that writes a fixed layout."""

    def factory(layout: Mapping[str, str]) -> Callable[..., None]:
        def clone(url: str, dest: Path, *, branch: str | None = None, depth: int | None = None) -> None:  # noqa: ARG001
            write_layout(dest, layout)

        return clone

    return factory


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        if "unit" in item.path.parts:
            item.add_marker(pytest.mark.unit)
