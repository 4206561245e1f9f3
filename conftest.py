from pathlib import Path
from typing import Any


def pytest_ignore_collect(collection_path: Path, config: Any) -> bool:  # noqa: D401
    """Skip simulation output trees and paths that cannot be stat'ed.

    Runs started from the repository root leave ``output/`` behind with
    restart and state archives; nothing under it is collectable. Broken
    symlinks raise ``OSError`` from ``is_dir()`` before pytest's own
    ``norecursedirs`` filter runs, so those are skipped here too.
    """
    if collection_path.name == "output":
        return True
    try:
        _ = collection_path.is_dir()
    except OSError:
        return True
    return False
