from __future__ import annotations

from pathlib import Path
import sys


import pytest


# Ensure the repository root (parent of ./tests) is importable during pytest collection.
# This avoids ModuleNotFoundError for `import filequeue` under pytest import modes
# that don't automatically prepend the cwd/rootdir to sys.path.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


@pytest.fixture
def registry():
    """
    A private registry per test so queues never leak between tests.
    """
    from filequeue import PathQueueRegistry

    return PathQueueRegistry()


@pytest.fixture
def workdir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """
    Run the test from a temp directory so relative paths like "a/b.txt" are sandboxed.
    """
    monkeypatch.chdir(tmp_path)
    return tmp_path
