"""Shared fixtures: a sandbox rooted in a temp directory, and a directory outside it."""

import os

import pytest

from exaflow.core.sandbox import Sandbox

SMALL_LIMIT = 1024


@pytest.fixture
def root(tmp_path):
    path = tmp_path.resolve() / "sandbox"
    path.mkdir()
    return path


@pytest.fixture
def outside(tmp_path):
    path = tmp_path.resolve() / "outside"
    path.mkdir()
    (path / "secret.txt").write_text("sensitive data")
    return path


@pytest.fixture
def sandbox(root):
    return Sandbox([root], max_file_size=SMALL_LIMIT)


def make_symlink(target, link) -> None:
    """Create a symlink or skip the test where the platform forbids it."""
    try:
        os.symlink(target, link)
    except (OSError, NotImplementedError) as e:
        pytest.skip(f"symlinks unavailable: {e}")
