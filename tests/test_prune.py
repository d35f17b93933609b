"""Tests for guarded pruning of incoming folders."""

from __future__ import annotations

from pathlib import Path

import pytest

from ecc_timelapse.errors import PruneGuardError
from ecc_timelapse.prune import safe_prune


@pytest.fixture
def incoming(tmp_path: Path) -> Path:
    path = tmp_path / "incoming"
    path.mkdir()
    return path


def test_prunes_folder_inside_incoming(incoming: Path, runner) -> None:
    target = incoming / "Vase A"
    (target / "sub").mkdir(parents=True)
    (target / "tlp_layer_1.jpg").write_bytes(b"x")

    removed = safe_prune(target, incoming, runner)

    assert removed == target.resolve()
    assert not target.exists()
    assert incoming.is_dir()


def test_refuses_incoming_root(incoming: Path, runner) -> None:
    with pytest.raises(PruneGuardError, match="incoming root"):
        safe_prune(incoming, incoming, runner)
    assert incoming.is_dir()
    assert runner.removed == []


def test_refuses_outside_incoming(tmp_path: Path, incoming: Path, runner) -> None:
    outside = tmp_path / "elsewhere"
    outside.mkdir()
    with pytest.raises(PruneGuardError, match="outside incoming"):
        safe_prune(outside, incoming, runner)
    assert outside.is_dir()


def test_refuses_symlink_escaping_incoming(tmp_path: Path, incoming: Path, runner) -> None:
    outside = tmp_path / "precious"
    outside.mkdir()
    (outside / "keep.txt").write_text("keep")
    (incoming / "link").symlink_to(outside, target_is_directory=True)

    with pytest.raises(PruneGuardError):
        safe_prune(incoming / "link", incoming, runner)
    assert (outside / "keep.txt").exists()


def test_refuses_root(incoming: Path, runner) -> None:
    with pytest.raises(PruneGuardError):
        safe_prune("/", incoming, runner)


def test_refuses_missing_or_empty(incoming: Path, runner) -> None:
    with pytest.raises(PruneGuardError):
        safe_prune("", incoming, runner)
    with pytest.raises(PruneGuardError, match="not a directory"):
        safe_prune(incoming / "gone", incoming, runner)


def test_refuses_when_incoming_is_root(tmp_path: Path, runner) -> None:
    target = tmp_path / "x"
    target.mkdir()
    with pytest.raises(PruneGuardError):
        safe_prune(target, "/", runner)
    assert target.is_dir()
