import os
import time

import pytest

from transfer.temp_storage import discard_file, safe_file_name, sweep_stale, transfer_workspace


def test_workspace_is_removed_after_use(tmp_path):
    with transfer_workspace(tmp_path / "work", "t1") as work_dir:
        (work_dir / "chunk").write_bytes(b"abc")
        assert work_dir.is_dir()

    assert not work_dir.exists()


def test_workspace_is_removed_on_error(tmp_path):
    with pytest.raises(RuntimeError):
        with transfer_workspace(tmp_path / "work", "t1") as work_dir:
            (work_dir / "chunk").write_bytes(b"abc")
            raise RuntimeError("part failed")

    assert not work_dir.exists()


def test_workspace_ids_must_not_collide(tmp_path):
    with transfer_workspace(tmp_path, "same"):
        with pytest.raises(FileExistsError):
            with transfer_workspace(tmp_path, "same"):
                pass


@pytest.mark.parametrize("name,expected", [
    ("movie.mkv", "movie.mkv"),
    ("../../etc/passwd", "passwd"),
    ("C:\\Users\\me\\report.pdf", "report.pdf"),
    ("what?*.txt", "what_.txt"),
    ("..", "downloaded_file"),
    ("", "downloaded_file"),
])
def test_safe_file_name(name, expected):
    assert safe_file_name(name) == expected


def test_discard_file(tmp_path):
    path = tmp_path / "served.bin"
    path.write_bytes(b"x")

    assert discard_file(path) is True
    assert discard_file(path) is False


def test_sweep_stale_removes_only_old_entries(tmp_path):
    old_dir = tmp_path / "old"
    old_dir.mkdir()
    (old_dir / "chunk").write_bytes(b"x")
    old_file = tmp_path / "old.bin"
    old_file.write_bytes(b"x")
    fresh = tmp_path / "fresh.bin"
    fresh.write_bytes(b"x")

    past = time.time() - 7200
    os.utime(old_dir, (past, past))
    os.utime(old_file, (past, past))

    assert sweep_stale(tmp_path, 3600) == 2
    assert [p.name for p in tmp_path.iterdir()] == ["fresh.bin"]


def test_sweep_stale_missing_root(tmp_path):
    assert sweep_stale(tmp_path / "nope", 10) == 0
