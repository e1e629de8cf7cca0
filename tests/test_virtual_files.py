"""Tests for virtual_files module."""

import os
from pathlib import Path

import pytest

from model import MountKind
from virtual_files import TEMP_PREFIX, VirtualFile, VirtualFileManager, clean_stale_dirs


@pytest.fixture
def manager(tmp_path):
    m = VirtualFileManager(base_dir=str(tmp_path))
    yield m
    m.cleanup()


class TestVirtualFile:
    """Tests for VirtualFile dataclass."""

    def test_creation(self):
        vf = VirtualFile(source_path="/tmp/x/resolv.conf", dest_path="/etc/resolv.conf", description="DNS")
        assert vf.dest_path == "/etc/resolv.conf"


class TestVirtualFileManager:
    """Tests for VirtualFileManager class."""

    def test_directory_created_lazily(self, manager):
        """No temp directory until the first file is added."""
        assert manager.tmp_dir is None
        manager.add_file("x", "/etc/hosts", "Hosts")
        assert os.path.isdir(manager.tmp_dir)
        assert os.path.basename(manager.tmp_dir).startswith(TEMP_PREFIX)

    def test_add_file_content_and_mode(self, manager):
        path = manager.add_file("nameserver 10.0.2.3\n", "/etc/resolv.conf", "DNS")
        assert Path(path).read_text() == "nameserver 10.0.2.3\n"
        assert (os.stat(path).st_mode & 0o777) == 0o444

    def test_add_script_is_executable_at_same_path(self, manager):
        path = manager.add_script("#!/bin/sh\nexec \"$@\"\n", "wait.sh", "Readiness")
        assert os.access(path, os.X_OK)
        assert manager.get_file_map() == {path: path}

    def test_get_file_map(self, manager):
        resolv = manager.add_file("a", "/etc/resolv.conf", "DNS")
        hosts = manager.add_file("b", "/etc/hosts", "Hosts")
        assert manager.get_file_map() == {"/etc/resolv.conf": resolv, "/etc/hosts": hosts}

    def test_get_summary(self, manager):
        manager.add_file("a", "/etc/resolv.conf", "DNS via network helper")
        assert manager.get_summary() == ["/etc/resolv.conf: DNS via network helper"]

    def test_get_operations_are_read_only_binds(self, manager):
        resolv = manager.add_file("a", "/etc/resolv.conf", "DNS")
        (op,) = manager.get_operations()
        assert op.kind is MountKind.BIND_RO
        assert op.host_path == resolv
        assert op.sandbox_path == "/etc/resolv.conf"

    def test_cleanup_removes_directory(self, manager):
        manager.add_file("a", "/etc/hosts", "Hosts")
        tmp_dir = manager.tmp_dir
        manager.cleanup()
        assert not os.path.exists(tmp_dir)

    def test_cleanup_twice_is_safe(self, manager):
        manager.add_file("a", "/etc/hosts", "Hosts")
        manager.cleanup()
        manager.cleanup()

    def test_cleanup_without_files(self, manager):
        manager.cleanup()

    def test_failed_write_cleans_up(self, manager, monkeypatch):
        def fail(*args, **kwargs):
            raise OSError("disk full")

        manager.add_file("a", "/etc/hosts", "Hosts")
        tmp_dir = manager.tmp_dir
        monkeypatch.setattr("virtual_files.write_file_atomic", fail)
        with pytest.raises(OSError):
            manager.add_file("b", "/etc/resolv.conf", "DNS")
        assert not os.path.exists(tmp_dir)


class TestCleanStaleDirs:
    """Tests for clean_stale_dirs()."""

    def test_removes_only_prefixed_directories(self, tmp_path, capsys):
        stale = tmp_path / f"{TEMP_PREFIX}abc"
        stale.mkdir()
        (stale / "hosts").write_text("x")
        other = tmp_path / "unrelated"
        other.mkdir()
        (tmp_path / f"{TEMP_PREFIX}file").write_text("not a dir")

        removed, failed = clean_stale_dirs(str(tmp_path))

        assert (removed, failed) == (1, 0)
        assert not stale.exists()
        assert other.exists()
        assert "Removed" in capsys.readouterr().out

    def test_nothing_to_clean(self, tmp_path):
        assert clean_stale_dirs(str(tmp_path)) == (0, 0)
