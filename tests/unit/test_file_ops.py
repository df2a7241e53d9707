"""
Tests for treearchiver.localfs modules.
"""

import errno
import gzip
import hashlib
import os
from pathlib import Path

import pytest

from treearchiver.core.exceptions import TraversalError
from treearchiver.core.models import TransferTotals, UnitKind
from treearchiver.localfs.file_ops import (
    checksum,
    checksum_bytes,
    compute_totals,
    iter_tree,
    link_payload,
)
from treearchiver.localfs.staging import FileStager, open_staged


class TestIterTree:
    """Tests for iter_tree and compute_totals."""

    def test_walk_order(self, sample_tree: Path) -> None:
        entries = list(iter_tree(sample_tree))
        assert [entry.path.relative_to(sample_tree).as_posix() for entry in entries] == [
            "a.txt",
            "dir",
            "dir/b.txt",
        ]
        assert [entry.kind for entry in entries] == [
            UnitKind.FILE,
            UnitKind.DIRECTORY,
            UnitKind.FILE,
        ]

    def test_root_not_yielded(self, sample_tree: Path) -> None:
        assert all(entry.path != sample_tree for entry in iter_tree(sample_tree))

    def test_repeated_walks_identical(self, sample_tree: Path) -> None:
        assert list(iter_tree(sample_tree)) == list(iter_tree(sample_tree))

    def test_compute_totals(self, sample_tree: Path) -> None:
        assert compute_totals(sample_tree) == TransferTotals(object_count=3, byte_count=15)

    def test_empty_tree(self, temp_dir: Path) -> None:
        assert compute_totals(temp_dir) == TransferTotals(0, 0)

    def test_links_not_followed(self, sample_tree: Path) -> None:
        os.symlink(sample_tree / "dir", sample_tree / "link")

        entries = {entry.path.name: entry for entry in iter_tree(sample_tree)}

        assert entries["link"].kind is UnitKind.SYMBOLIC_LINK
        assert entries["link"].size == 0
        # The linked directory is only walked once, through its real path
        assert len(entries) == 4

    @pytest.mark.skipif(os.geteuid() == 0, reason="root can list any directory")
    def test_unreadable_subtree_reported(self, sample_tree: Path) -> None:
        locked = sample_tree / "locked"
        locked.mkdir()
        (locked / "hidden.txt").write_bytes(b"x")
        locked.chmod(0)
        errors: list[TraversalError] = []
        try:
            totals = compute_totals(sample_tree, on_error=errors.append)
        finally:
            locked.chmod(0o755)

        # The directory itself is counted; its contents are not
        assert totals == TransferTotals(object_count=4, byte_count=15)
        assert [error.path for error in errors] == [str(locked)]

    def test_listing_error_skips_subtree(self, sample_tree: Path, mocker) -> None:
        def walk(top, topdown=True, onerror=None, followlinks=False):
            yield str(top), ["dir"], ["a.txt"]
            onerror(PermissionError(errno.EACCES, "Permission denied", str(top / "dir")))

        mocker.patch("treearchiver.localfs.file_ops.os.walk", side_effect=walk)
        errors: list[TraversalError] = []

        totals = compute_totals(sample_tree, on_error=errors.append)

        assert totals == TransferTotals(object_count=2, byte_count=10)
        assert [error.path for error in errors] == [str(sample_tree / "dir")]

    @pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="named pipes not supported")
    def test_special_files_reported(self, sample_tree: Path) -> None:
        os.mkfifo(sample_tree / "pipe")
        errors: list[TraversalError] = []

        entries = list(iter_tree(sample_tree, on_error=errors.append))

        assert "pipe" not in [entry.path.name for entry in entries]
        assert compute_totals(sample_tree, on_error=lambda error: None) == TransferTotals(3, 15)
        assert [error.path for error in errors] == [str(sample_tree / "pipe")]


class TestChecksums:
    """Tests for checksum helpers."""

    def test_file_checksum(self, sample_tree: Path) -> None:
        assert checksum(sample_tree / "a.txt") == hashlib.md5(b"0123456789").hexdigest()

    def test_link_payload(self, sample_tree: Path) -> None:
        os.symlink("a.txt", sample_tree / "link")

        payload = link_payload(sample_tree / "link")

        assert payload == b"a.txt"
        assert checksum_bytes(payload) == hashlib.md5(b"a.txt").hexdigest()


class TestFileStager:
    """Tests for FileStager."""

    @pytest.mark.parametrize("compression", ["none", "gzip", "xz"])
    def test_stage_unit(self, sample_tree: Path, temp_dir: Path, compression: str) -> None:
        stager = FileStager(temp_dir / "staging", compression=compression)

        unit = stager.stage_unit(sample_tree / "a.txt")

        assert unit.is_file
        assert unit.uncompressed_size == 10
        assert unit.compression == compression
        assert unit.staging_path.parent == temp_dir / "staging"
        with open_staged(unit) as handle:
            assert handle.read() == b"0123456789"

    def test_gzip_artifact_is_compressed(self, sample_tree: Path, temp_dir: Path) -> None:
        stager = FileStager(temp_dir / "staging", compression="gzip")

        staging_path, size = stager.stage(sample_tree / "dir" / "b.txt")

        assert size == 5
        assert gzip.decompress(staging_path.read_bytes()) == b"hello"

    def test_owned_directory_removed(self, sample_tree: Path) -> None:
        stager = FileStager()
        stager.stage(sample_tree / "a.txt")
        assert stager.staging_directory.exists()

        stager.cleanup()

        assert not stager.staging_directory.exists()

    def test_given_directory_kept(self, temp_dir: Path) -> None:
        stager = FileStager(temp_dir / "staging")
        stager.cleanup()
        assert (temp_dir / "staging").exists()

    def test_missing_source_leaves_no_artifact(self, temp_dir: Path) -> None:
        stager = FileStager(temp_dir / "staging")

        with pytest.raises(FileNotFoundError):
            stager.stage(temp_dir / "missing.txt")

        assert list((temp_dir / "staging").iterdir()) == []

    def test_unknown_compression(self) -> None:
        with pytest.raises(ValueError):
            FileStager(compression="brotli")
