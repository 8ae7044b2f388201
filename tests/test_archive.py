from __future__ import annotations

from pathlib import Path
from typing import Callable, List
import os
import tarfile
import tempfile
import threading
import unittest
import zipfile
from unittest.mock import patch

import zstandard as zstd

from core.archive import CHUNK_SIZE, ArchiveArtifact, ArchiveConsole, ArchiveManager, zip_file


class RecordingConsole:
    def __init__(self, dry_run: bool = False) -> None:
        self.dry_run = dry_run
        self.infos: List[str] = []
        self.errors: List[str] = []
        self.dries: List[str] = []

    def info(self, message: str) -> None:
        self.infos.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)

    def dry(self, message: str) -> None:
        self.dries.append(message)


class DeferredSpawner:
    def __init__(self) -> None:
        self.tasks: List[Callable[[], None]] = []

    def __call__(self, task: Callable[[], None]) -> None:
        self.tasks.append(task)

    def run_all(self) -> None:
        for task in self.tasks:
            task()


def _read_zip(path: Path) -> dict[str, bytes]:
    with zipfile.ZipFile(path) as archive:
        return {name: archive.read(name) for name in archive.namelist()}


def _read_zst(path: Path) -> dict[str, bytes]:
    entries: dict[str, bytes] = {}
    dctx = zstd.ZstdDecompressor()
    with path.open("rb") as ifh:
        with dctx.stream_reader(ifh) as reader:
            with tarfile.open(fileobj=reader, mode="r|") as tar:
                for member in tar:
                    handle = tar.extractfile(member)
                    assert handle is not None
                    entries[member.name] = handle.read()
    return entries


class ArchiveManagerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        self.console = RecordingConsole()

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def _source(self, name: str, payload: bytes) -> Path:
        path = self.root / name
        path.write_bytes(payload)
        return path

    def test_console_satisfies_protocol(self) -> None:
        self.assertIsInstance(self.console, ArchiveConsole)

    def test_zip_contains_single_named_entry(self) -> None:
        source = self._source("report.exec", b"coverage data")
        target = self.root / "out.zip"

        result = ArchiveManager(self.console).create_archive(
            artifact=ArchiveArtifact(source, "entry.txt"),
            target_path=target,
        )

        self.assertEqual(result, target)
        self.assertEqual(_read_zip(target), {"entry.txt": b"coverage data"})
        self.assertTrue(any("Archived" in message for message in self.console.infos))

    def test_entry_defaults_to_source_name(self) -> None:
        source = self._source("jacoco.exec", b"x")
        target = self.root / "jacoco.exec.zip"
        ArchiveManager().create_archive(artifact=ArchiveArtifact(source), target_path=target)
        self.assertEqual(list(_read_zip(target)), ["jacoco.exec"])

    def test_empty_source_produces_empty_entry(self) -> None:
        source = self._source("empty.txt", b"")
        target = self.root / "empty.zip"
        ArchiveManager().create_archive(artifact=ArchiveArtifact(source, "entry.txt"), target_path=target)
        self.assertEqual(_read_zip(target), {"entry.txt": b""})

    def test_large_source_round_trips_across_chunk_boundaries(self) -> None:
        payload = os.urandom(3 * 1024 * 1024 + CHUNK_SIZE // 2 + 1)
        source = self._source("big.bin", payload)
        target = self.root / "big.zip"

        ArchiveManager().create_archive(artifact=ArchiveArtifact(source, "entry.bin"), target_path=target)

        self.assertEqual(_read_zip(target)["entry.bin"], payload)

    def test_existing_destination_is_overwritten(self) -> None:
        source = self._source("a.txt", b"new")
        target = self.root / "out.zip"
        target.write_bytes(b"stale content that is not a zip")

        ArchiveManager().create_archive(artifact=ArchiveArtifact(source, "a.txt"), target_path=target)

        self.assertEqual(_read_zip(target), {"a.txt": b"new"})

    def test_files_can_be_removed_after_archiving(self) -> None:
        source = self._source("a.txt", b"payload")
        target = self.root / "out.zip"
        zip_file(source, target, "a.txt")
        os.remove(source)
        os.remove(target)
        self.assertFalse(source.exists())
        self.assertFalse(target.exists())

    def test_missing_source_raises_without_creating_target(self) -> None:
        target = self.root / "out.zip"
        with self.assertRaises(FileNotFoundError):
            ArchiveManager().create_archive(
                artifact=ArchiveArtifact(self.root / "missing.txt", "entry.txt"),
                target_path=target,
            )
        self.assertFalse(target.exists())

    def test_unwritable_destination_raises(self) -> None:
        source = self._source("a.txt", b"payload")
        with self.assertRaises(OSError):
            ArchiveManager().create_archive(
                artifact=ArchiveArtifact(source, "a.txt"),
                target_path=self.root / "no-such-dir" / "out.zip",
            )

    def test_failure_while_copying_removes_partial_archive(self) -> None:
        source = self._source("a.txt", b"payload")
        target = self.root / "out.zip"
        with patch("core.archive._copy_stream", side_effect=OSError("disk full")):
            with self.assertRaises(OSError):
                ArchiveManager().create_archive(artifact=ArchiveArtifact(source, "a.txt"), target_path=target)
        self.assertFalse(target.exists())

    def test_empty_entry_name_rejected(self) -> None:
        source = self._source("a.txt", b"payload")
        with self.assertRaises(ValueError):
            ArchiveManager().create_archive(artifact=ArchiveArtifact(source, ""), target_path=self.root / "o.zip")

    def test_format_inferred_from_suffix(self) -> None:
        source = self._source("a.txt", b"payload")
        zst_target = self.root / "out.tar.zst"
        other_target = self.root / "out.bin"

        manager = ArchiveManager()
        manager.create_archive(artifact=ArchiveArtifact(source, "entry.txt"), target_path=zst_target)
        manager.create_archive(artifact=ArchiveArtifact(source, "entry.txt"), target_path=other_target)

        self.assertEqual(_read_zst(zst_target), {"entry.txt": b"payload"})
        self.assertTrue(zipfile.is_zipfile(other_target))

    def test_zst_round_trip_of_empty_file(self) -> None:
        source = self._source("empty.txt", b"")
        target = self.root / "empty.out"
        ArchiveManager().create_archive(
            artifact=ArchiveArtifact(source, "entry.txt"),
            target_path=target,
            format_hint="zstd",
        )
        self.assertEqual(_read_zst(target), {"entry.txt": b""})

    def test_unknown_format_hint_rejected(self) -> None:
        source = self._source("a.txt", b"payload")
        with self.assertRaises(ValueError):
            ArchiveManager().create_archive(
                artifact=ArchiveArtifact(source, "a.txt"),
                target_path=self.root / "out.zip",
                format_hint="rar",
            )

    def test_dry_run_writes_nothing(self) -> None:
        console = RecordingConsole(dry_run=True)
        source = self._source("a.txt", b"payload")
        target = self.root / "out.zip"

        ArchiveManager(console).create_archive(artifact=ArchiveArtifact(source, "a.txt"), target_path=target)

        self.assertFalse(target.exists())
        self.assertEqual(len(console.dries), 1)
        self.assertIn(str(target), console.dries[0])


class BackgroundArchiveTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        self.console = RecordingConsole()
        self.spawner = DeferredSpawner()

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_async_returns_before_archive_is_written(self) -> None:
        source = self.root / "a.txt"
        source.write_bytes(b"payload")
        target = self.root / "out.zip"

        ArchiveManager(self.console, spawn=self.spawner).create_archive(
            artifact=ArchiveArtifact(source, "entry.txt"),
            target_path=target,
            run_async=True,
        )

        self.assertFalse(target.exists())
        self.assertEqual(len(self.spawner.tasks), 1)
        self.spawner.run_all()
        self.assertEqual(_read_zip(target), {"entry.txt": b"payload"})

    def test_async_failure_is_reported_not_raised(self) -> None:
        target = self.root / "out.zip"
        manager = ArchiveManager(self.console, spawn=self.spawner)

        manager.create_archive(
            artifact=ArchiveArtifact(self.root / "missing.txt", "entry.txt"),
            target_path=target,
            run_async=True,
        )
        with self.assertLogs("core.archive", level="ERROR") as captured:
            self.spawner.run_all()

        self.assertFalse(target.exists())
        self.assertEqual(len(self.console.errors), 1)
        self.assertIn("missing.txt", self.console.errors[0])
        self.assertTrue(any("missing.txt" in line for line in captured.output))

    def test_async_failure_without_console_is_logged(self) -> None:
        zip_target = self.root / "out.zip"
        with patch("core.archive._start_thread", side_effect=lambda task: task()):
            with self.assertLogs("core.archive", level="ERROR"):
                zip_file(self.root / "missing.txt", zip_target, "entry.txt", run_async=True)

    def test_default_spawn_runs_on_a_thread(self) -> None:
        source = self.root / "a.txt"
        source.write_bytes(b"payload")
        target = self.root / "out.zip"
        seen: List[str] = []
        original = threading.Thread.start

        def recording_start(thread: threading.Thread) -> None:
            seen.append(thread.name)
            original(thread)

        with patch.object(threading.Thread, "start", recording_start):
            zip_file(source, target, "entry.txt", run_async=True)

        for thread in threading.enumerate():
            if thread.name == "archive-writer":
                thread.join(timeout=10)

        self.assertEqual(seen, ["archive-writer"])
        self.assertEqual(_read_zip(target), {"entry.txt": b"payload"})


if __name__ == "__main__":
    unittest.main()
