"""Single-file archive creation, synchronous or in the background."""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, IO, Iterator, Protocol, runtime_checkable
import logging
import tarfile
import threading
import zipfile

import zstandard as zstd

_LOGGER = logging.getLogger(__name__)

CHUNK_SIZE = 1024
"""Number of bytes copied from the source per read."""

DEFAULT_FORMAT = "zip"

ZSTD_LEVEL = 19

_SUFFIX_FORMATS: list[tuple[str, str]] = [
    (".tar.zst", "zst"),
    (".tzst", "zst"),
    (".zst", "zst"),
    (".zip", "zip"),
]

_FORMAT_ALIASES: dict[str, str] = {
    "zst": "zst",
    "zstd": "zst",
    "tar.zst": "zst",
    "tzst": "zst",
    "zip": "zip",
}

Spawner = Callable[[Callable[[], None]], None]


@runtime_checkable
class ArchiveConsole(Protocol):
    """Minimal console interface required by :class:`ArchiveManager`."""

    dry_run: bool

    def info(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...

    def dry(self, message: str) -> None:
        ...


@dataclass(slots=True)
class ArchiveArtifact:
    """A file to package as the single entry of an archive."""

    source_file: Path
    entry_name: str | None = None

    @property
    def arcname(self) -> str:
        if self.entry_name is None:
            return Path(self.source_file).name
        return self.entry_name


def _start_thread(task: Callable[[], None]) -> None:
    threading.Thread(target=task, name="archive-writer").start()


@contextmanager
def _open_target(path: Path) -> Iterator[BinaryIO]:
    handle = path.open("wb")
    try:
        with handle:
            yield handle
    except BaseException:
        path.unlink(missing_ok=True)
        raise


def _copy_stream(src: IO[bytes], dst: IO[bytes]) -> None:
    while True:
        chunk = src.read(CHUNK_SIZE)
        if not chunk:
            break
        dst.write(chunk)


class ArchiveManager:
    """Package single files into zip or zstandard-compressed tar archives.

    Every archive holds exactly one entry whose name is chosen by the caller.
    In background mode the work runs on its own thread and the caller gets no
    completion signal; failures are written to the console's error channel and
    to the module logger.
    """

    def __init__(
        self,
        console: ArchiveConsole | None = None,
        *,
        spawn: Spawner | None = None,
    ) -> None:
        self._console = console
        self._spawn = spawn or _start_thread

    def create_archive(
        self,
        *,
        artifact: ArchiveArtifact,
        target_path: Path | str,
        format_hint: str | None = None,
        run_async: bool = False,
    ) -> Path:
        """Write *artifact* as the only entry of a new archive at *target_path*.

        Parameters
        ----------
        artifact:
            The source file and the entry name to store it under.
        target_path:
            Exact path of the archive; an existing file is overwritten.
        format_hint:
            Optional explicit format, ``"zip"`` or ``"zst"``. When omitted the
            format is inferred from the suffix of *target_path*, falling back
            to zip.
        run_async:
            When ``True`` the archive is written on a separate thread and this
            method returns immediately. Errors are reported, not raised.

        Raises
        ------
        FileNotFoundError
            If the source file is missing (synchronous mode only).
        OSError
            If reading the source or writing the archive fails (synchronous
            mode only).
        """

        target = Path(target_path).expanduser()
        source = Path(artifact.source_file).expanduser()
        entry_name = artifact.arcname
        if not entry_name:
            raise ValueError("Archive entry name must not be empty")

        archive_format = self._resolve_archive_format(target=target, format_hint=format_hint)

        if self._console is not None and self._console.dry_run:
            self._emit_dry(f"Would archive {source} to {target} as '{entry_name}'")
            return target

        if run_async:
            def task() -> None:
                self._archive_in_background(
                    source=source,
                    target_path=target,
                    entry_name=entry_name,
                    archive_format=archive_format,
                )

            self._spawn(task)
            return target

        return self._make_archive(
            source=source,
            target_path=target,
            entry_name=entry_name,
            archive_format=archive_format,
        )

    def _resolve_archive_format(self, *, target: Path, format_hint: str | None) -> str:
        if format_hint:
            normalized = format_hint.strip().lower()
            if normalized in _FORMAT_ALIASES:
                return _FORMAT_ALIASES[normalized]
            raise ValueError(f"Unsupported archive format hint '{format_hint}'")

        filename = target.name.lower()
        for suffix, fmt in sorted(_SUFFIX_FORMATS, key=lambda item: len(item[0]), reverse=True):
            if filename.endswith(suffix):
                return fmt
        return DEFAULT_FORMAT

    def _emit_dry(self, message: str) -> None:
        dry_method = getattr(self._console, "dry", None)
        if callable(dry_method):
            dry_method(message)
            return
        _LOGGER.info("[dry-run] %s", message)

    def _archive_in_background(
        self,
        *,
        source: Path,
        target_path: Path,
        entry_name: str,
        archive_format: str,
    ) -> None:
        try:
            self._make_archive(
                source=source,
                target_path=target_path,
                entry_name=entry_name,
                archive_format=archive_format,
            )
        except Exception as exc:
            _LOGGER.error("Background archive of %s to %s failed", source, target_path, exc_info=exc)
            if self._console is not None:
                self._console.error(f"Failed to archive {source} to {target_path}: {exc}")

    def _make_archive(
        self,
        *,
        source: Path,
        target_path: Path,
        entry_name: str,
        archive_format: str,
    ) -> Path:
        if not source.is_file():
            raise FileNotFoundError(f"Archive source file '{source}' does not exist")

        if archive_format == "zip":
            self._make_zip_archive(source=source, target_path=target_path, entry_name=entry_name)
        elif archive_format == "zst":
            self._make_zst_archive(source=source, target_path=target_path, entry_name=entry_name)
        else:
            raise RuntimeError(f"Unsupported archive format '{archive_format}'")

        _LOGGER.debug("Archived %s to %s as %s", source, target_path, entry_name)
        if self._console is not None:
            self._console.info(f"Archived {source} to {target_path}")
        return target_path

    def _make_zip_archive(self, *, source: Path, target_path: Path, entry_name: str) -> None:
        info = zipfile.ZipInfo.from_file(source, arcname=entry_name, strict_timestamps=False)
        info.compress_type = zipfile.ZIP_DEFLATED

        with _open_target(target_path) as dst:
            with zipfile.ZipFile(dst, mode="w", compression=zipfile.ZIP_DEFLATED, allowZip64=True) as archive:
                with source.open("rb") as src:
                    with archive.open(info, mode="w") as entry:
                        _copy_stream(src, entry)

    def _make_zst_archive(self, *, source: Path, target_path: Path, entry_name: str) -> None:
        compressor = zstd.ZstdCompressor(level=ZSTD_LEVEL, write_checksum=True)

        with _open_target(target_path) as dst:
            with compressor.stream_writer(dst, closefd=False) as writer:
                with tarfile.open(fileobj=writer, mode="w|", format=tarfile.PAX_FORMAT) as tar:
                    with source.open("rb") as src:
                        member = tar.gettarinfo(arcname=entry_name, fileobj=src)
                        tar.addfile(member, fileobj=src)


def zip_file(
    source: Path | str,
    destination: Path | str,
    entry_name: str,
    run_async: bool = False,
    *,
    console: ArchiveConsole | None = None,
) -> None:
    """Compress *source* into a zip at *destination* holding one *entry_name* entry."""

    manager = ArchiveManager(console)
    manager.create_archive(
        artifact=ArchiveArtifact(Path(source), entry_name),
        target_path=destination,
        format_hint="zip",
        run_async=run_async,
    )


__all__ = [
    "CHUNK_SIZE",
    "ArchiveArtifact",
    "ArchiveConsole",
    "ArchiveManager",
    "zip_file",
]
