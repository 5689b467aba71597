#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
File inventory of a build output directory.

Walks the dist tree once and returns an immutable snapshot: one record per
regular file (relative POSIX path, size, lower-cased extension). Broken
symlinks, files that cannot be stat'd and subdirectories that cannot be
listed are skipped and listed separately; the walk itself only stops when the
root cannot be listed.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Tuple

from distaudit import console
from distaudit.errors import MissingBuildOutput, UnreadableBuildOutput

log = console.get_logger("inventory")


@dataclass(frozen=True)
class ArtifactRecord:
    relative_path: str
    size_bytes: int
    extension: str

    @property
    def name(self) -> str:
        return self.relative_path.rsplit("/", 1)[-1]

    @property
    def parent(self) -> str:
        return self.relative_path.rsplit("/", 1)[0] if "/" in self.relative_path else ""

    @property
    def stem(self) -> str:
        name = self.name
        return name[: len(name) - len(self.extension)] if self.extension else name

    def to_dict(self) -> dict:
        return {"path": self.relative_path, "sizeBytes": self.size_bytes, "extension": self.extension}


@dataclass(frozen=True)
class SkippedFile:
    relative_path: str
    reason: str


@dataclass(frozen=True)
class Inventory:
    root: Path
    records: Tuple[ArtifactRecord, ...] = ()
    skipped: Tuple[SkippedFile, ...] = field(default=())

    def __len__(self) -> int:
        return len(self.records)

    @property
    def total_size(self) -> int:
        return sum(r.size_bytes for r in self.records)

    def sorted_records(self) -> list[ArtifactRecord]:
        return sorted(self.records, key=lambda r: r.relative_path)

    def by_extension(self, *exts: str) -> list[ArtifactRecord]:
        wanted = {e.lower() for e in exts}
        return [r for r in self.sorted_records() if r.extension in wanted]

    def has(self, relative_path: str) -> bool:
        return any(r.relative_path == relative_path for r in self.records)

    def path_of(self, record: ArtifactRecord) -> Path:
        return self.root / record.relative_path


def extension_of(name: str) -> str:
    # ".htaccess" has no extension, "bundle.min.js" -> ".js"
    stem, dot, ext = name.rpartition(".")
    if not dot or not stem:
        return ""
    return "." + ext.lower()


def build_inventory(root: "str | Path", exclude: Iterable[str] = ()) -> Inventory:
    """Snapshot every regular file under ``root``.

    ``exclude`` takes root-relative POSIX paths to leave out (the auditor's own
    report from a previous run). Raises :class:`MissingBuildOutput` when the
    root is not an existing directory.
    """
    root = Path(root)
    if not root.is_dir():
        raise MissingBuildOutput(root)

    excluded = {e.strip("/") for e in exclude}
    records: list[ArtifactRecord] = []
    skipped: list[SkippedFile] = []

    def unlistable(err: OSError) -> None:
        where = Path(err.filename) if err.filename else root
        if where == root:
            raise UnreadableBuildOutput(root, err) from err
        rel = where.relative_to(root).as_posix()
        log.warning("Skipping unreadable directory %s: %s", rel, err.strerror or err)
        skipped.append(SkippedFile(rel, f"cannot list directory: {err.strerror or err}"))

    for dirpath, dirnames, filenames in os.walk(root, onerror=unlistable, followlinks=False):
        dirnames.sort()
        base = Path(dirpath)
        for fn in sorted(filenames):
            p = base / fn
            rel = p.relative_to(root).as_posix()
            if rel in excluded:
                continue
            try:
                st = p.stat()  # follows symlinks
            except FileNotFoundError:
                if p.is_symlink():
                    log.warning("Skipping broken symlink %s", rel)
                    skipped.append(SkippedFile(rel, "broken symlink"))
                else:
                    log.warning("Skipping vanished file %s", rel)
                    skipped.append(SkippedFile(rel, "file disappeared during scan"))
                continue
            except OSError as e:
                log.warning("Skipping unreadable file %s: %s", rel, e)
                skipped.append(SkippedFile(rel, f"cannot stat: {e.strerror or e}"))
                continue
            if not p.is_file():
                # symlink to a directory or a special file
                log.debug("Ignoring non-regular entry %s", rel)
                continue
            records.append(ArtifactRecord(rel, st.st_size, extension_of(fn)))

    log.debug("Inventory of %s: %d files, %d skipped", root, len(records), len(skipped))
    return Inventory(root=root, records=tuple(records), skipped=tuple(skipped))
