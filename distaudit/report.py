# distaudit/report.py
"""Aggregate an inventory and its violations into the JSON build report."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from distaudit.checks import Severity, Violation
from distaudit.errors import ReportWriteFailure
from distaudit.inventory import ArtifactRecord, Inventory

LARGEST_FILES = 10


@dataclass(frozen=True)
class ExtensionStats:
    count: int = 0
    size_bytes: int = 0

    def to_dict(self) -> dict:
        return {"count": self.count, "sizeBytes": self.size_bytes}


@dataclass(frozen=True)
class Report:
    timestamp: str
    total_files: int
    total_size_bytes: int
    by_extension: Dict[str, ExtensionStats]
    largest_files: Tuple[ArtifactRecord, ...]
    violations: Tuple[Violation, ...] = field(default=())

    @property
    def errors(self) -> List[Violation]:
        return [v for v in self.violations if v.severity is Severity.ERROR]

    @property
    def warnings(self) -> List[Violation]:
        return [v for v in self.violations if v.severity is Severity.WARNING]

    @property
    def passed(self) -> bool:
        return not self.errors

    @property
    def status(self) -> str:
        return "pass" if self.passed else "fail"

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "status": self.status,
            "totalFiles": self.total_files,
            "totalSizeBytes": self.total_size_bytes,
            "byExtension": {ext: s.to_dict() for ext, s in self.by_extension.items()},
            "largestFiles": [r.to_dict() for r in self.largest_files],
            "violations": [v.to_dict() for v in self.violations],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False) + "\n"


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def largest_files(records: Sequence[ArtifactRecord], limit: int = LARGEST_FILES) -> Tuple[ArtifactRecord, ...]:
    ordered = sorted(records, key=lambda r: (-r.size_bytes, r.relative_path))
    return tuple(ordered[:limit])


def extension_breakdown(records: Sequence[ArtifactRecord]) -> Dict[str, ExtensionStats]:
    acc: Dict[str, List[int]] = {}
    for r in records:
        slot = acc.setdefault(r.extension, [0, 0])
        slot[0] += 1
        slot[1] += r.size_bytes
    return {ext: ExtensionStats(c, s) for ext, (c, s) in sorted(acc.items())}


def assemble(inventory: Inventory, violations: Sequence[Violation], now: Optional[str] = None) -> Report:
    records = inventory.records
    return Report(
        timestamp=now or utc_now(),
        total_files=len(records),
        total_size_bytes=sum(r.size_bytes for r in records),
        by_extension=extension_breakdown(records),
        largest_files=largest_files(records),
        violations=tuple(violations),
    )


def write_report(report: Report, path: "str | Path") -> Path:
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(report.to_json(), "utf-8")
    except OSError as e:
        raise ReportWriteFailure(path, e) from e
    return path
