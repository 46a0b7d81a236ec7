"""
Audit ledger — append-only publish history.

Every publish run appends one NDJSON line to ``.state/audit.ndjson``
under the site root: when it ran, which mode and destination, how far
it got and why it stopped. Entries are never modified or deleted.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_DIR = ".state"
DEFAULT_AUDIT_FILE = "audit.ndjson"


class AuditEntry(BaseModel):
    """A single publish run as recorded in the ledger."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    operation_id: str = ""
    mode: str = ""                 # production, draft
    destination: str = ""
    dry_run: bool = False

    status: str = ""               # ok, failed
    exit_code: int = 0
    failed_stage: str | None = None
    error: str = ""
    stages: dict[str, str] = Field(default_factory=dict)   # stage name → status
    duration_ms: int = 0

    context: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_report(cls, report: Any) -> AuditEntry:
        """Summarise a PublishReport."""
        failed = report.failed_stage
        return cls(
            operation_id=report.operation_id,
            mode=report.mode.value,
            destination=report.destination,
            dry_run=report.dry_run,
            status=report.status,
            exit_code=report.exit_code,
            failed_stage=failed.name if failed else None,
            error=failed.error if failed else "",
            stages={s.name: s.status for s in report.stages},
            duration_ms=report.total_duration_ms,
        )


def default_audit_path(site_root: Path) -> Path:
    return site_root / DEFAULT_AUDIT_DIR / DEFAULT_AUDIT_FILE


class AuditWriter:
    """Append-only audit ledger writer.

    Each call to write() appends a single JSON line to the ledger file.
    The file is created if it doesn't exist.
    """

    def __init__(self, path: Path):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: AuditEntry) -> None:
        """Append an entry. A ledger write failure is logged, not raised."""
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) + "\n"

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug("Audit entry written: %s", entry.operation_id)
        except OSError as e:
            logger.error("Failed to write audit entry: %s", e)

    def read_all(self) -> list[AuditEntry]:
        """Read all entries, oldest first. Corrupt lines are skipped."""
        if not self._path.is_file():
            return []

        entries = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(AuditEntry.model_validate(json.loads(line)))
                    except (json.JSONDecodeError, ValidationError) as e:
                        logger.warning("Skipping corrupt audit entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read audit ledger: %s", e)

        return entries

    def read_recent(self, n: int = 20) -> list[AuditEntry]:
        """Read the most recent N entries, newest last."""
        return self.read_all()[-n:]
