"""Append-only JSON Lines audit trail of raw inference exchanges."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import IO, Any

from story_chain.domain.errors import PersistenceFailure


def utc_now_iso() -> str:
    """Return current UTC timestamp in ISO-8601 form."""
    return datetime.now(UTC).isoformat()


@dataclass(frozen=True)
class AuditRecord:
    """One prompt/response exchange, successful or not."""

    timestamp_utc: str
    model: str
    attempt: int
    prompt: str
    response: str | None
    error: str | None
    status_code: int | None
    elapsed_ms: int
    epoch_index: int | None


class AuditLog:
    """Scoped handle over an append-only audit file.

    Use as a context manager so the file is flushed and closed on every exit
    path. Each record is written and flushed immediately.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._handle: IO[str] | None = None
        self._count = 0

    @property
    def path(self) -> Path:
        return self._path

    @property
    def record_count(self) -> int:
        return self._count

    def open(self) -> AuditLog:
        if self._handle is None:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                self._handle = self._path.open("a", encoding="utf-8")
            except OSError as exc:
                raise PersistenceFailure(
                    f"Could not open audit log {self._path}: {exc}"
                ) from exc
        return self

    def close(self) -> None:
        if self._handle is not None:
            self._handle.flush()
            self._handle.close()
            self._handle = None

    def __enter__(self) -> AuditLog:
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def record(
        self,
        *,
        prompt: str,
        model: str,
        attempt: int,
        response: str | None,
        error: str | None = None,
        status_code: int | None = None,
        elapsed_ms: int = 0,
        epoch_index: int | None = None,
    ) -> None:
        if self._handle is None:
            raise RuntimeError("Audit log is not open.")
        entry = AuditRecord(
            timestamp_utc=utc_now_iso(),
            model=model,
            attempt=attempt,
            prompt=prompt,
            response=response,
            error=error,
            status_code=status_code,
            elapsed_ms=elapsed_ms,
            epoch_index=epoch_index,
        )
        try:
            self._handle.write(json.dumps(asdict(entry), ensure_ascii=False) + "\n")
            self._handle.flush()
        except OSError as exc:
            raise PersistenceFailure(
                f"Could not append to audit log {self._path}: {exc}"
            ) from exc
        self._count += 1


def read_audit_records(path: Path) -> list[AuditRecord]:
    """Load every record from an audit file, skipping blank lines."""
    records: list[AuditRecord] = []
    for line in path.read_text(encoding="utf-8").splitlines():
        if not line.strip():
            continue
        payload: dict[str, Any] = json.loads(line)
        records.append(AuditRecord(**payload))
    return records
