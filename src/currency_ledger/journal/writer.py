"""JSONL audit journal for committed ledger transactions.

Overview
--------
The SQLite ``transactions`` table is the **authoritative** transaction log:
it is written in the same database transaction as the balance rows.  This
module maintains a plain-text mirror of it, one JSON line per committed
record, so the history can be shipped, grepped and replayed without a
database client.

The sequence for every mutation is:

1. Acquire per-key locks (engine).
2. Update balances and append the record in one SQLite transaction.  ← authoritative
3. Append the committed record to the JSONL journal.                 ← mirror
4. Release the locks.

Because step 3 runs under the per-key locks, lines touching the same
account are in record-id order.  Lines for unrelated accounts can land out
of id order; sort by ``record_id`` when a global order is needed.

Envelope format
---------------
Every line is a self-contained JSON object:

.. code-block:: json

    {
      "record_id":      42,
      "timestamp":      "2026-10-19T14:23:01.452345+00:00",
      "from":           "system",
      "to":             "3f0c...",
      "denomination":   "gold",
      "amount":         "50.00",
      "kind":           "mint",
      "note":           "",
      "schema_version": "1.0",
      "_checksum":      "sha256:b94f3e..."
    }

``_checksum`` is computed over the JSON-serialized envelope body (all fields
**except** ``_checksum`` itself, serialized with ``sort_keys=True``).

Concurrency
-----------
``fcntl.flock(LOCK_EX)`` is acquired before every append and released after
``flush()``, serialising writers within a process and across processes on
the same host.  ``fcntl`` is POSIX-only.

Failure isolation
-----------------
:exc:`JournalWriteError` is raised on filesystem failure.  The engine
catches it and logs a warning; the ledger operation has already committed,
so only the mirror line is lost.
"""

from __future__ import annotations

import fcntl
import hashlib
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from currency_ledger.records import TransactionRecord

logger = logging.getLogger(__name__)

# Increment when the envelope format changes in a backwards-incompatible way.
_SCHEMA_VERSION = "1.0"

# Number of bytes read from the end of the journal when verifying the last
# line.  A record line is well under 1 KiB.
_TAIL_CHUNK_BYTES = 16_384


class JournalWriteError(Exception):
    """Raised when a journal append fails due to a filesystem or encoding error."""


@dataclass(frozen=True)
class JournalVerifyResult:
    """Result of :func:`verify_journal`.

    Attributes:
        status: ``"ok"``, ``"empty"`` (file absent or blank) or ``"corrupt"``.
        last_record_id: Record id of the last valid line, else ``None``.
        error_detail: Failure description for ``"corrupt"``, else ``None``.
    """

    status: Literal["ok", "empty", "corrupt"]
    last_record_id: int | None
    error_detail: str | None


def append_record(record: TransactionRecord, *, path: Path) -> str:
    """Append one committed record to the journal at ``path``.

    Args:
        record: A record returned by the transaction log (``id`` and
            ``timestamp`` populated).
        path: Journal file; parent directories are created on demand.

    Returns:
        The ``sha256:`` checksum embedded in the written line.

    Raises:
        ValueError: If the record has not been assigned an id yet.
        JournalWriteError: If the filesystem write fails.
    """
    if record.id is None:
        raise ValueError("append_record: record must be committed (id is None).")

    envelope_body: dict = {
        "record_id": record.id,
        "timestamp": record.timestamp,
        "from": record.from_party,
        "to": record.to_party,
        "denomination": record.denomination,
        "amount": str(record.amount),
        "kind": record.kind.value,
        "note": record.note,
        "schema_version": _SCHEMA_VERSION,
    }
    checksum = f"sha256:{_compute_checksum(envelope_body)}"
    envelope = {**envelope_body, "_checksum": checksum}
    line = json.dumps(envelope, ensure_ascii=False, sort_keys=True)

    try:
        _append_line_locked(path, line)
    except OSError as exc:
        raise JournalWriteError(
            f"Failed to journal record {record.id} at {path}: {exc}"
        ) from exc

    logger.debug("journal: appended %s record %s to %s", record.kind.value, record.id, path.name)
    return checksum


def verify_journal(path: Path) -> JournalVerifyResult:
    """Verify the integrity of the most recent line in the journal.

    Intended for startup diagnostics (``currency-ledger verify``).  Only the
    last non-empty line is inspected: it must parse as a JSON object, its
    ``_checksum`` must match the body, and it must carry an integer
    ``record_id``.
    """
    if not path.exists():
        return JournalVerifyResult(status="empty", last_record_id=None, error_detail=None)

    last_line = _read_last_nonempty_line(path)
    if last_line is None:
        return JournalVerifyResult(status="empty", last_record_id=None, error_detail=None)

    try:
        envelope = json.loads(last_line)
    except json.JSONDecodeError as exc:
        return JournalVerifyResult(
            status="corrupt",
            last_record_id=None,
            error_detail=f"Last line is not valid JSON: {exc}",
        )

    if not isinstance(envelope, dict):
        return JournalVerifyResult(
            status="corrupt",
            last_record_id=None,
            error_detail="Last line deserialised to a non-dict type.",
        )

    recorded_checksum = envelope.get("_checksum")
    if not isinstance(recorded_checksum, str):
        return JournalVerifyResult(
            status="corrupt",
            last_record_id=None,
            error_detail="Last line is missing or has a non-string '_checksum' field.",
        )

    body = {k: v for k, v in envelope.items() if k != "_checksum"}
    expected_checksum = f"sha256:{_compute_checksum(body)}"
    if recorded_checksum != expected_checksum:
        return JournalVerifyResult(
            status="corrupt",
            last_record_id=None,
            error_detail=(
                f"Checksum mismatch on last record. "
                f"Recorded: {recorded_checksum!r}. Expected: {expected_checksum!r}."
            ),
        )

    record_id = envelope.get("record_id")
    if not isinstance(record_id, int) or isinstance(record_id, bool):
        return JournalVerifyResult(
            status="corrupt",
            last_record_id=None,
            error_detail="Last line is missing an integer 'record_id'.",
        )

    return JournalVerifyResult(status="ok", last_record_id=record_id, error_detail=None)


# ── Internal helpers ──────────────────────────────────────────────────────────


def _compute_checksum(payload: dict) -> str:
    """SHA-256 hex digest of the canonical (``sort_keys=True``) JSON of ``payload``."""
    canonical = json.dumps(payload, ensure_ascii=False, sort_keys=True)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _append_line_locked(path: Path, line: str) -> None:
    """Append one newline-terminated line under an exclusive POSIX lock."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as fh:
        fcntl.flock(fh, fcntl.LOCK_EX)
        try:
            fh.write(line + "\n")
            fh.flush()
        finally:
            fcntl.flock(fh, fcntl.LOCK_UN)


def _read_last_nonempty_line(path: Path) -> str | None:
    """Return the last non-empty line from the tail of ``path``, or ``None``."""
    try:
        with path.open("rb") as fh:
            fh.seek(0, 2)
            size = fh.tell()
            if size == 0:
                return None
            fh.seek(max(0, size - _TAIL_CHUNK_BYTES))
            chunk = fh.read()
    except OSError:
        return None

    for line in reversed(chunk.decode("utf-8", errors="replace").splitlines()):
        stripped = line.strip()
        if stripped:
            return stripped
    return None
