"""Journal package - append-only JSONL mirror of committed transactions.

Public surface
--------------
- :func:`append_record`        - append one committed record.
- :func:`verify_journal`       - check integrity of the last journal line.
- :exc:`JournalWriteError`     - raised when a filesystem write fails.
- :class:`JournalVerifyResult` - result object returned by :func:`verify_journal`.

Usage example
-------------
::

    from currency_ledger.journal import append_record, JournalWriteError

    try:
        append_record(record, path=journal_path)
    except JournalWriteError:
        logger.warning("Journal write failed; ledger state is unaffected.")
"""

from currency_ledger.journal.writer import (
    JournalVerifyResult,
    JournalWriteError,
    append_record,
    verify_journal,
)

__all__ = [
    "JournalVerifyResult",
    "JournalWriteError",
    "append_record",
    "verify_journal",
]
