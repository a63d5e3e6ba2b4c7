"""Local chain-tail store: the last record hashed for each issuer.

Every new record must point at its predecessor's invoice id and hash, so we
keep the tail of each issuer's chain in a small JSON file under the data
directory.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from filelock import FileLock

from verifactu import config as _config
from verifactu.models.identifiers import InvoiceIdentifier
from verifactu.models.records import Record, RecordHeader
from verifactu.utils.formatters import format_date, parse_date

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChainLink:
    invoice_id: InvoiceIdentifier
    hash: str

    def to_dict(self) -> dict[str, str]:
        return {
            "invoice_number": self.invoice_id.invoice_number,
            "issue_date": format_date(self.invoice_id.issue_date),
            "hash": self.hash,
        }

    @classmethod
    def from_dict(cls, issuer_id: str, d: dict[str, Any]) -> ChainLink:
        return cls(
            invoice_id=InvoiceIdentifier(
                issuer_id=issuer_id,
                invoice_number=d["invoice_number"],
                issue_date=parse_date(d["issue_date"]),
            ),
            hash=d["hash"],
        )


def _chain_file() -> Path:
    return _config.get_data_dir() / "chain.json"


def _backup_corrupt(path: Path) -> Path:
    ts = datetime.now(UTC).strftime("%Y%m%dT%H%M%S")
    backup = path.with_name(f"{path.name}.corrupt.{ts}")
    path.rename(backup)
    logger.warning("Corrupt chain file backed up: %s → %s", path, backup)
    return backup


@contextmanager
def _locked() -> Iterator[None]:
    """Hold an exclusive file lock during chain read-modify-write."""
    cf = _chain_file()
    cf.parent.mkdir(parents=True, exist_ok=True)
    lock = FileLock(cf.with_suffix(".lock"))
    with lock:
        yield


def _load() -> dict[str, dict[str, Any]]:
    cf = _chain_file()
    if not cf.exists():
        return {}
    try:
        data = json.loads(cf.read_text())
    except (json.JSONDecodeError, ValueError):
        _backup_corrupt(cf)
        return {}
    if not isinstance(data, dict):
        _backup_corrupt(cf)
        return {}
    return data


def _save(data: dict[str, dict[str, Any]]) -> None:
    cf = _chain_file()
    cf.parent.mkdir(parents=True, exist_ok=True)
    tmp = cf.with_suffix(".tmp")
    tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n")
    os.replace(tmp, cf)


def last_link(issuer_id: str) -> ChainLink | None:
    """Return the tail of *issuer_id*'s chain, or None if nothing was chained yet."""
    with _locked():
        entry = _load().get(issuer_id)
    if entry is None:
        return None
    try:
        return ChainLink.from_dict(issuer_id, entry)
    except (KeyError, TypeError, ValueError):
        logger.warning("Ignoring malformed chain entry for %s: %r", issuer_id, entry)
        return None


def record_link(record: Record) -> ChainLink:
    """Make a hashed *record* the new tail of its issuer's chain."""
    header = record.header
    if header.hash is None:
        raise ValueError("Cannot chain a record that has not been hashed")
    link = ChainLink(invoice_id=header.invoice_id, hash=header.hash)
    with _locked():
        data = _load()
        data[header.invoice_id.issuer_id] = link.to_dict()
        _save(data)
    logger.info(
        "Chain tail for %s advanced to %s",
        header.invoice_id.issuer_id,
        header.invoice_id.invoice_number,
    )
    return link


def chain_header(invoice_id: InvoiceIdentifier, hashed_at: datetime) -> RecordHeader:
    """Return a header for a new record linked to the current chain tail."""
    link = last_link(invoice_id.issuer_id)
    if link is None:
        return RecordHeader(invoice_id=invoice_id, hashed_at=hashed_at)
    return RecordHeader(
        invoice_id=invoice_id,
        hashed_at=hashed_at,
        previous_invoice_id=link.invoice_id,
        previous_hash=link.hash,
    )
