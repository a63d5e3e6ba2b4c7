from __future__ import annotations

import dataclasses
import hashlib

from verifactu.models.records import (
    CancellationRecord,
    Record,
    RecordKind,
    RegistrationRecord,
)
from verifactu.utils.formatters import format_date, format_timestamp


def _require(value: str | None, name: str) -> str:
    if value is None:
        raise ValueError(f"Cannot hash record: {name} is not set")
    return value


def _registration_fields(record: RegistrationRecord) -> list[tuple[str, str]]:
    inv = record.header.invoice_id
    return [
        ("IDEmisorFactura", inv.issuer_id),
        ("NumSerieFactura", inv.invoice_number),
        ("FechaExpedicionFactura", format_date(inv.issue_date)),
        ("TipoFactura", str(_require(record.invoice_type, "invoice_type"))),
        ("CuotaTotal", _require(record.total_tax_amount, "total_tax_amount")),
        ("ImporteTotal", _require(record.total_amount, "total_amount")),
    ]


def _cancellation_fields(record: CancellationRecord) -> list[tuple[str, str]]:
    inv = record.header.invoice_id
    return [
        ("IDEmisorFacturaAnulada", inv.issuer_id),
        ("NumSerieFacturaAnulada", inv.invoice_number),
        ("FechaExpedicionFacturaAnulada", format_date(inv.issue_date)),
    ]


_FIELDS = {
    RecordKind.REGISTRATION: _registration_fields,
    RecordKind.CANCELLATION: _cancellation_fields,
}


def build_payload(record: Record) -> str:
    """Assemble the canonical ``key=value&...`` string that gets hashed.

    Values are NOT URL-escaped. The first record of a chain still carries
    an empty ``Huella=`` segment.
    """
    header = record.header
    if header.invoice_id is None:
        raise ValueError("Cannot hash record: invoice_id is not set")
    if header.hashed_at is None:
        raise ValueError("Cannot hash record: hashed_at is not set")

    fields = _FIELDS[record.kind](record)
    fields.append(("Huella", header.previous_hash or ""))
    fields.append(("FechaHoraHusoGenRegistro", format_timestamp(header.hashed_at)))
    return "&".join(f"{key}={value}" for key, value in fields)


def compute_hash(record: Record) -> str:
    """Return the 64-char upper-case SHA-256 fingerprint of *record*."""
    payload = build_payload(record)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest().upper()


def with_hash(record: Record) -> Record:
    """Return a copy of *record* whose header carries its freshly computed hash."""
    header = dataclasses.replace(record.header, hash=compute_hash(record))
    return dataclasses.replace(record, header=header)
