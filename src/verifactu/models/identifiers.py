from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from verifactu.models.codes import ForeignIdType


@dataclass(frozen=True)
class InvoiceIdentifier:
    """IDFactura: issuer NIF, series + number and issue date.

    ``issue_date`` may be given as a datetime; only its calendar date is
    kept, so two identifiers issued on the same day compare equal
    regardless of time of day or offset.
    """

    issuer_id: str
    invoice_number: str
    issue_date: date

    def __post_init__(self) -> None:
        if isinstance(self.issue_date, datetime):
            object.__setattr__(self, "issue_date", self.issue_date.date())


@dataclass(frozen=True)
class FiscalIdentifier:
    """Party identified by a domestic NIF."""

    name: str
    nif: str

    @classmethod
    def from_dict(cls, d: dict) -> FiscalIdentifier:
        return cls(name=d["name"], nif=str(d["nif"]))


@dataclass(frozen=True)
class ForeignFiscalIdentifier:
    """Party identified outside the domestic registry (IDOtro)."""

    name: str
    country: str | None
    type: ForeignIdType
    value: str


Recipient = FiscalIdentifier | ForeignFiscalIdentifier
