from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import StrEnum
from typing import ClassVar

from verifactu.models.breakdown import BreakdownDetails
from verifactu.models.codes import CorrectiveType, InvoiceType
from verifactu.models.identifiers import InvoiceIdentifier, Recipient


class RecordKind(StrEnum):
    """Record variant, valued with the root element local name."""

    REGISTRATION = "RegistroAlta"
    CANCELLATION = "RegistroAnulacion"


@dataclass(frozen=True)
class RecordHeader:
    """Identity, chain linkage and fingerprint shared by every record.

    ``previous_invoice_id`` and ``previous_hash`` are both set or both
    ``None`` (first record of the chain). ``hash`` stays ``None`` until
    the record is hashed.
    """

    invoice_id: InvoiceIdentifier
    hashed_at: datetime
    previous_invoice_id: InvoiceIdentifier | None = None
    previous_hash: str | None = None
    hash: str | None = None

    def __post_init__(self) -> None:
        # Documents carry whole seconds only
        if isinstance(self.hashed_at, datetime) and self.hashed_at.microsecond:
            object.__setattr__(self, "hashed_at", self.hashed_at.replace(microsecond=0))

    @property
    def is_first(self) -> bool:
        return self.previous_invoice_id is None and self.previous_hash is None


@dataclass(frozen=True)
class RegistrationRecord:
    """RegistroAlta: registration of an issued invoice.

    ``is_prior_rejection`` is tri-state: ``None`` means the rejected record
    was never sent to the tax agency (wire value ``X``).
    """

    kind: ClassVar[RecordKind] = RecordKind.REGISTRATION

    header: RecordHeader
    issuer_name: str
    invoice_type: InvoiceType
    description: str
    breakdown: tuple[BreakdownDetails, ...]
    total_tax_amount: str
    total_amount: str
    recipients: tuple[Recipient, ...] = ()
    operation_date: date | None = None
    corrective_type: CorrectiveType | None = None
    corrected_invoices: tuple[InvoiceIdentifier, ...] = ()
    corrected_base_amount: str | None = None
    corrected_tax_amount: str | None = None
    replaced_invoices: tuple[InvoiceIdentifier, ...] = ()
    is_correction: bool = False
    is_prior_rejection: bool | None = False

    def __post_init__(self) -> None:
        for name in ("breakdown", "recipients", "corrected_invoices", "replaced_invoices"):
            object.__setattr__(self, name, tuple(getattr(self, name)))
        if isinstance(self.operation_date, datetime):
            object.__setattr__(self, "operation_date", self.operation_date.date())


@dataclass(frozen=True)
class CancellationRecord:
    """RegistroAnulacion: cancellation of a previously registered invoice."""

    kind: ClassVar[RecordKind] = RecordKind.CANCELLATION

    header: RecordHeader
    without_prior_record: bool = False
    is_prior_rejection: bool | None = False


Record = RegistrationRecord | CancellationRecord
