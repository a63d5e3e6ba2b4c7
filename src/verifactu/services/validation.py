from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from verifactu.config import DOMESTIC_COUNTRY, MAX_BREAKDOWN_LINES, MAX_RECIPIENTS
from verifactu.models.breakdown import BreakdownDetails
from verifactu.models.codes import (
    CorrectiveType,
    ForeignIdType,
    InvoiceType,
    OperationType,
    RegimeType,
    TaxType,
)
from verifactu.models.computer_system import ComputerSystem
from verifactu.models.identifiers import (
    FiscalIdentifier,
    ForeignFiscalIdentifier,
    InvoiceIdentifier,
)
from verifactu.models.records import (
    CancellationRecord,
    Record,
    RecordHeader,
    RecordKind,
    RegistrationRecord,
)
from verifactu.models.responses import (
    AeatResponse,
    ItemStatus,
    RecordType,
    ResponseItem,
    ResponseStatus,
)
from verifactu.models.submission import RequirementSubmission, VoluntaryDiscontinuation
from verifactu.services.exceptions import InvalidModelError
from verifactu.services.hashing import compute_hash
from verifactu.utils.formatters import (
    AMOUNT_PATTERN,
    HASH_PATTERN,
    RATE_PATTERN,
    format_amount,
    is_amount,
    is_rate,
    match_with_tolerance,
)
from verifactu.utils.validators import (
    Count,
    FieldRule,
    IsBool,
    Length,
    Member,
    Pattern,
    Positive,
    Required,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Violation:
    path: str
    message: str


Check = Callable[[Any], Iterator[Violation]]


# --- Cross-field checks: records ---


def _is_aware(value: object) -> bool:
    return isinstance(value, datetime) and value.utcoffset() is not None


def _is_hashable(record: Record) -> bool:
    header = record.header
    if header.invoice_id is None or not _is_aware(header.hashed_at):
        return False
    if isinstance(record, RegistrationRecord):
        return None not in (record.invoice_type, record.total_tax_amount, record.total_amount)
    return True


def check_hash(record: Record) -> Iterator[Violation]:
    if record.header is None or record.header.hash is None or not _is_hashable(record):
        return
    expected = compute_hash(record)
    if record.header.hash != expected:
        yield Violation("header.hash", f"Invalid hash, expected value {expected}")


def check_chain_linkage(record: Record) -> Iterator[Violation]:
    header = record.header
    if header is None:
        return
    if record.kind is RecordKind.CANCELLATION:
        if header.previous_invoice_id is None:
            yield Violation(
                "header.previous_invoice_id",
                "Previous invoice ID is required for all cancellation records",
            )
        if header.previous_hash is None:
            yield Violation(
                "header.previous_hash",
                "Previous hash is required for all cancellation records",
            )
        return

    if header.previous_invoice_id is not None and header.previous_hash is None:
        yield Violation(
            "header.previous_hash",
            "Previous hash is required if previous invoice ID is provided",
        )
    elif header.previous_hash is not None and header.previous_invoice_id is None:
        yield Violation(
            "header.previous_invoice_id",
            "Previous invoice ID is required if previous hash is provided",
        )


def check_timestamp_offset(header: RecordHeader) -> Iterator[Violation]:
    if isinstance(header.hashed_at, datetime) and not _is_aware(header.hashed_at):
        yield Violation("hashed_at", "Timestamp must include a UTC offset")


def check_prior_rejection(record: RegistrationRecord) -> Iterator[Violation]:
    if record.is_prior_rejection is not False and not record.is_correction:
        yield Violation(
            "is_prior_rejection",
            "Record cannot be a prior rejection if it is not a correction",
        )


def check_totals(record: RegistrationRecord) -> Iterator[Violation]:
    base_total = Decimal(0)
    tax_total = Decimal(0)
    for details in record.breakdown:
        amounts = (details.base_amount, details.tax_amount or "0.00", details.surcharge_amount or "0.00")
        if not all(is_amount(a) for a in amounts):
            return
        base_total += Decimal(details.base_amount)
        tax_total += Decimal(amounts[1]) + Decimal(amounts[2])

    expected_tax = format_amount(tax_total)
    if is_amount(record.total_tax_amount) and record.total_tax_amount != expected_tax:
        yield Violation(
            "total_tax_amount",
            f"Expected total tax amount of {expected_tax}, got {record.total_tax_amount}",
        )

    if is_amount(record.total_amount):
        ok, best = match_with_tolerance(record.total_amount, base_total + Decimal(expected_tax))
        if not ok:
            yield Violation(
                "total_amount",
                f"Expected total amount of {best}, got {record.total_amount}",
            )


def check_recipients(record: RegistrationRecord) -> Iterator[Violation]:
    if not isinstance(record.invoice_type, InvoiceType):
        return
    has_recipients = len(record.recipients) > 0
    if record.invoice_type.is_simplified:
        if has_recipients:
            yield Violation("recipients", "This type of invoice cannot have recipients")
    elif not has_recipients:
        yield Violation("recipients", "This type of invoice requires at least one recipient")


def check_corrective_details(record: RegistrationRecord) -> Iterator[Violation]:
    if not isinstance(record.invoice_type, InvoiceType):
        return
    is_corrective = record.invoice_type.is_corrective

    if is_corrective and record.corrective_type is None:
        yield Violation("corrective_type", "Missing type for corrective invoice")
    elif not is_corrective and record.corrective_type is not None:
        yield Violation("corrective_type", "This type of invoice cannot have a corrective type")

    if not is_corrective and record.corrected_invoices:
        yield Violation("corrected_invoices", "This type of invoice cannot have corrected invoices")

    if record.corrective_type is CorrectiveType.SUBSTITUTION:
        if record.corrected_base_amount is None:
            yield Violation(
                "corrected_base_amount",
                "Missing corrected base amount for corrective invoice by substitution",
            )
        if record.corrected_tax_amount is None:
            yield Violation(
                "corrected_tax_amount",
                "Missing corrected tax amount for corrective invoice by substitution",
            )
    else:
        if record.corrected_base_amount is not None:
            yield Violation("corrected_base_amount", "This invoice cannot have a corrected base amount")
        if record.corrected_tax_amount is not None:
            yield Violation("corrected_tax_amount", "This invoice cannot have a corrected tax amount")


def check_replaced_invoices(record: RegistrationRecord) -> Iterator[Violation]:
    if not isinstance(record.invoice_type, InvoiceType):
        return
    if not record.invoice_type.is_substitutive and record.replaced_invoices:
        yield Violation("replaced_invoices", "This type of invoice cannot have replaced invoices")


# --- Cross-field checks: breakdown lines ---


def _expected_quota(base: str, rate: str) -> Decimal:
    return Decimal(base) * Decimal(rate) / Decimal(100)


def check_breakdown_tax(details: BreakdownDetails) -> Iterator[Violation]:
    operation = details.operation_type
    if not isinstance(operation, OperationType):
        return

    if not operation.is_subject:
        if details.tax_rate is not None:
            yield Violation("tax_rate", "Tax rate cannot be set for exempt or non-subject operations")
        if details.tax_amount is not None:
            yield Violation("tax_amount", "Tax amount cannot be set for exempt or non-subject operations")
        return

    if details.tax_rate is None:
        yield Violation("tax_rate", "Tax rate is required for subject operations")
    if details.tax_amount is None:
        yield Violation("tax_amount", "Tax amount is required for subject operations")
    if not (is_amount(details.base_amount) and is_rate(details.tax_rate) and is_amount(details.tax_amount)):
        return

    ok, best = match_with_tolerance(
        details.tax_amount, _expected_quota(details.base_amount, details.tax_rate)
    )
    if not ok:
        yield Violation("tax_amount", f"Expected tax amount of {best}, got {details.tax_amount}")


def check_breakdown_surcharge(details: BreakdownDetails) -> Iterator[Violation]:
    regime = details.regime_type
    if not isinstance(regime, RegimeType):
        return

    if not regime.requires_surcharge:
        if details.surcharge_rate is not None:
            yield Violation(
                "surcharge_rate",
                "Surcharge rate can only be set for the equivalence surcharge regime",
            )
        if details.surcharge_amount is not None:
            yield Violation(
                "surcharge_amount",
                "Surcharge amount can only be set for the equivalence surcharge regime",
            )
        return

    if details.surcharge_rate is None:
        yield Violation("surcharge_rate", "Surcharge rate is required for the equivalence surcharge regime")
    if details.surcharge_amount is None:
        yield Violation("surcharge_amount", "Surcharge amount is required for the equivalence surcharge regime")
    if not (
        is_amount(details.base_amount)
        and is_rate(details.surcharge_rate)
        and is_amount(details.surcharge_amount)
    ):
        return

    ok, best = match_with_tolerance(
        details.surcharge_amount, _expected_quota(details.base_amount, details.surcharge_rate)
    )
    if not ok:
        yield Violation(
            "surcharge_amount",
            f"Expected surcharge amount of {best}, got {details.surcharge_amount}",
        )


def check_exempt_reason(details: BreakdownDetails) -> Iterator[Violation]:
    operation = details.operation_type
    if not isinstance(operation, OperationType) or operation.is_exempt:
        return
    if details.exempt_reason_code is not None:
        yield Violation("exempt_reason_code", "Exempt reason can only be set for exempt operations")
    if details.exempt_reason is not None:
        yield Violation("exempt_reason", "Exempt reason can only be set for exempt operations")


# --- Cross-field checks: parties ---


def check_foreign_identifier(identifier: ForeignFiscalIdentifier) -> Iterator[Violation]:
    id_type = identifier.type
    if not isinstance(id_type, ForeignIdType):
        return

    country = identifier.country
    if country is None or not country.strip():
        if id_type is not ForeignIdType.VAT:
            yield Violation("country", "Country code is required if type is not VAT")
        return

    if country == DOMESTIC_COUNTRY and id_type not in (ForeignIdType.PASSPORT, ForeignIdType.UNREGISTERED):
        yield Violation(
            "type",
            f'Type must be passport or unregistered if country code is "{DOMESTIC_COUNTRY}"',
        )
    if id_type is ForeignIdType.UNREGISTERED and country != DOMESTIC_COUNTRY:
        yield Violation("country", f'Country code must be "{DOMESTIC_COUNTRY}" if type is unregistered')
    if id_type is ForeignIdType.VAT and isinstance(identifier.value, str) and not identifier.value.startswith(country):
        yield Violation(
            "value",
            f'VAT number must start with "{country}", found "{identifier.value[:2]}"',
        )


# --- Rule tables ---

_AMOUNT = Pattern(AMOUNT_PATTERN)
_RATE = Pattern(RATE_PATTERN)
_HASH = Pattern(HASH_PATTERN)

FIELD_RULES: dict[type, list[tuple[str, tuple[FieldRule, ...]]]] = {
    InvoiceIdentifier: [
        ("issuer_id", (Required(), Length(exact=9))),
        ("invoice_number", (Required(), Length(max=60))),
        ("issue_date", (Required(),)),
    ],
    FiscalIdentifier: [
        ("name", (Required(), Length(max=120))),
        ("nif", (Required(), Length(exact=9))),
    ],
    ForeignFiscalIdentifier: [
        ("name", (Required(), Length(max=120))),
        ("country", (Pattern(r"[A-Z]{2}"),)),
        ("type", (Required(), Member(ForeignIdType))),
        ("value", (Required(), Length(max=20))),
    ],
    BreakdownDetails: [
        ("tax_type", (Required(), Member(TaxType))),
        ("regime_type", (Required(), Member(RegimeType))),
        ("operation_type", (Required(), Member(OperationType))),
        ("base_amount", (Required(), _AMOUNT)),
        ("tax_rate", (_RATE,)),
        ("tax_amount", (_AMOUNT,)),
        ("surcharge_rate", (_RATE,)),
        ("surcharge_amount", (_AMOUNT,)),
        ("exempt_reason_code", (Length(exact=2),)),
        ("exempt_reason", (Length(max=500),)),
    ],
    RecordHeader: [
        ("invoice_id", (Required(),)),
        ("hashed_at", (Required(),)),
        ("previous_hash", (_HASH,)),
        ("hash", (Required(), _HASH)),
    ],
    RegistrationRecord: [
        ("header", (Required(),)),
        ("issuer_name", (Required(), Length(max=120))),
        ("invoice_type", (Required(), Member(InvoiceType))),
        ("description", (Required(), Length(max=500))),
        ("recipients", (Count(max=MAX_RECIPIENTS),)),
        ("corrective_type", (Member(CorrectiveType),)),
        ("corrected_base_amount", (_AMOUNT,)),
        ("corrected_tax_amount", (_AMOUNT,)),
        ("breakdown", (Count(min=1, max=MAX_BREAKDOWN_LINES),)),
        ("total_tax_amount", (Required(), _AMOUNT)),
        ("total_amount", (Required(), _AMOUNT)),
        ("is_correction", (IsBool(),)),
        ("is_prior_rejection", (IsBool(nullable=True),)),
    ],
    CancellationRecord: [
        ("header", (Required(),)),
        ("without_prior_record", (IsBool(),)),
        ("is_prior_rejection", (IsBool(nullable=True),)),
    ],
    ComputerSystem: [
        ("vendor_name", (Required(), Length(max=120))),
        ("vendor_nif", (Required(), Length(exact=9))),
        ("name", (Required(), Length(max=30))),
        ("id", (Required(), Length(max=2))),
        ("version", (Required(), Length(max=50))),
        ("installation_number", (Required(), Length(max=100))),
        ("only_supports_verifactu", (IsBool(),)),
        ("supports_multiple_taxpayers", (IsBool(),)),
        ("has_multiple_taxpayers", (IsBool(),)),
    ],
    VoluntaryDiscontinuation: [
        ("end_date", (Required(),)),
        ("incident", (IsBool(),)),
    ],
    RequirementSubmission: [
        ("reference", (Required(), Length(max=18))),
        ("is_end", (IsBool(nullable=True),)),
    ],
    ResponseItem: [
        ("invoice_id", (Required(),)),
        ("record_type", (Required(), Member(RecordType))),
        ("status", (Required(), Member(ItemStatus))),
        ("is_correction", (IsBool(),)),
    ],
    AeatResponse: [
        ("wait_seconds", (Required(), Positive())),
        ("status", (Required(), Member(ResponseStatus))),
    ],
}

CROSS_FIELD_CHECKS: dict[type, list[Check]] = {
    ForeignFiscalIdentifier: [check_foreign_identifier],
    BreakdownDetails: [check_breakdown_tax, check_breakdown_surcharge, check_exempt_reason],
    RecordHeader: [check_timestamp_offset],
    RegistrationRecord: [
        check_hash,
        check_chain_linkage,
        check_prior_rejection,
        check_totals,
        check_recipients,
        check_corrective_details,
        check_replaced_invoices,
    ],
    CancellationRecord: [check_hash, check_chain_linkage],
}

# Attributes holding entities that are validated in turn
NESTED: dict[type, tuple[str, ...]] = {
    RecordHeader: ("invoice_id", "previous_invoice_id"),
    RegistrationRecord: ("header", "recipients", "breakdown", "corrected_invoices", "replaced_invoices"),
    CancellationRecord: ("header",),
    ResponseItem: ("invoice_id",),
    AeatResponse: ("items",),
}


def _field_violations(entity: object) -> Iterator[Violation]:
    for name, rules in FIELD_RULES[type(entity)]:
        value = getattr(entity, name)
        for rule in rules:
            message = rule.check(value)
            if message is not None:
                yield Violation(name, message)
                # later rules assume earlier ones passed
                break


def _nested_violations(entity: object) -> Iterator[Violation]:
    for name in NESTED.get(type(entity), ()):
        value = getattr(entity, name)
        if value is None:
            continue
        if isinstance(value, tuple | list):
            for i, item in enumerate(value):
                yield from _prefixed(f"{name}[{i}]", _collect(item))
        else:
            yield from _prefixed(name, _collect(value))


def _prefixed(prefix: str, violations: list[Violation]) -> Iterator[Violation]:
    for v in violations:
        yield Violation(f"{prefix}.{v.path}", v.message)


def _collect(entity: object) -> list[Violation]:
    if type(entity) not in FIELD_RULES:
        raise TypeError(f"No validation rules for {type(entity).__name__}")
    violations = list(_field_violations(entity))
    for check in CROSS_FIELD_CHECKS.get(type(entity), ()):
        violations.extend(check(entity))
    violations.extend(_nested_violations(entity))
    return violations


def validate(entity: object) -> list[Violation]:
    """Return every constraint violation found in *entity* and its nested entities.

    An empty list means the entity is valid. Business-rule failures are
    never raised; see :func:`ensure_valid` for the raising variant.
    """
    violations = _collect(entity)
    logger.debug("Validated %s: %d violation(s)", type(entity).__name__, len(violations))
    return violations


def ensure_valid(entity: object) -> None:
    """Raise InvalidModelError carrying all violations if *entity* is not valid."""
    violations = validate(entity)
    if violations:
        raise InvalidModelError(entity, violations)
