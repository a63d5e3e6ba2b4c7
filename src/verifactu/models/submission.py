from __future__ import annotations

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class VoluntaryDiscontinuation:
    """RemisionVoluntaria: notice that the taxpayer stops sending records.

    The end date should fall at the end of the current fiscal year.
    """

    end_date: date | None = None
    incident: bool = False


@dataclass(frozen=True)
class RequirementSubmission:
    """RemisionRequerimiento: records sent in answer to an agency requirement."""

    reference: str
    is_end: bool | None = None
