from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from verifactu.services.validation import Violation


class DocumentImportError(ValueError):
    """A record document is missing a required element or holds an unknown value."""

    def __init__(self, message: str, element: str | None = None) -> None:
        super().__init__(message)
        self.element = element


class InvalidModelError(ValueError):
    """An entity failed validation. Carries every violation found, not just the first."""

    def __init__(self, entity: object, violations: Sequence[Violation]) -> None:
        self.entity_name = type(entity).__name__
        self.violations = list(violations)
        super().__init__("Invalid instance of model class:\n" + self._human_representation())

    def _human_representation(self) -> str:
        lines = []
        for v in self.violations:
            lines.append(f"- {self.entity_name}.{v.path}:\n    {v.message}")
        return "\n".join(lines)


class AeatResponseError(RuntimeError):
    """The agency answered with a SOAP fault or a document that cannot be parsed."""

    def __init__(self, message: str, response: str | None = None) -> None:
        super().__init__(message)
        self.response = response or ""
