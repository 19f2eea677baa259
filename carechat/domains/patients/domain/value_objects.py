"""
Patient domain value objects.
"""

from __future__ import annotations

from enum import Enum


class MembershipStatus(str, Enum):
    """Whether the contact was confirmed by the tenant's external system of record."""

    LEAD = "LEAD"  # Known only by phone (+ name/national id)
    MEMBER = "MEMBER"  # Confirmed in the external system


class SyncStatus(str, Enum):
    """Synchronization state of the local record against the external system."""

    PENDING = "pending"
    PARTIAL = "partial"
    SYNCED = "synced"


class AssociationCategory(str, Enum):
    """How the patient relates to the association."""

    DIRECT_PATIENT = "direct_patient"  # The patient talks for themselves
    RESPONSIBLE_MEDIATED = "responsible_mediated"  # A responsible third party talks for the patient

    @classmethod
    def parse(cls, value: str | None) -> AssociationCategory | None:
        """
        Map a stored or external value to a category.

        Accepts the canonical values and the external system's
        `assoc_paciente` / `assoc_respon` codes. Returns None for unset or
        unrecognized values.
        """
        if not value:
            return None
        key = value.strip().lower()
        return _CATEGORY_ALIASES.get(key)


_CATEGORY_ALIASES: dict[str, AssociationCategory] = {
    "direct_patient": AssociationCategory.DIRECT_PATIENT,
    "patient": AssociationCategory.DIRECT_PATIENT,
    "assoc_paciente": AssociationCategory.DIRECT_PATIENT,
    "paciente": AssociationCategory.DIRECT_PATIENT,
    "responsible_mediated": AssociationCategory.RESPONSIBLE_MEDIATED,
    "responsible": AssociationCategory.RESPONSIBLE_MEDIATED,
    "assoc_respon": AssociationCategory.RESPONSIBLE_MEDIATED,
    "responsavel": AssociationCategory.RESPONSIBLE_MEDIATED,
}


def canonical_category(value: str | None) -> str | None:
    """Canonical category value, or the raw value when unrecognized (kept for fallback logging)."""
    category = AssociationCategory.parse(value)
    if category is not None:
        return category.value
    return value.strip() if value and value.strip() else None
