"""
External Record Entity

Domain entity representing a contact from a tenant's external system of record.
The attribute bag is tenant-defined: a small fixed set of keys is mapped
explicitly, everything else is kept as an opaque pass-through map.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from carechat.core.shared.phone_normalizer import normalize_phone

from ..value_objects import AssociationCategory

# Mapped field -> accepted attribute keys, first non-empty wins
ATTRIBUTE_ALIASES: dict[str, tuple[str, ...]] = {
    "phone": ("telefone", "phone", "whatsapp", "celular"),
    "name": ("nome_completo", "full_name", "name"),
    "email": ("email",),
    "national_id": ("cpf", "national_id"),
    "association_category": ("tipo_associacao", "association_category"),
    "responsible_name": ("nome_responsavel", "nome_completo_responc", "responsible_name"),
    "responsible_national_id": ("cpf_responsavel", "responsible_national_id"),
}

# Keys the external system must provide for a record to be considered complete
REQUIRED_ATTRIBUTES = ("phone", "name", "association_category")

_MAPPED_KEYS = frozenset(key for aliases in ATTRIBUTE_ALIASES.values() for key in aliases)


class MalformedExternalRecord(ValueError):
    """Raised when an external payload item cannot be interpreted as a record."""


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass
class AttributeValidation:
    """Outcome of validating an external attribute bag."""

    missing_fields: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.missing_fields


@dataclass
class ExternalRecord:
    """
    Contact record from the external system of record.

    Attributes:
        external_id: Identifier in the external system
        phone: Phone as stored externally (any human format)
        name / email / national_id: Identity data
        association_category: Raw category value (e.g. assoc_paciente)
        responsible_name / responsible_national_id: Responsible third party
        attributes: Unmapped attribute bag entries (opaque)
        attribute_bag_valid: False when the bag was missing or not a mapping
    """

    external_id: str
    phone: str | None = None
    name: str | None = None
    email: str | None = None
    national_id: str | None = None
    association_category: str | None = None
    responsible_name: str | None = None
    responsible_national_id: str | None = None
    attributes: dict[str, Any] = field(default_factory=dict)
    attribute_count: int = 0
    attribute_bag_valid: bool = True

    @property
    def normalized_phone(self) -> str:
        return normalize_phone(self.phone)

    @property
    def category(self) -> AssociationCategory | None:
        return AssociationCategory.parse(self.association_category)

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> ExternalRecord:
        """
        Create an ExternalRecord from an API response item.

        The attribute bag is read from `attributes` or `acf`. Top-level
        `name`/`email` are used when the bag does not provide them.

        Raises:
            MalformedExternalRecord: If the item is not a mapping or has no id
        """
        if not isinstance(data, dict):
            raise MalformedExternalRecord(f"Expected an object, got {type(data).__name__}")

        external_id = _clean(data.get("id"))
        if external_id is None:
            raise MalformedExternalRecord("External record without id")

        raw_bag = data.get("attributes", data.get("acf"))
        bag_valid = isinstance(raw_bag, dict) and bool(raw_bag)
        bag: dict[str, Any] = raw_bag if isinstance(raw_bag, dict) else {}

        mapped: dict[str, str | None] = {}
        for target, aliases in ATTRIBUTE_ALIASES.items():
            mapped[target] = next((_clean(bag.get(key)) for key in aliases if _clean(bag.get(key))), None)

        # Top-level fields of the user object back the bag
        mapped["name"] = mapped["name"] or _clean(data.get("name"))
        mapped["email"] = mapped["email"] or _clean(data.get("email"))
        mapped["phone"] = mapped["phone"] or _clean(data.get("phone"))

        opaque = {key: value for key, value in bag.items() if key not in _MAPPED_KEYS}

        return cls(
            external_id=external_id,
            attributes=opaque,
            attribute_count=len(bag),
            attribute_bag_valid=bag_valid,
            **mapped,
        )

    def validate_attributes(self) -> AttributeValidation:
        """Check the attribute bag for the fields reconciliation relies on."""
        result = AttributeValidation()
        if not self.attribute_bag_valid:
            result.missing_fields.extend(REQUIRED_ATTRIBUTES)
            result.warnings.append("attribute bag missing or not an object")
            return result

        for name in REQUIRED_ATTRIBUTES:
            if not getattr(self, name):
                result.missing_fields.append(name)

        if self.association_category and self.category is None:
            result.warnings.append(f"unrecognized association category '{self.association_category}'")

        if self.category == AssociationCategory.RESPONSIBLE_MEDIATED and not self.responsible_name:
            result.warnings.append("responsible-mediated record without responsible name")

        return result

    def to_dict(self) -> dict[str, Any]:
        return {
            "external_id": self.external_id,
            "phone": self.phone,
            "name": self.name,
            "email": self.email,
            "national_id": self.national_id,
            "association_category": self.association_category,
            "responsible_name": self.responsible_name,
            "responsible_national_id": self.responsible_national_id,
            "attributes": self.attributes,
        }
