"""
Unit tests for ExternalRecord mapping and attribute validation.
"""

import pytest

from carechat.domains.patients.domain.entities.external_record import ExternalRecord, MalformedExternalRecord
from carechat.domains.patients.domain.value_objects import AssociationCategory, canonical_category


@pytest.mark.unit
def test_from_response_maps_attribute_bag():
    """Test mapped fields are read from the bag and the rest kept opaque."""
    record = ExternalRecord.from_response(
        {
            "id": 7,
            "name": "joao",
            "email": "joao@example.com",
            "acf": {
                "whatsapp": "(85) 98888-7777",
                "nome_completo": "Maria Silva",
                "tipo_associacao": "assoc_respon",
                "nome_completo_responc": "João Silva",
                "cpf": "123.456.789-00",
                "patologia": "epilepsia",
            },
        }
    )

    assert record.external_id == "7"
    assert record.name == "Maria Silva"
    assert record.email == "joao@example.com"
    assert record.normalized_phone == "85988887777"
    assert record.category == AssociationCategory.RESPONSIBLE_MEDIATED
    assert record.responsible_name == "João Silva"
    assert record.attributes == {"patologia": "epilepsia"}
    assert record.attribute_count == 6


@pytest.mark.unit
def test_blank_alias_falls_through_to_next():
    """Test the first non-empty alias wins."""
    record = ExternalRecord.from_response(
        {"id": "a1", "attributes": {"telefone": "  ", "phone": "85996201636", "full_name": "Ana"}}
    )

    assert record.phone == "85996201636"
    assert record.name == "Ana"


@pytest.mark.unit
@pytest.mark.parametrize("item", [{"name": "no id"}, {"id": "  "}, ["not", "a", "dict"]])
def test_from_response_rejects_malformed(item):
    """Test items without an id or not objects are rejected."""
    with pytest.raises(MalformedExternalRecord):
        ExternalRecord.from_response(item)


@pytest.mark.unit
def test_validate_complete_record():
    """Test a complete bag validates cleanly."""
    record = ExternalRecord.from_response(
        {"id": 1, "attributes": {"telefone": "85996201636", "nome_completo": "Maria", "tipo_associacao": "assoc_paciente"}}
    )

    validation = record.validate_attributes()

    assert validation.is_valid
    assert validation.warnings == []


@pytest.mark.unit
def test_validate_missing_bag():
    """Test a missing bag reports every required field."""
    record = ExternalRecord.from_response({"id": 1, "name": "x", "attributes": []})

    validation = record.validate_attributes()

    assert not validation.is_valid
    assert set(validation.missing_fields) == {"phone", "name", "association_category"}


@pytest.mark.unit
def test_validate_warns_on_unknown_category_and_missing_responsible():
    """Test warnings for unrecognized categories and mediated records without responsible."""
    unknown = ExternalRecord.from_response(
        {"id": 1, "attributes": {"telefone": "85996201636", "nome_completo": "M", "tipo_associacao": "socio"}}
    )
    mediated = ExternalRecord.from_response(
        {"id": 2, "attributes": {"telefone": "85996201636", "nome_completo": "M", "tipo_associacao": "assoc_respon"}}
    )

    assert unknown.validate_attributes().is_valid
    assert "socio" in unknown.validate_attributes().warnings[0]
    assert mediated.validate_attributes().warnings == ["responsible-mediated record without responsible name"]


@pytest.mark.unit
def test_canonical_category():
    """Test external codes map to canonical values and unknown values pass through."""
    assert canonical_category("assoc_paciente") == "direct_patient"
    assert canonical_category(" ASSOC_RESPON ") == "responsible_mediated"
    assert canonical_category("socio") == "socio"
    assert canonical_category("  ") is None
