"""Patient domain entities."""

from .external_record import AttributeValidation, ExternalRecord, MalformedExternalRecord
from .interlocutor_context import (
    AddressingMode,
    AddressingRules,
    DialogueInstructions,
    FallbackReason,
    InterlocutorContext,
    InterlocutorScenario,
)
from .patient_record import PatientRecord

__all__ = [
    "AddressingMode",
    "AddressingRules",
    "AttributeValidation",
    "DialogueInstructions",
    "ExternalRecord",
    "FallbackReason",
    "InterlocutorContext",
    "InterlocutorScenario",
    "MalformedExternalRecord",
    "PatientRecord",
]
