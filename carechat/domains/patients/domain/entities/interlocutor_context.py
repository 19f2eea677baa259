"""
Interlocutor Context

Who is actually speaking in a conversation (the patient or a responsible
third party) and how the dialogue engine must address them. Derived from a
PatientRecord, never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class InterlocutorScenario(str, Enum):
    PATIENT = "patient"
    RESPONSIBLE = "responsible"


class AddressingMode(str, Enum):
    DIRECT = "direct"
    THIRD_PERSON = "third_person"


class FallbackReason(str, Enum):
    """Why the analyzer fell back to the patient scenario."""

    UNKNOWN_ASSOCIATION_TYPE = "unknown_association_type"
    MISSING_RESPONSIBLE_DATA = "missing_responsible_data"
    AMBIGUOUS_CONTEXT = "ambiguous_context"


@dataclass(frozen=True)
class AddressingRules:
    """Addressing rules consumed by the dialogue engine."""

    mode: AddressingMode
    pronoun_usage: str  # "you" | "patient_name"
    question_formulation: str  # "direct" | "about_patient"

    def to_dict(self) -> dict[str, str]:
        return {
            "mode": self.mode.value,
            "pronoun_usage": self.pronoun_usage,
            "question_formulation": self.question_formulation,
        }


@dataclass(frozen=True)
class InterlocutorContext:
    """
    Tagged variant {patient, responsible} with an optional fallback reason.

    Invariants:
        - RESPONSIBLE: interlocutor_name is the responsible name and differs from patient_name
        - PATIENT: interlocutor_name == patient_name
    """

    scenario: InterlocutorScenario
    interlocutor_name: str
    patient_name: str
    addressing_mode: AddressingMode
    association_category: str | None = None
    responsible_name: str | None = None
    responsible_national_id: str | None = None
    fallback_reason: FallbackReason | None = None
    contextual_data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_responsible_scenario(self) -> bool:
        return self.scenario == InterlocutorScenario.RESPONSIBLE

    @property
    def used_fallback(self) -> bool:
        return self.fallback_reason is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "scenario": self.scenario.value,
            "interlocutor_name": self.interlocutor_name,
            "patient_name": self.patient_name,
            "addressing_mode": self.addressing_mode.value,
            "is_responsible_scenario": self.is_responsible_scenario,
            "fallback_reason": self.fallback_reason.value if self.fallback_reason else None,
            "contextual_data": {
                "association_category": self.association_category,
                "responsible_name": self.responsible_name,
                "responsible_national_id": self.responsible_national_id,
                **self.contextual_data,
            },
        }


@dataclass(frozen=True)
class DialogueInstructions:
    """Instructions handed to the dialogue engine for one interlocutor."""

    base_prompt: str
    contextual_rules: list[str]
    message_templates: dict[str, str]
    addressing: AddressingRules

    def to_dict(self) -> dict[str, Any]:
        return {
            "base_prompt": self.base_prompt,
            "contextual_rules": list(self.contextual_rules),
            "message_templates": dict(self.message_templates),
            "addressing": self.addressing.to_dict(),
        }
