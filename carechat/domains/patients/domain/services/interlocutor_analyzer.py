# ============================================================================
# SCOPE: DOMAIN SERVICE (Patients)
# Description: Determina quién habla (paciente o responsable) a partir del
#              registro reconciliado y genera reglas de tratamiento para el
#              motor de diálogo. Función total: nunca falla por datos.
# Tenant-Aware: No - opera sobre un PatientRecord ya resuelto.
# ============================================================================
"""
Interlocutor Context Analyzer.

Decision table:
    direct_patient                        -> patient, direct
    responsible_mediated + responsible    -> responsible, third person
    responsible_mediated, no responsible  -> patient (missing_responsible_data, ERROR log)
    responsible name == patient name      -> patient (ambiguous_context, WARNING log)
    unset / unrecognized category         -> patient (unknown_association_type, WARNING log)

Usage:
    analyzer = InterlocutorContextAnalyzer()
    context = analyzer.analyze(record)
    rules = analyzer.addressing_rules(context)
"""

from __future__ import annotations

import logging
from typing import Any

from ..entities.interlocutor_context import (
    AddressingMode,
    AddressingRules,
    DialogueInstructions,
    FallbackReason,
    InterlocutorContext,
    InterlocutorScenario,
)
from ..entities.patient_record import PatientRecord
from ..value_objects import AssociationCategory

logger = logging.getLogger(__name__)

# Display name used when a record has no patient name
UNKNOWN_PATIENT_NAME = "Paciente"

_FALLBACK_LOG_LEVELS: dict[FallbackReason, int] = {
    FallbackReason.UNKNOWN_ASSOCIATION_TYPE: logging.WARNING,
    FallbackReason.MISSING_RESPONSIBLE_DATA: logging.ERROR,
    FallbackReason.AMBIGUOUS_CONTEXT: logging.WARNING,
}

_FALLBACK_WELCOME: dict[FallbackReason, str] = {
    FallbackReason.UNKNOWN_ASSOCIATION_TYPE: "Bem-vindo(a) de volta!",
    FallbackReason.MISSING_RESPONSIBLE_DATA: "Bem-vindo(a) ao atendimento!",
    FallbackReason.AMBIGUOUS_CONTEXT: "Bem-vindo(a) de volta!",
}


def _same_person(a: str, b: str) -> bool:
    return " ".join(a.lower().split()) == " ".join(b.lower().split())


class InterlocutorContextAnalyzer:
    """
    Derives the speaker role and addressing rules from a PatientRecord.

    Stateless and free of I/O; safe to share.
    """

    def analyze(self, record: PatientRecord) -> InterlocutorContext:
        """
        Analyze a reconciled record.

        Args:
            record: Patient record

        Returns:
            InterlocutorContext, with fallback_reason set when a fallback fired
        """
        patient_name = (record.name or "").strip()
        if not patient_name:
            logger.warning(f"Patient {record.id} has no name, using placeholder")
            patient_name = UNKNOWN_PATIENT_NAME

        category = record.category
        responsible_name = (record.responsible_name or "").strip() or None

        if category == AssociationCategory.DIRECT_PATIENT:
            return self._patient_context(record, patient_name)

        if category == AssociationCategory.RESPONSIBLE_MEDIATED:
            if responsible_name is None:
                return self._fallback(record, patient_name, FallbackReason.MISSING_RESPONSIBLE_DATA)
            if _same_person(responsible_name, patient_name):
                return self._fallback(record, patient_name, FallbackReason.AMBIGUOUS_CONTEXT)

            return InterlocutorContext(
                scenario=InterlocutorScenario.RESPONSIBLE,
                interlocutor_name=responsible_name,
                patient_name=patient_name,
                addressing_mode=AddressingMode.THIRD_PERSON,
                association_category=category.value,
                responsible_name=responsible_name,
                responsible_national_id=record.responsible_national_id,
            )

        return self._fallback(record, patient_name, FallbackReason.UNKNOWN_ASSOCIATION_TYPE)

    def _patient_context(self, record: PatientRecord, patient_name: str) -> InterlocutorContext:
        return InterlocutorContext(
            scenario=InterlocutorScenario.PATIENT,
            interlocutor_name=patient_name,
            patient_name=patient_name,
            addressing_mode=AddressingMode.DIRECT,
            association_category=AssociationCategory.DIRECT_PATIENT.value,
            responsible_name=record.responsible_name,
            responsible_national_id=record.responsible_national_id,
        )

    def _fallback(self, record: PatientRecord, patient_name: str, reason: FallbackReason) -> InterlocutorContext:
        logger.log(
            _FALLBACK_LOG_LEVELS[reason],
            f"Interlocutor fallback '{reason.value}' for patient {record.id} "
            f"(category={record.association_category!r}), assuming patient",
        )
        return InterlocutorContext(
            scenario=InterlocutorScenario.PATIENT,
            interlocutor_name=patient_name,
            patient_name=patient_name,
            addressing_mode=AddressingMode.DIRECT,
            association_category=record.association_category or "unknown",
            responsible_name=record.responsible_name,
            responsible_national_id=record.responsible_national_id,
            fallback_reason=reason,
        )

    # =========================================================================
    # Derived outputs (pure)
    # =========================================================================

    @staticmethod
    def addressing_rules(context: InterlocutorContext) -> AddressingRules:
        if context.scenario == InterlocutorScenario.PATIENT:
            return AddressingRules(mode=AddressingMode.DIRECT, pronoun_usage="you", question_formulation="direct")
        return AddressingRules(
            mode=AddressingMode.THIRD_PERSON,
            pronoun_usage="patient_name",
            question_formulation="about_patient",
        )

    @staticmethod
    def welcome_message(context: InterlocutorContext) -> str:
        if context.scenario == InterlocutorScenario.RESPONSIBLE:
            return (
                f"Olá, {context.interlocutor_name}! "
                f"Você está iniciando o atendimento para {context.patient_name}."
            )
        if context.fallback_reason is not None and context.patient_name == UNKNOWN_PATIENT_NAME:
            return _FALLBACK_WELCOME[context.fallback_reason]
        return f"Bem-vindo(a) de volta, {context.patient_name}!"

    def build_dialogue_instructions(self, context: InterlocutorContext) -> DialogueInstructions:
        """Base prompt, contextual rules and message templates for the dialogue engine."""
        patient = context.patient_name
        speaker = context.interlocutor_name

        if context.scenario == InterlocutorScenario.PATIENT:
            base_prompt = (
                f"Você está conversando diretamente com {patient}. "
                'Use pronomes diretos como "você" e se dirija diretamente ao paciente.'
            )
            rules = [
                'Use pronomes diretos: "você", "seu", "sua"',
                'Pergunte diretamente sobre sintomas: "Como você está se sentindo?"',
                "Mantenha tom pessoal e direto",
            ]
            templates = {
                "greeting": f"Olá, {patient}! Como posso ajudá-lo hoje?",
                "symptom_inquiry": "Como você está se sentindo? Pode me contar sobre seus sintomas?",
                "order_confirmation": "Vou confirmar seu pedido. Está tudo correto?",
            }
        else:
            base_prompt = (
                f"Você está conversando com {speaker}, que é responsável pelo paciente {patient}. "
                "Dirija-se ao responsável, mas referencie o paciente em terceira pessoa."
            )
            rules = [
                f"Dirija-se ao responsável: {speaker}",
                f"Referencie o paciente pelo nome: {patient}",
                f'Pergunte sobre o paciente: "Como o(a) {patient} está se sentindo?"',
                "Mantenha clareza sobre quem é o paciente e quem é o responsável",
            ]
            templates = {
                "greeting": f"Olá, {speaker}! Como posso ajudar com o atendimento do(a) {patient}?",
                "symptom_inquiry": f"Como o(a) {patient} está se sentindo? Pode me contar sobre os sintomas?",
                "order_confirmation": f"Vou confirmar o pedido para {patient}. Está tudo correto?",
            }

        return DialogueInstructions(
            base_prompt=base_prompt,
            contextual_rules=rules,
            message_templates=templates,
            addressing=self.addressing_rules(context),
        )

    def build_session_context(self, context: InterlocutorContext, session_id: str, patient_id: str) -> dict[str, Any]:
        """Chat session payload: speaker, patient reference and dialogue instructions."""
        instructions = self.build_dialogue_instructions(context)
        return {
            "session_id": session_id,
            "patient_id": patient_id,
            "interlocutor_context": context.to_dict(),
            "conversation_state": {
                "addressing_mode": instructions.addressing.mode.value,
                "current_speaker": context.interlocutor_name,
                "patient_reference": context.patient_name,
            },
            "ai_instructions": instructions.to_dict(),
        }
