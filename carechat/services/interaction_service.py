"""
Interaction Service

Runs one inbound interaction end to end:
tenant resolution -> identity reconciliation -> interlocutor analysis -> conversation state.
The result is the snapshot the downstream dialogue engine consumes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from carechat.clients.external_records_client import HttpExternalRecordGateway
from carechat.config.settings import get_settings
from carechat.domains.conversations.application.use_cases.state_machine import ConversationStateMachine
from carechat.domains.conversations.infrastructure.repositories.conversation_state_repository import (
    ConversationStateRepository,
)
from carechat.domains.patients.application.use_cases.create_lead import CreateLeadUseCase
from carechat.domains.patients.application.use_cases.reconcile_patient import (
    ReconcilePatientUseCase,
    ReconciliationResult,
)
from carechat.domains.patients.domain.services.interlocutor_analyzer import InterlocutorContextAnalyzer
from carechat.domains.patients.infrastructure.repositories.patient_repository import PatientRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from carechat.core.tenancy.context import TenantContext
    from carechat.core.tenancy.context_cache import TenantContextCache
    from carechat.domains.conversations.domain.states import ConversationState
    from carechat.domains.patients.domain.entities.interlocutor_context import InterlocutorContext
    from carechat.domains.patients.domain.entities.patient_record import PatientRecord

logger = logging.getLogger(__name__)


@dataclass
class InteractionSnapshot:
    """Everything the dialogue engine needs for one turn."""

    tenant: TenantContext
    reconciliation: ReconciliationResult | None = None
    record: PatientRecord | None = None
    interlocutor: InterlocutorContext | None = None
    conversation: ConversationState | None = None
    welcome_message: str | None = None
    dialogue_instructions: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "tenant": self.tenant.tenant.to_public_dict(),
            "reconciliation": self.reconciliation.to_dict() if self.reconciliation else None,
            "patient": self.record.to_dict() if self.record else None,
            "interlocutor": self.interlocutor.to_dict() if self.interlocutor else None,
            "welcome_message": self.welcome_message,
            "dialogue_instructions": self.dialogue_instructions,
            "conversation_state": self.conversation.to_dict() if self.conversation else None,
        }
        return data


class InteractionService:
    """
    Orchestrates the resolution and reconciliation engine for one interaction.

    Usage:
        service = InteractionService.for_session(db, cache)
        snapshot = await service.identify("demo", "(85) 99620-1636", conversation_id="conv-1")
    """

    def __init__(
        self,
        tenant_cache: TenantContextCache,
        reconcile_use_case: ReconcilePatientUseCase,
        create_lead_use_case: CreateLeadUseCase,
        state_machine: ConversationStateMachine,
        analyzer: InterlocutorContextAnalyzer | None = None,
    ):
        self.tenant_cache = tenant_cache
        self.reconcile_use_case = reconcile_use_case
        self.create_lead_use_case = create_lead_use_case
        self.state_machine = state_machine
        self.analyzer = analyzer or InterlocutorContextAnalyzer()

    @classmethod
    def for_session(cls, db: AsyncSession, tenant_cache: TenantContextCache) -> InteractionService:
        """Wire the SQLAlchemy and httpx adapters around one session."""
        settings = get_settings()
        patients = PatientRepository(db)
        return cls(
            tenant_cache=tenant_cache,
            reconcile_use_case=ReconcilePatientUseCase(patients, HttpExternalRecordGateway()),
            create_lead_use_case=CreateLeadUseCase(patients, national_id_length=settings.NATIONAL_ID_LENGTH),
            state_machine=ConversationStateMachine(ConversationStateRepository(db)),
        )

    # =========================================================================
    # Main API Methods
    # =========================================================================

    async def identify(
        self,
        tenant_identifier: str,
        raw_phone: str,
        conversation_id: str | None = None,
    ) -> InteractionSnapshot:
        """
        Resolve tenant, reconcile the phone and collect conversation context.

        Raises:
            TenantNotFoundError: Unknown or inactive tenant
            PhoneValidationError: Invalid phone
        """
        tenant = await self.tenant_cache.resolve_or_raise(tenant_identifier)
        return await self.identify_for_tenant(tenant, raw_phone, conversation_id)

    async def identify_for_tenant(
        self,
        tenant: TenantContext,
        raw_phone: str,
        conversation_id: str | None = None,
    ) -> InteractionSnapshot:
        result = await self.reconcile_use_case.execute(tenant, raw_phone)
        snapshot = InteractionSnapshot(tenant=tenant, reconciliation=result, record=result.record)

        if result.record is not None:
            self._analyze(snapshot, result.record)

        if conversation_id:
            snapshot.conversation = await self.state_machine.get_state(conversation_id)

        logger.info(
            f"Interaction identified for tenant {tenant.slug}: {result.status.value}"
            + (f", scenario={snapshot.interlocutor.scenario.value}" if snapshot.interlocutor else "")
        )
        return snapshot

    async def register_lead(
        self,
        tenant: TenantContext,
        phone: str,
        name: str,
        national_id: str,
    ) -> InteractionSnapshot:
        """Create (or update) a LEAD and analyze it."""
        response = await self.create_lead_use_case.execute(tenant, phone, name, national_id)
        snapshot = InteractionSnapshot(tenant=tenant, record=response.record)
        self._analyze(snapshot, response.record)
        return snapshot

    def _analyze(self, snapshot: InteractionSnapshot, record: PatientRecord) -> None:
        context = self.analyzer.analyze(record)
        snapshot.interlocutor = context
        snapshot.welcome_message = self.analyzer.welcome_message(context)
        snapshot.dialogue_instructions = self.analyzer.build_dialogue_instructions(context).to_dict()
