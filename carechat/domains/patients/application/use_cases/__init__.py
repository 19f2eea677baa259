"""
Patient Use Cases
"""

from carechat.domains.patients.application.use_cases.create_lead import (
    CreateLeadResponse,
    CreateLeadUseCase,
)
from carechat.domains.patients.application.use_cases.reconcile_patient import (
    FieldDiscrepancy,
    ReconcilePatientUseCase,
    ReconciliationResult,
    ReconciliationStatus,
    SyncMetadata,
)

__all__ = [
    # Reconciliation
    "ReconcilePatientUseCase",
    "ReconciliationResult",
    "ReconciliationStatus",
    "SyncMetadata",
    "FieldDiscrepancy",
    # Lead registration
    "CreateLeadUseCase",
    "CreateLeadResponse",
]
