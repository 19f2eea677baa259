"""
Patients Domain

Identity reconciliation of phone contacts against the tenant's external
system of record, and interlocutor analysis of the reconciled record.

Architecture:
- application/: Use cases and port interfaces
- domain/: Entities, value objects and the interlocutor analyzer
- infrastructure/: SQLAlchemy repository
"""

__all__: list[str] = []
