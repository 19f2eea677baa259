"""CareChat: tenant resolution, patient identity reconciliation and conversation state."""

__version__ = "0.1.0"
