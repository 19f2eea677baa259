"""
Conversation State Value Objects

Closed set of conversation states, the allowed-edges table and the static
per-state action lists used to bound the dialogue engine.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ConversationStateName(str, Enum):
    """
    Conversation lifecycle states.

    Valid transitions:
    - GREETING -> AWAITING_PRESCRIPTION, COLLECTING_ORDER_ITEMS, AWAITING_USER_DETAILS
    - AWAITING_PRESCRIPTION -> COLLECTING_ORDER_ITEMS, GREETING
    - COLLECTING_ORDER_ITEMS -> AWAITING_QUOTE_CONFIRMATION, AWAITING_PRESCRIPTION, AWAITING_USER_DETAILS
    - AWAITING_QUOTE_CONFIRMATION -> AWAITING_PAYMENT, COLLECTING_ORDER_ITEMS, AWAITING_USER_DETAILS
    - AWAITING_USER_DETAILS -> AWAITING_PAYMENT, AWAITING_QUOTE_CONFIRMATION
    - AWAITING_PAYMENT -> ORDER_CONFIRMED, AWAITING_QUOTE_CONFIRMATION
    - ORDER_CONFIRMED -> GREETING (new cycle, nothing is absorbing)
    """

    GREETING = "greeting"
    AWAITING_PRESCRIPTION = "awaiting_prescription"
    COLLECTING_ORDER_ITEMS = "collecting_order_items"
    AWAITING_QUOTE_CONFIRMATION = "awaiting_quote_confirmation"
    AWAITING_USER_DETAILS = "awaiting_user_details"
    AWAITING_PAYMENT = "awaiting_payment"
    ORDER_CONFIRMED = "order_confirmed"

    def can_transition_to(self, target: ConversationStateName) -> bool:
        """Check if transition to target is an allowed edge."""
        return target in TRANSITIONS[self]

    def next_states(self) -> tuple[ConversationStateName, ...]:
        return TRANSITIONS[self]

    def actions(self) -> tuple[str, ...]:
        return STATE_ACTIONS[self]


INITIAL_STATE = ConversationStateName.GREETING

_S = ConversationStateName

TRANSITIONS: dict[ConversationStateName, tuple[ConversationStateName, ...]] = {
    _S.GREETING: (_S.AWAITING_PRESCRIPTION, _S.COLLECTING_ORDER_ITEMS, _S.AWAITING_USER_DETAILS),
    _S.AWAITING_PRESCRIPTION: (_S.COLLECTING_ORDER_ITEMS, _S.GREETING),
    _S.COLLECTING_ORDER_ITEMS: (_S.AWAITING_QUOTE_CONFIRMATION, _S.AWAITING_PRESCRIPTION, _S.AWAITING_USER_DETAILS),
    _S.AWAITING_QUOTE_CONFIRMATION: (_S.AWAITING_PAYMENT, _S.COLLECTING_ORDER_ITEMS, _S.AWAITING_USER_DETAILS),
    _S.AWAITING_USER_DETAILS: (_S.AWAITING_PAYMENT, _S.AWAITING_QUOTE_CONFIRMATION),
    _S.AWAITING_PAYMENT: (_S.ORDER_CONFIRMED, _S.AWAITING_QUOTE_CONFIRMATION),
    _S.ORDER_CONFIRMED: (_S.GREETING,),
}

# Actions the dialogue engine may attempt in each state
STATE_ACTIONS: dict[ConversationStateName, tuple[str, ...]] = {
    _S.GREETING: ("build_welcome_message", "search_products", "request_prescription", "send_message"),
    _S.AWAITING_PRESCRIPTION: ("request_prescription_upload", "send_message"),
    _S.COLLECTING_ORDER_ITEMS: ("search_products", "generate_order_quote", "send_message"),
    _S.AWAITING_QUOTE_CONFIRMATION: ("get_payment_instructions", "generate_order_quote", "send_message"),
    _S.AWAITING_USER_DETAILS: ("request_user_details", "send_message"),
    _S.AWAITING_PAYMENT: ("get_payment_instructions", "send_order_confirmation", "send_message"),
    _S.ORDER_CONFIRMED: ("send_order_confirmation", "build_welcome_message", "send_message"),
}

STATE_PROMPTS: dict[ConversationStateName, str] = {
    _S.GREETING: (
        "The patient is starting a new conversation. Determine if they need prescription guidance, "
        "want to place an order, or need other assistance."
    ),
    _S.AWAITING_PRESCRIPTION: (
        "The patient needs to provide a prescription. Guide them to upload a clear photo of their "
        "medical prescription."
    ),
    _S.COLLECTING_ORDER_ITEMS: (
        "The patient is building an order. Help them find products and collect quantities. "
        "When they have selected items, generate a quote."
    ),
    _S.AWAITING_QUOTE_CONFIRMATION: (
        "A quote has been presented to the patient. Wait for their confirmation (yes/no). "
        "If yes, proceed to payment instructions."
    ),
    _S.AWAITING_USER_DETAILS: (
        "Patient details are needed for order processing. Collect name, phone, and delivery address "
        "if not already available."
    ),
    _S.AWAITING_PAYMENT: (
        "Payment instructions have been provided. Wait for payment confirmation or questions about "
        "payment methods."
    ),
    _S.ORDER_CONFIRMED: (
        "Order has been confirmed and paid. Provide order confirmation message and next steps information."
    ),
}

LEAD_PROMPT_NOTE = (
    "IMPORTANT: This patient is a LEAD (incomplete profile). Focus on collecting missing information "
    "to convert them to a full member. Explain the association process when appropriate."
)
MEMBER_PROMPT_NOTE = (
    "IMPORTANT: This patient is a full MEMBER with complete profile data. Provide personalized service "
    "using their available information."
)


def state_context_prompt(
    state: ConversationStateName,
    state_data: dict[str, Any] | None = None,
    membership: str | None = None,
) -> str:
    """Guidance text for the dialogue engine in the given state."""
    prompt = STATE_PROMPTS[state]
    if membership == "LEAD":
        prompt += f"\n\n{LEAD_PROMPT_NOTE}"
    elif membership == "MEMBER":
        prompt += f"\n\n{MEMBER_PROMPT_NOTE}"
    if state_data:
        prompt += f"\n\nContext data: {json.dumps(state_data, ensure_ascii=False, default=str)}"
    return prompt


@dataclass
class ConversationState:
    """Persisted state of one conversation."""

    conversation_id: str
    current_state: ConversationStateName = INITIAL_STATE
    state_data: dict[str, Any] = field(default_factory=dict)
    updated_at: datetime | None = None

    @property
    def valid_next_states(self) -> tuple[ConversationStateName, ...]:
        return self.current_state.next_states()

    @property
    def valid_actions(self) -> tuple[str, ...]:
        return self.current_state.actions()

    def to_dict(self) -> dict[str, Any]:
        return {
            "conversation_id": self.conversation_id,
            "current_state": self.current_state.value,
            "state_data": dict(self.state_data),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "valid_next_states": [s.value for s in self.valid_next_states],
            "valid_actions": list(self.valid_actions),
        }
