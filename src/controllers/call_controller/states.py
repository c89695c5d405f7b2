from enum import Enum
from tools.config import (
    ANSWER_CANDIDATES,
    ANSWER_FIELD,
    OFFER_CANDIDATES,
    OFFER_FIELD,
)


class SessionRole(Enum):
    """Role of a participant, fixed for the lifetime of a session."""
    CALLER = "caller"   # Creates the room and publishes the offer
    CALLEE = "callee"   # Joins the room and publishes the answer

    @property
    def description_field(self) -> str:
        """Room field this role writes its description to."""
        return OFFER_FIELD if self is SessionRole.CALLER else ANSWER_FIELD

    @property
    def peer_description_field(self) -> str:
        return ANSWER_FIELD if self is SessionRole.CALLER else OFFER_FIELD

    @property
    def outbound_collection(self) -> str:
        """Candidate collection this role appends to."""
        return OFFER_CANDIDATES if self is SessionRole.CALLER else ANSWER_CANDIDATES

    @property
    def inbound_collection(self) -> str:
        """Candidate collection this role watches."""
        return ANSWER_CANDIDATES if self is SessionRole.CALLER else OFFER_CANDIDATES


class NegotiationState(Enum):
    """Offer/answer negotiation states."""
    IDLE = "idle"
    LOCAL_MEDIA_READY = "local_media_ready"
    # Caller
    OFFER_CREATED = "offer_created"
    OFFER_PUBLISHED = "offer_published"
    AWAITING_ANSWER = "awaiting_answer"
    # Callee
    AWAITING_OFFER = "awaiting_offer"
    OFFER_FETCHED = "offer_fetched"
    ANSWER_CREATED = "answer_created"
    AWAITING_CONNECTION = "awaiting_connection"

    CONNECTED = "connected"
    CLOSED = "closed"


_CALLER_TRANSITIONS = {
    NegotiationState.IDLE: {NegotiationState.LOCAL_MEDIA_READY},
    NegotiationState.LOCAL_MEDIA_READY: {NegotiationState.OFFER_CREATED},
    NegotiationState.OFFER_CREATED: {NegotiationState.OFFER_PUBLISHED},
    NegotiationState.OFFER_PUBLISHED: {NegotiationState.AWAITING_ANSWER},
    NegotiationState.AWAITING_ANSWER: {NegotiationState.CONNECTED},
    NegotiationState.CONNECTED: set(),
}

_CALLEE_TRANSITIONS = {
    NegotiationState.IDLE: {NegotiationState.LOCAL_MEDIA_READY},
    NegotiationState.LOCAL_MEDIA_READY: {NegotiationState.AWAITING_OFFER},
    NegotiationState.AWAITING_OFFER: {NegotiationState.OFFER_FETCHED},
    NegotiationState.OFFER_FETCHED: {NegotiationState.ANSWER_CREATED},
    NegotiationState.ANSWER_CREATED: {NegotiationState.AWAITING_CONNECTION},
    NegotiationState.AWAITING_CONNECTION: {NegotiationState.CONNECTED},
    NegotiationState.CONNECTED: set(),
}

TRANSITIONS = {
    SessionRole.CALLER: _CALLER_TRANSITIONS,
    SessionRole.CALLEE: _CALLEE_TRANSITIONS,
}


def can_transition(role: SessionRole, current: NegotiationState, target: NegotiationState) -> bool:
    """Whether a role may move from current to target. CLOSED is always reachable."""
    if current is NegotiationState.CLOSED:
        return False
    if target is NegotiationState.CLOSED:
        return True
    return target in TRANSITIONS[role].get(current, set())
