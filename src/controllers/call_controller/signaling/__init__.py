"""
Signaling Module

Offer/answer negotiation and ICE candidate relay through the room store.
"""

from .candidate_relay import CandidateRelay
from .negotiation import NegotiationCoordinator

__all__ = ["CandidateRelay", "NegotiationCoordinator"]
