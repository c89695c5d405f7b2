"""
Call Controller

Two-party audio/video calls negotiated through a shared room in the
signaling store. The caller creates the room and publishes an offer, the
callee joins it and publishes an answer, and both trickle ICE candidates
through per-role candidate collections.
"""

from .engine import PeerConnectionEngine
from .session_manager import CallSession
from .states import NegotiationState, SessionRole

__all__ = ["CallSession", "NegotiationState", "PeerConnectionEngine", "SessionRole"]
