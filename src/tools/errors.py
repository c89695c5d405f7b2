"""
Call errors.

Every failure the signaling core reports to its caller is a CallError. The
error_type string is what ends up in logs and in the CLI error line.
"""

from typing import Optional


class CallError(Exception):
    """Base class for call setup and signaling failures."""

    error_type = "call_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class MediaAcquisitionError(CallError):
    """Local capture device unavailable or access denied."""

    error_type = "media_acquisition"


class InvalidRoomIdError(CallError, ValueError):
    """Join was attempted with an empty room identifier."""

    error_type = "invalid_room_id"


class RoomNotFoundError(CallError):
    """The callee looked up a room that does not exist."""

    error_type = "room_not_found"

    def __init__(self, room_id: str):
        self.room_id = room_id
        super().__init__(f"Room {room_id} not found. Please check the room id.")


class OfferMissingError(CallError):
    """The room exists but the caller has not published its offer yet."""

    error_type = "offer_missing"

    def __init__(self, room_id: str):
        self.room_id = room_id
        super().__init__(
            f"No offer found in room {room_id}. "
            "Wait for the other participant to finish creating the room."
        )


class CandidateIngestionError(CallError):
    """A single inbound ICE candidate could not be applied."""

    error_type = "candidate_ingestion"

    def __init__(self, record_id: str, message: str):
        self.record_id = record_id
        super().__init__(f"Candidate {record_id}: {message}")


class SignalingWriteError(CallError):
    """A store write for an offer, answer or candidate failed."""

    error_type = "signaling_write"

    def __init__(self, target: str, cause: Optional[BaseException] = None):
        self.target = target
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Failed to write {target}{detail}")


class NegotiationStateError(CallError):
    """Illegal state transition or misuse of a session."""

    error_type = "negotiation_state"


class SignalingWatchError(CallError):
    """A room or candidate collection watch stopped because the store failed."""

    error_type = "signaling_watch"

    def __init__(self, target: str, cause: Optional[BaseException] = None):
        self.target = target
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Lost watch on {target}{detail}")
