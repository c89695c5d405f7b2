"""
Signaling Record Codec

Converts aiortc descriptions and candidates to the JSON records stored in a
room, and back. Records use the shape of the browser's toJSON() output so a
browser peer can share the same room.
"""

from aiortc import RTCIceCandidate, RTCSessionDescription
from aiortc.sdp import candidate_from_sdp, candidate_to_sdp
from tools.contract_validation import (
    ChoiceType,
    NumberType,
    OptionalType,
    StringType,
    validate_record,
)

CANDIDATE_PREFIX = "candidate:"

DESCRIPTION_CONTRACT = {
    "type": ChoiceType("offer", "answer"),
    "sdp": StringType,
}

CANDIDATE_CONTRACT = {
    "candidate": StringType,
    "sdpMid": OptionalType(StringType),
    "sdpMLineIndex": OptionalType(NumberType),
    "usernameFragment": OptionalType(StringType),
}


def description_to_record(description: RTCSessionDescription) -> dict:
    return {"type": description.type, "sdp": description.sdp}


def description_from_record(record: dict, expected_type: str) -> RTCSessionDescription:
    """
    Rebuild a session description read from a room.

    Raises:
        ContractValidationError: the record is malformed or has the wrong type
    """
    contract = dict(DESCRIPTION_CONTRACT, type=ChoiceType(expected_type))
    validate_record(contract, record, expected_type)
    return RTCSessionDescription(sdp=record["sdp"], type=record["type"])


def candidate_to_record(candidate: RTCIceCandidate) -> dict:
    return {
        "candidate": CANDIDATE_PREFIX + candidate_to_sdp(candidate),
        "sdpMid": candidate.sdpMid,
        "sdpMLineIndex": candidate.sdpMLineIndex,
        "usernameFragment": None,
    }


def candidate_from_record(record: dict) -> RTCIceCandidate:
    """
    Rebuild an ICE candidate read from a candidate collection.

    Raises:
        ContractValidationError: the record does not match the contract
        ValueError: the candidate line cannot be parsed
    """
    validate_record(CANDIDATE_CONTRACT, record, "ICE candidate")

    candidate_str = record["candidate"]
    if candidate_str.startswith(CANDIDATE_PREFIX):
        candidate_str = candidate_str[len(CANDIDATE_PREFIX):]
    if not candidate_str.strip():
        raise ValueError("Empty candidate line")

    try:
        candidate = candidate_from_sdp(candidate_str)
    except (AssertionError, IndexError, ValueError) as e:
        raise ValueError(f"Unparseable candidate line: {candidate_str[:50]}") from e

    candidate.sdpMid = record.get("sdpMid")
    index = record.get("sdpMLineIndex")
    candidate.sdpMLineIndex = int(index) if index is not None else None
    return candidate
