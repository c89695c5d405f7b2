"""Signaling record codec tests."""

import pytest
from aiortc import RTCSessionDescription

from controllers.call_controller.signaling.codec import (
    candidate_from_record,
    candidate_to_record,
    description_from_record,
    description_to_record,
)
from tools.contract_validation import ContractValidationError
from conftest import make_candidate


BROWSER_CANDIDATE = {
    "candidate": (
        "candidate:842163049 1 udp 1677729535 203.0.113.7 46154 typ srflx "
        "raddr 10.0.0.2 rport 46154 generation 0 ufrag EsAw network-cost 999"
    ),
    "sdpMid": "0",
    "sdpMLineIndex": 0,
    "usernameFragment": "EsAw",
}


def test_candidate_record_uses_browser_shape():
    record = candidate_to_record(make_candidate(3, mid="1"))

    assert record["candidate"].startswith("candidate:3 1 udp ")
    assert record["sdpMid"] == "1"
    assert record["sdpMLineIndex"] == 0
    assert "usernameFragment" in record


def test_browser_candidate_record_is_parsed():
    candidate = candidate_from_record(BROWSER_CANDIDATE)

    assert candidate.foundation == "842163049"
    assert candidate.ip == "203.0.113.7"
    assert candidate.port == 46154
    assert candidate.type == "srflx"
    assert candidate.relatedAddress == "10.0.0.2"
    assert candidate.sdpMid == "0"
    assert candidate.sdpMLineIndex == 0


def test_published_candidate_can_be_ingested_by_peer():
    original = make_candidate(7)

    parsed = candidate_from_record(candidate_to_record(original))

    assert (parsed.ip, parsed.port, parsed.type) == (original.ip, original.port, original.type)


def test_candidate_record_without_candidate_field_is_rejected():
    with pytest.raises(ContractValidationError) as excinfo:
        candidate_from_record({"sdpMid": "0", "sdpMLineIndex": 0})

    assert excinfo.value.error_type == "missing_field"


def test_candidate_record_with_wrong_types_is_rejected():
    with pytest.raises(ContractValidationError) as excinfo:
        candidate_from_record({"candidate": "candidate:1 1 udp 1 1.2.3.4 5 typ host", "sdpMLineIndex": "0"})

    assert excinfo.value.error_type == "invalid_type"


@pytest.mark.parametrize("line", ["candidate:", "candidate:garbage", "candidate:1 1 udp x 1.2.3.4 5 typ host"])
def test_unparseable_candidate_line_raises_value_error(line):
    with pytest.raises(ValueError):
        candidate_from_record({"candidate": line, "sdpMid": "0", "sdpMLineIndex": 0})


def test_description_record_keeps_type_and_sdp():
    description = RTCSessionDescription(sdp="v=0\r\n", type="offer")

    assert description_to_record(description) == {"type": "offer", "sdp": "v=0\r\n"}
    assert description_from_record({"type": "offer", "sdp": "v=0\r\n"}, "offer").sdp == "v=0\r\n"


def test_description_of_unexpected_type_is_rejected():
    with pytest.raises(ContractValidationError) as excinfo:
        description_from_record({"type": "offer", "sdp": "v=0"}, "answer")

    assert excinfo.value.error_type == "invalid_type"


def test_description_must_be_a_mapping():
    with pytest.raises(ContractValidationError):
        description_from_record("v=0", "offer")
