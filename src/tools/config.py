"""
Runtime configuration.

Every value is read from the environment once at import time. The CLI flags
in index.py override the ones that matter per invocation.
"""

import os
from typing import List


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


## Signaling store
SIGNALING_STORE = os.getenv("SIGNALING_STORE", "memory")
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
REDIS_BLOCK_MS = int(os.getenv("REDIS_BLOCK_MS", "5000"))

## Room layout inside the store
ROOMS_COLLECTION = os.getenv("ROOMS_COLLECTION", "rooms")
OFFER_FIELD = "offer"
ANSWER_FIELD = "answer"
OFFER_CANDIDATES = "offerCandidates"
ANSWER_CANDIDATES = "answerCandidates"

## ICE
STUN_SERVERS = _split_list(
    os.getenv("STUN_SERVERS", "stun:stun.l.google.com:19302")
)

## Local media capture (ffmpeg device names understood by aiortc's MediaPlayer)
VIDEO_SOURCE = os.getenv("VIDEO_SOURCE", "/dev/video0")
VIDEO_FORMAT = os.getenv("VIDEO_FORMAT", "v4l2")
VIDEO_SIZE = os.getenv("VIDEO_SIZE", "640x480")
VIDEO_FRAMERATE = os.getenv("VIDEO_FRAMERATE", "30")
AUDIO_SOURCE = os.getenv("AUDIO_SOURCE", "default")
AUDIO_FORMAT = os.getenv("AUDIO_FORMAT", "pulse")

## Logging
CALL_LOG_DIR = os.getenv("CALL_LOG_DIR")
