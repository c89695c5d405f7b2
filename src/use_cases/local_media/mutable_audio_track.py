"""
Mutable Audio Track

Relays an audio track and replaces its samples with silence while muted.
Frames keep flowing while muted so the remote jitter buffer and RTP timing
are unaffected.
"""

from aiortc import MediaStreamTrack
from av import AudioFrame


class MutableAudioTrack(MediaStreamTrack):
    """Audio track wrapper with a mute switch."""

    kind = "audio"

    def __init__(self, source: MediaStreamTrack):
        super().__init__()
        self._source = source
        self.muted = False

    async def recv(self) -> AudioFrame:
        frame = await self._source.recv()
        if self.muted:
            for plane in frame.planes:
                plane.update(bytes(plane.buffer_size))
        return frame

    def stop(self):
        super().stop()
        self._source.stop()
