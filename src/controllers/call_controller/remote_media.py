"""
Remote Media Projection

Hands inbound tracks to the renderer exactly once per track.
"""

from typing import Callable, Optional, Set
from tools.logger import log_debug, log_error, log_info
from tools.session_status import CallStatus


class RemoteMediaProjection:

    def __init__(self, on_track: Optional[Callable] = None, status: Optional[CallStatus] = None):
        self.on_track = on_track
        self.status = status
        self.tracks = []
        self._seen: Set[str] = set()

    def handle_track(self, track):
        if track.id in self._seen:
            log_debug(f"Track {track.id} already exposed")
            return
        self._seen.add(track.id)
        self.tracks.append(track)
        log_info(f"Remote {track.kind} track received")

        if self.status:
            self.status.set_status("Remote stream received.")
        if self.on_track:
            try:
                self.on_track(track)
            except Exception as e:
                log_error(f"Error in remote track callback: {e}")
