"""
Acquire Local Media

Opens the local camera and microphone with aiortc's MediaPlayer (ffmpeg
devices or plain media files) and exposes the tracks to bind to a peer
connection.
"""

from typing import Dict, List, Optional
from aiortc import MediaStreamTrack
from aiortc.contrib.media import MediaPlayer
from tools.config import (
    AUDIO_FORMAT,
    AUDIO_SOURCE,
    VIDEO_FORMAT,
    VIDEO_FRAMERATE,
    VIDEO_SIZE,
    VIDEO_SOURCE,
)
from tools.errors import MediaAcquisitionError
from tools.logger import log_debug, log_info, log_warning
from .mutable_audio_track import MutableAudioTrack


class LocalMedia:
    """
    Local audio and video tracks of one participant.

    The audio track is wrapped in a MutableAudioTrack so it can be muted
    without renegotiating.
    """

    def __init__(self, audio: MediaStreamTrack, video: MediaStreamTrack, players: List[MediaPlayer] = None):
        self.audio = MutableAudioTrack(audio)
        self.video = video
        self._players = players or []
        self._stopped = False

    @property
    def tracks(self) -> List[MediaStreamTrack]:
        return [self.audio, self.video]

    @property
    def muted(self) -> bool:
        return self.audio.muted

    def set_muted(self, muted: bool) -> bool:
        self.audio.muted = muted
        log_info(f"Microphone {'muted' if muted else 'unmuted'}")
        return muted

    def toggle_mute(self) -> bool:
        return self.set_muted(not self.audio.muted)

    def stop(self):
        """Stop every track, which also stops the underlying players."""
        if self._stopped:
            return
        self._stopped = True
        for track in self.tracks:
            try:
                track.stop()
            except Exception as e:
                log_debug(f"Error stopping {track.kind} track: {e}")
        log_info("Local media stopped")


def _open_player(source: str, media_format: Optional[str], options: Dict[str, str]) -> MediaPlayer:
    log_debug(f"Opening media source {source} (format={media_format}, options={options})")
    try:
        return MediaPlayer(source, format=media_format or None, options=options or None)
    except Exception as e:
        raise MediaAcquisitionError(f"Could not open media source {source}: {e}") from e


def _stop_players(players: List[MediaPlayer]):
    for player in players:
        for track in (player.audio, player.video):
            if track is not None:
                track.stop()


async def acquire_local_media(
    video_source: str = VIDEO_SOURCE,
    video_format: Optional[str] = VIDEO_FORMAT,
    audio_source: Optional[str] = AUDIO_SOURCE,
    audio_format: Optional[str] = AUDIO_FORMAT,
    video_size: str = VIDEO_SIZE,
    framerate: str = VIDEO_FRAMERATE,
) -> LocalMedia:
    """
    Acquire a local audio + video track pair.

    Args:
        video_source: Camera device or media file
        video_format: ffmpeg input format of the camera ("v4l2", "avfoundation", ...)
        audio_source: Microphone device; empty to take audio from video_source
        audio_format: ffmpeg input format of the microphone ("pulse", "alsa", ...)
        video_size: Requested capture size, e.g. "640x480"
        framerate: Requested capture frame rate

    Returns:
        LocalMedia with one audio and one video track

    Raises:
        MediaAcquisitionError: a device could not be opened or lacks a track
    """
    players: List[MediaPlayer] = []
    video_options = {}
    if video_format:
        video_options = {"video_size": video_size, "framerate": framerate}

    try:
        video_player = _open_player(video_source, video_format, video_options)
        players.append(video_player)

        if audio_source:
            audio_player = _open_player(audio_source, audio_format, {})
            players.append(audio_player)
        else:
            audio_player = video_player

        if video_player.video is None:
            raise MediaAcquisitionError(f"No video track available from {video_source}")
        if audio_player.audio is None:
            raise MediaAcquisitionError(
                f"No audio track available from {audio_source or video_source}"
            )
    except MediaAcquisitionError:
        log_warning("Local media acquisition failed, releasing opened devices")
        _stop_players(players)
        raise

    log_info("Local media stream acquired")
    return LocalMedia(audio_player.audio, video_player.video, players)
