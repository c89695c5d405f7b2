"""Local media acquisition with MediaPlayer replaced by a stand-in."""

import importlib

import pytest
from av import AudioFrame

from tools.errors import MediaAcquisitionError
from use_cases.local_media import LocalMedia, MutableAudioTrack, acquire_local_media
from conftest import FakeTrack

acquire_module = importlib.import_module("use_cases.local_media.acquire_local_media")


class FakePlayer:
    opened = []

    def __init__(self, source, format=None, options=None):
        if source == "/dev/broken":
            raise OSError("Device or resource busy")
        self.source = source
        self.format = format
        self.options = options
        self.audio = None if "video" in source else FakeTrack("audio")
        self.video = None if "audio" in source else FakeTrack("video")
        FakePlayer.opened.append(self)


@pytest.fixture(autouse=True)
def fake_player(monkeypatch):
    FakePlayer.opened = []
    monkeypatch.setattr(acquire_module, "MediaPlayer", FakePlayer)


class FrameSource:
    def __init__(self, frame):
        self.frame = frame
        self.stopped = False

    async def recv(self):
        return self.frame

    def stop(self):
        self.stopped = True


def make_frame(fill: bytes = b"\x07"):
    frame = AudioFrame(format="s16", layout="mono", samples=160)
    for plane in frame.planes:
        plane.update(fill * plane.buffer_size)
    frame.sample_rate = 8000
    return frame


async def test_single_source_provides_both_tracks():
    media = await acquire_local_media(video_source="clip.mp4", video_format=None, audio_source="")

    assert isinstance(media, LocalMedia)
    assert [t.kind for t in media.tracks] == ["audio", "video"]
    assert isinstance(media.audio, MutableAudioTrack)
    assert len(FakePlayer.opened) == 1
    assert FakePlayer.opened[0].options is None


async def test_separate_camera_and_microphone():
    await acquire_local_media(
        video_source="/dev/video0",
        video_format="v4l2",
        audio_source="default-audio",
        audio_format="pulse",
        video_size="1280x720",
        framerate="15",
    )

    camera, microphone = FakePlayer.opened
    assert camera.format == "v4l2"
    assert camera.options == {"video_size": "1280x720", "framerate": "15"}
    assert microphone.format == "pulse"


async def test_missing_audio_track_releases_camera():
    with pytest.raises(MediaAcquisitionError, match="No audio track"):
        await acquire_local_media(video_source="/dev/video0", video_format="v4l2", audio_source="")

    assert FakePlayer.opened[0].video.stopped


async def test_device_open_failure_is_media_acquisition_error():
    with pytest.raises(MediaAcquisitionError, match="busy"):
        await acquire_local_media(video_source="/dev/broken", video_format="v4l2", audio_source="")


async def test_muted_track_sends_silence_of_the_same_shape():
    source = FrameSource(make_frame())
    track = MutableAudioTrack(source)

    live = await track.recv()
    assert bytes(live.planes[0]) != bytes(live.planes[0].buffer_size)

    track.muted = True
    source.frame = make_frame()
    silent = await track.recv()

    assert silent.samples == 160
    assert bytes(silent.planes[0]) == bytes(silent.planes[0].buffer_size)


async def test_local_media_mute_and_stop():
    audio, video = FrameSource(make_frame()), FakeTrack("video")
    media = LocalMedia(audio, video)

    assert media.toggle_mute() is True
    assert media.muted
    assert media.set_muted(False) is False

    media.stop()
    media.stop()
    assert audio.stopped
    assert video.stopped
