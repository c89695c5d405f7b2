from .acquire_local_media import LocalMedia, acquire_local_media
from .mutable_audio_track import MutableAudioTrack

__all__ = ["LocalMedia", "MutableAudioTrack", "acquire_local_media"]
