"""Test doubles for the media collaborators."""
import io

from providers.media_provider import MediaInspector


class FakeMediaInspector(MediaInspector):
    """Stands in for ffmpeg: fixed duration, writes a dummy thumbnail."""

    def __init__(self, duration=12.0, thumbnail=True):
        self.duration = duration
        self.thumbnail = thumbnail
        self.probed = []
        self.thumbnails = []

    async def probe_duration(self, path):
        self.probed.append(path)
        return self.duration

    async def make_thumbnail(self, path, target, at_seconds):
        self.thumbnails.append((path, target, at_seconds))
        if not self.thumbnail:
            return False
        with open(target, "wb") as f:
            f.write(b"jpeg")
        return True


class FakeUpload:
    """Minimal UploadFile lookalike for service tests."""

    def __init__(self, data=b"fake video bytes", filename="clip.mp4", content_type="video/mp4"):
        self.filename = filename
        self.content_type = content_type
        self._buffer = io.BytesIO(data)

    async def read(self, size=-1):
        return self._buffer.read(size)
