"""
Media Provider Classes

Collaborators for uploaded video files, each behind a small abstract interface
so services can be tested with fakes.

- `LocalMediaStore`: Writes uploads and thumbnails under ``MEDIA_ROOT`` with
  generated filenames and maps them to ``/media/...`` URLs served by
  `StaticFiles`.
- `FFmpegMediaInspector`: Probes duration and grabs a 320x180 thumbnail frame
  with ``ffmpeg-python``. Both calls block, so they run in a worker thread.
  Both are best-effort: failures are logged and reported as ``None``/``False``.
"""

import asyncio
import logging
import os
import secrets
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import ffmpeg

from core.exceptions import MediaProcessingError, PayloadTooLargeError, ValidationError

logger = logging.getLogger(__name__)

MEDIA_URL_PREFIX = "/media"
VIDEO_DIR = "videos"
THUMBNAIL_DIR = "thumbnails"
CHUNK_SIZE = 1024 * 1024

THUMBNAIL_WIDTH = 320
THUMBNAIL_HEIGHT = 180


class MediaStore(ABC):
    """Where uploaded videos and generated thumbnails live"""

    @abstractmethod
    async def save_upload(self, upload: Any) -> str:
        """Persist an upload and return its public URL"""
        pass

    @abstractmethod
    def path_for(self, url: str) -> Optional[str]:
        """Filesystem path behind a public URL (None if not ours)"""
        pass

    @abstractmethod
    def thumbnail_target(self, video_url: str) -> tuple:
        """(filesystem path, public URL) for a video's thumbnail"""
        pass

    @abstractmethod
    def remove(self, url: Optional[str]) -> bool:
        pass


class LocalMediaStore(MediaStore):
    def __init__(self, root: str, max_upload_bytes: int = 100 * 1024 * 1024):
        self.root = root
        self.max_upload_bytes = max_upload_bytes
        os.makedirs(os.path.join(root, VIDEO_DIR), exist_ok=True)
        os.makedirs(os.path.join(root, THUMBNAIL_DIR), exist_ok=True)

    @staticmethod
    def generate_filename(original: Optional[str]) -> str:
        ext = os.path.splitext(original or "")[1].lower() or ".mp4"
        return f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{ext}"

    async def save_upload(self, upload: Any) -> str:
        content_type = getattr(upload, "content_type", None) or ""
        if not content_type.startswith("video/"):
            raise ValidationError("video", content_type or "unknown", "Only video files are allowed")

        filename = self.generate_filename(getattr(upload, "filename", None))
        path = os.path.join(self.root, VIDEO_DIR, filename)

        size = 0
        try:
            with open(path, "wb") as f:
                while True:
                    chunk = await upload.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > self.max_upload_bytes:
                        raise PayloadTooLargeError(size, self.max_upload_bytes)
                    f.write(chunk)
        except PayloadTooLargeError:
            self._unlink(path)
            raise
        except OSError as e:
            self._unlink(path)
            raise MediaProcessingError(filename, str(e)) from e

        logger.info(f"Stored upload {filename} ({size} bytes)")
        return f"{MEDIA_URL_PREFIX}/{VIDEO_DIR}/{filename}"

    def path_for(self, url: str) -> Optional[str]:
        prefix = f"{MEDIA_URL_PREFIX}/"
        if not url or not url.startswith(prefix):
            return None
        relative = url[len(prefix):]
        # No escaping the media root
        if ".." in relative.split("/"):
            return None
        return os.path.join(self.root, *relative.split("/"))

    def thumbnail_target(self, video_url: str) -> tuple:
        stem = os.path.splitext(os.path.basename(video_url))[0]
        name = f"thumbnail_{stem}.jpg"
        return (
            os.path.join(self.root, THUMBNAIL_DIR, name),
            f"{MEDIA_URL_PREFIX}/{THUMBNAIL_DIR}/{name}",
        )

    def remove(self, url: Optional[str]) -> bool:
        if not url:
            return False
        path = self.path_for(url)
        if path is None:
            return False
        return self._unlink(path)

    @staticmethod
    def _unlink(path: str) -> bool:
        try:
            os.remove(path)
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Could not remove media file {path}: {e}")
            return False


class MediaInspector(ABC):
    @abstractmethod
    async def probe_duration(self, path: str) -> Optional[float]:
        """Duration in seconds, or None if it cannot be determined"""
        pass

    @abstractmethod
    async def make_thumbnail(self, path: str, target: str, at_seconds: float) -> bool:
        pass


class FFmpegMediaInspector(MediaInspector):
    """ffprobe/ffmpeg through ffmpeg-python"""

    async def probe_duration(self, path: str) -> Optional[float]:
        try:
            probe = await asyncio.to_thread(ffmpeg.probe, path)
        except (ffmpeg.Error, OSError) as e:
            logger.warning(f"Duration probe failed for {path}: {e}")
            return None

        duration = probe.get("format", {}).get("duration")
        if duration is None:
            # Some containers only report it per stream
            for stream in probe.get("streams", []):
                if stream.get("duration"):
                    duration = stream["duration"]
                    break
        try:
            return float(duration) if duration is not None else None
        except (TypeError, ValueError):
            logger.warning(f"Unreadable duration {duration!r} for {path}")
            return None

    async def make_thumbnail(self, path: str, target: str, at_seconds: float) -> bool:
        vf = (
            f"scale={THUMBNAIL_WIDTH}:{THUMBNAIL_HEIGHT}:force_original_aspect_ratio=decrease,"
            f"pad={THUMBNAIL_WIDTH}:{THUMBNAIL_HEIGHT}:(ow-iw)/2:(oh-ih)/2"
        )

        def _run():
            ffmpeg.input(path, ss=at_seconds) \
                .output(target, vframes=1, vf=vf) \
                .overwrite_output() \
                .run(quiet=True, capture_stderr=True)

        try:
            await asyncio.to_thread(_run)
        except (ffmpeg.Error, OSError) as e:
            logger.warning(f"Thumbnail extraction failed for {path}: {e}")
            return False
        return os.path.exists(target)
