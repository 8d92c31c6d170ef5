# interview_sim/media.py
"""
Camera preview + answer recording lifecycle.

Two independent capabilities, each owning its own hardware handle:

    camera:    OFF -> ACQUIRING -> LIVE -> OFF
                      ACQUIRING -> ERROR   (needs retry_camera())
                      LIVE -> ERROR        (preview never started playing)
    recorder:  IDLE -> ACQUIRING -> RECORDING -> ENCODING -> IDLE

The actual devices sit behind a MediaBackend (WebRtcBackend in the app, fakes
in tests). Only this controller starts or stops streams, and close() releases
everything on session teardown.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from interview_sim.errors import HardwareUnavailable, MediaError, classify_media_error

logger = logging.getLogger(__name__)

ChunkSink = Callable[[bytes], None]

# Seconds a freshly acquired preview may take to start playing in the browser
CAMERA_START_TIMEOUT = 15.0


class CameraState(str, Enum):
    OFF = "OFF"
    ACQUIRING = "ACQUIRING"
    LIVE = "LIVE"
    ERROR = "ERROR"


class RecorderState(str, Enum):
    IDLE = "IDLE"
    ACQUIRING = "ACQUIRING"
    RECORDING = "RECORDING"
    ENCODING = "ENCODING"


_TAKE_STATES = (RecorderState.ACQUIRING, RecorderState.RECORDING, RecorderState.ENCODING)


class MediaStream:
    """A live hardware handle. stop() releases it and returns any final buffered bytes."""

    def stop(self) -> Optional[bytes]:
        raise NotImplementedError


class MediaBackend:
    def open_stream(self, audio: bool, video: bool, on_chunk: Optional[ChunkSink] = None) -> MediaStream:
        """Acquire devices. Recording streams deliver encoded slices through on_chunk."""
        raise NotImplementedError


@dataclass(frozen=True)
class MediaClip:
    data: bytes
    mime_type: str = "video/webm"

    def to_data_uri(self) -> str:
        b64 = base64.b64encode(self.data).decode("utf-8")
        return f"data:{self.mime_type};base64,{b64}"


class MediaCaptureController:
    def __init__(
        self,
        backend: MediaBackend,
        mime_type: str = "video/webm",
        start_timeout: float = CAMERA_START_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._backend = backend
        self._mime_type = mime_type
        self._start_timeout = start_timeout
        self._clock = clock
        self._lock = threading.Lock()

        self._camera_state = CameraState.OFF
        self._camera_stream: Optional[MediaStream] = None
        self._camera_error: Optional[MediaError] = None
        self._camera_generation = 0
        self._camera_acquired_at = 0.0
        self._camera_playing = False

        self._recorder_state = RecorderState.IDLE
        self._recorder_stream: Optional[MediaStream] = None
        self._recorder_error: Optional[MediaError] = None
        self._chunks: List[bytes] = []

    # -----------------------
    # Camera preview
    # -----------------------
    @property
    def camera_state(self) -> CameraState:
        return self._camera_state

    @property
    def camera_error(self) -> Optional[MediaError]:
        return self._camera_error

    @property
    def camera_live(self) -> bool:
        return self._camera_state == CameraState.LIVE

    @property
    def camera_generation(self) -> int:
        """Bumped on every acquisition; views key their preview widget on it."""
        return self._camera_generation

    @property
    def camera_stream(self) -> Optional[MediaStream]:
        return self._camera_stream

    def enable_camera(self) -> bool:
        if self._camera_state != CameraState.OFF:
            return self._camera_state == CameraState.LIVE

        self._camera_state = CameraState.ACQUIRING
        try:
            stream = self._backend.open_stream(audio=False, video=True)
        except Exception as e:
            self._camera_error = classify_media_error(e, capability="camera")
            self._camera_state = CameraState.ERROR
            logger.warning("Camera acquisition failed (%s): %s", self._camera_error.kind, e)
            return False

        self._camera_stream = stream
        self._camera_generation += 1
        self._camera_acquired_at = self._clock()
        self._camera_playing = False
        self._camera_state = CameraState.LIVE
        logger.info("Camera live (generation %d)", self._camera_generation)
        return True

    def disable_camera(self) -> None:
        stream, self._camera_stream = self._camera_stream, None
        if stream is not None:
            stream.stop()
        if self._camera_state != CameraState.ERROR:
            self._camera_state = CameraState.OFF

    def retry_camera(self) -> bool:
        """Explicit user action that leaves ERROR and re-acquires."""
        if self._camera_state != CameraState.ERROR:
            return self.enable_camera()
        self._camera_error = None
        self._camera_state = CameraState.OFF
        return self.enable_camera()

    def toggle_camera(self) -> bool:
        if self._camera_state == CameraState.ERROR:
            return self.retry_camera()
        if self._camera_state == CameraState.LIVE:
            self.disable_camera()
            return False
        return self.enable_camera()

    def watch_camera(self, playing: bool) -> None:
        """
        Fed by the view on every rerun with whether the browser preview is playing.

        The browser owns device permission, so a refusal or a missing device
        only shows up as a preview that never starts. Past start_timeout the
        camera moves to ERROR and its handle is released.
        """
        if self._camera_state != CameraState.LIVE or self._camera_playing:
            return
        if playing:
            self._camera_playing = True
            return
        if self._clock() - self._camera_acquired_at < self._start_timeout:
            return

        self.disable_camera()
        self._camera_error = HardwareUnavailable(
            "Camera did not start. Check that it is connected and that the browser allows camera access.",
            capability="camera",
        )
        self._camera_state = CameraState.ERROR
        logger.warning("Camera preview did not start within %gs", self._start_timeout)

    # -----------------------
    # Recording
    # -----------------------
    @property
    def recorder_state(self) -> RecorderState:
        return self._recorder_state

    @property
    def recorder_error(self) -> Optional[MediaError]:
        return self._recorder_error

    @property
    def is_recording(self) -> bool:
        return self._recorder_state == RecorderState.RECORDING

    @property
    def recorder_stream(self) -> Optional[MediaStream]:
        return self._recorder_stream

    def start_recording(self) -> bool:
        with self._lock:
            if self._recorder_state != RecorderState.IDLE:
                return False
            self._recorder_state = RecorderState.ACQUIRING
            self._recorder_error = None
            self._chunks = []

        try:
            stream = self._backend.open_stream(audio=True, video=True, on_chunk=self.push_chunk)
        except Exception as e:
            self._recorder_error = classify_media_error(e, capability="microphone/camera")
            with self._lock:
                self._recorder_state = RecorderState.IDLE
            logger.warning("Recording acquisition failed (%s): %s", self._recorder_error.kind, e)
            return False

        with self._lock:
            self._recorder_stream = stream
            self._recorder_state = RecorderState.RECORDING
        logger.info("Recording started")
        return True

    def push_chunk(self, data: bytes) -> None:
        """
        Called from the media thread with each time slice of encoded output.

        The encoder may emit while the stream is still being opened and again
        while stop() flushes its trailer, so every state of an active take
        accepts chunks. Only IDLE (no take, or after close()) drops them.
        """
        if not data:
            return
        with self._lock:
            if self._recorder_state in _TAKE_STATES:
                self._chunks.append(bytes(data))

    async def stop_recording(self) -> Optional[str]:
        """Stop, release the devices, and return the clip as a data URI (None if not recording)."""
        with self._lock:
            if self._recorder_state != RecorderState.RECORDING:
                return None
            self._recorder_state = RecorderState.ENCODING
            stream, self._recorder_stream = self._recorder_stream, None

        try:
            tail = stream.stop() if stream is not None else None
            with self._lock:
                if tail:
                    self._chunks.append(bytes(tail))
                blob, self._chunks = b"".join(self._chunks), []
            clip = MediaClip(blob, self._mime_type)
            data_uri = await asyncio.to_thread(clip.to_data_uri)
            logger.info("Recording encoded (%d bytes)", len(blob))
            return data_uri
        finally:
            with self._lock:
                self._recorder_state = RecorderState.IDLE

    async def toggle_recording(self) -> Optional[str]:
        if self.is_recording:
            return await self.stop_recording()
        self.start_recording()
        return None

    # -----------------------
    # Teardown
    # -----------------------
    def close(self) -> None:
        """Release every hardware handle. Safe to call repeatedly."""
        self.disable_camera()
        with self._lock:
            stream, self._recorder_stream = self._recorder_stream, None
            self._chunks = []
            self._recorder_state = RecorderState.IDLE
        if stream is not None:
            stream.stop()
        logger.debug("Media handles released")
