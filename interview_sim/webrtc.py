# interview_sim/webrtc.py
"""
streamlit-webrtc glue for the media controller.

The browser does the device acquisition when a webrtc_streamer component
starts playing; the Python side owns what happens to the frames. Recording
streams push every audio/video frame through a PyAV WebM muxer whose output
is handed to the controller in ~200 ms slices.
"""

from __future__ import annotations

import logging
import threading
import time
from fractions import Fraction
from typing import Dict, List, Optional

import av
import numpy as np
from av.error import FFmpegError
from streamlit_webrtc import AudioProcessorBase, RTCConfiguration, VideoProcessorBase

from interview_sim.errors import HardwareUnavailable
from interview_sim.media import ChunkSink, MediaBackend, MediaStream

logger = logging.getLogger(__name__)


# --------------------------
# Constants (tune once)
# --------------------------
RTC_CONFIG = RTCConfiguration(
    {"iceServers": [{"urls": ["stun:stun.l.google.com:19302", "stun:stun1.l.google.com:19302"]}]}
)

SLICE_SECONDS = 0.2
AUDIO_RATE = 48000
VIDEO_FPS = 30
VIDEO_WIDTH = 640
VIDEO_HEIGHT = 480
_MS = Fraction(1, 1000)


def pcm_rms(samples: np.ndarray) -> float:
    """RMS of a frame's samples, scaled to 0..1 for int16 / float input."""
    if samples is None or samples.size == 0:
        return 0.0
    a = samples.astype(np.float32)
    if np.issubdtype(samples.dtype, np.integer):
        a /= 32768.0
    return float(min(1.0, np.sqrt(np.mean(a * a))))


class _SlicedSink:
    """Write-only file object for PyAV. No seek(), so the muxer streams."""

    def __init__(self, on_chunk: ChunkSink, slice_seconds: float = SLICE_SECONDS) -> None:
        self._on_chunk = on_chunk
        self._slice = slice_seconds
        self._buf = bytearray()
        self._last_emit = time.monotonic()

    def write(self, data) -> int:
        self._buf.extend(data)
        if time.monotonic() - self._last_emit >= self._slice:
            self.flush()
        return len(data)

    def flush(self) -> None:
        if self._buf:
            self._on_chunk(bytes(self._buf))
            self._buf.clear()
        self._last_emit = time.monotonic()

    def drain(self) -> bytes:
        data = bytes(self._buf)
        self._buf.clear()
        return data


class WebmClipWriter:
    """Encodes incoming frames into a single WebM (VP8 + Opus) stream."""

    def __init__(
        self,
        on_chunk: ChunkSink,
        audio: bool = True,
        video: bool = True,
        slice_seconds: float = SLICE_SECONDS,
    ) -> None:
        self._lock = threading.Lock()
        self._sink = _SlicedSink(on_chunk, slice_seconds)
        self._container = av.open(self._sink, mode="w", format="webm")
        self._t0: Optional[float] = None
        self._last_pts = -1
        self._closed = False

        self._video = None
        if video:
            self._video = self._container.add_stream("libvpx", rate=VIDEO_FPS)
            self._video.width = VIDEO_WIDTH
            self._video.height = VIDEO_HEIGHT
            self._video.pix_fmt = "yuv420p"
            self._video.codec_context.time_base = _MS

        self._audio = None
        self._resampler = None
        if audio:
            self._audio = self._container.add_stream("libopus", rate=AUDIO_RATE)
            self._audio.codec_context.layout = "mono"
            self._audio.codec_context.format = "s16"
            self._resampler = av.audio.resampler.AudioResampler(format="s16", layout="mono", rate=AUDIO_RATE)

    def _pts_ms(self) -> int:
        now = time.monotonic()
        if self._t0 is None:
            self._t0 = now
        return int((now - self._t0) * 1000)

    def _mux(self, packets) -> None:
        for packet in packets:
            self._container.mux(packet)

    def write_video(self, frame: av.VideoFrame) -> None:
        with self._lock:
            if self._closed or self._video is None:
                return
            img = frame.reformat(width=VIDEO_WIDTH, height=VIDEO_HEIGHT, format="yuv420p")
            # pts must strictly increase, even for frames landing in the same ms
            self._last_pts = max(self._pts_ms(), self._last_pts + 1)
            img.pts = self._last_pts
            img.time_base = _MS
            self._mux(self._video.encode(img))

    def write_audio(self, frame: av.AudioFrame) -> None:
        with self._lock:
            if self._closed or self._audio is None:
                return
            for f in self._resampler.resample(frame):
                f.pts = None
                self._mux(self._audio.encode(f))

    def close(self) -> bytes:
        """Flush encoders, finish the container, and return the bytes not yet sliced out."""
        with self._lock:
            if self._closed:
                return b""
            self._closed = True
            for stream in (self._video, self._audio):
                if stream is not None:
                    self._mux(stream.encode(None))
            self._container.close()
            return self._sink.drain()


# --------------------------
# WebRTC processors
# --------------------------
class ClipVideoProcessor(VideoProcessorBase):
    def __init__(self, stream: "WebRtcStream") -> None:
        self._stream = stream

    def recv(self, frame: av.VideoFrame) -> av.VideoFrame:
        writer = self._stream.writer
        if self._stream.active and writer is not None:
            try:
                writer.write_video(frame)
            except FFmpegError:
                logger.debug("Dropped video frame", exc_info=True)
        return frame


class ClipAudioProcessor(AudioProcessorBase):
    """Uses recv_queued so bursts of frames are not dropped."""

    def __init__(self, stream: "WebRtcStream") -> None:
        self._stream = stream

    def _write(self, frame: av.AudioFrame) -> None:
        writer = self._stream.writer
        if self._stream.active and writer is not None:
            self._stream.audio_level = pcm_rms(frame.to_ndarray())
            try:
                writer.write_audio(frame)
            except FFmpegError:
                logger.debug("Dropped audio frame", exc_info=True)

    def recv_queued(self, frames: List[av.AudioFrame]) -> List[av.AudioFrame]:
        for fr in frames:
            self._write(fr)
        return frames

    def recv(self, frame: av.AudioFrame) -> av.AudioFrame:
        self._write(frame)
        return frame


# --------------------------
# Backend
# --------------------------
class WebRtcStream(MediaStream):
    def __init__(self, audio: bool, video: bool, writer: Optional[WebmClipWriter] = None) -> None:
        self.audio = audio
        self.video = video
        self.writer = writer
        self.audio_level = 0.0  # last mic frame RMS, 0..1
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    @property
    def constraints(self) -> Dict[str, bool]:
        return {"audio": self.audio, "video": self.video}

    def video_processor_factory(self) -> ClipVideoProcessor:
        return ClipVideoProcessor(self)

    def audio_processor_factory(self) -> ClipAudioProcessor:
        return ClipAudioProcessor(self)

    def stop(self) -> Optional[bytes]:
        self._active = False
        if self.writer is None:
            return None
        try:
            return self.writer.close()
        except FFmpegError:
            logger.warning("Clip finalization failed", exc_info=True)
            return None


class WebRtcBackend(MediaBackend):
    def __init__(self, slice_seconds: float = SLICE_SECONDS) -> None:
        self._slice_seconds = slice_seconds

    def open_stream(self, audio: bool, video: bool, on_chunk: Optional[ChunkSink] = None) -> WebRtcStream:
        writer = None
        if on_chunk is not None:
            try:
                writer = WebmClipWriter(on_chunk, audio=audio, video=video, slice_seconds=self._slice_seconds)
            except (FFmpegError, ValueError) as e:
                # ValueError: PyAV build without libvpx/libopus
                raise HardwareUnavailable(f"Recording encoder unavailable: {e}", capability="recorder")
        return WebRtcStream(audio=audio, video=video, writer=writer)
