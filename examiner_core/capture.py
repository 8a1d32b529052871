"""
EXAMINER Audio Boundary
=======================
The orchestrator never touches a device directly. It sees:
- a Recorder: start() -> suspends until capture begins, stop() -> a finished clip
- an AudioPlayer: play() -> suspends until playback has actually started

`QueuedRecorder` is a host-fed recorder: the front end (browser, desktop
shell, test) records the clip itself and pushes it with `submit()`.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Protocol

from .errors import CaptureError
from .structs import AudioClip, RecordingStatus

logger = logging.getLogger(__name__)


class Recorder(Protocol):
    status: RecordingStatus

    async def start(self) -> None: ...

    async def stop(self) -> AudioClip: ...

    def release(self) -> None: ...


class AudioPlayer(Protocol):

    async def play(self, audio: bytes) -> None:
        """Return once audio is audible; raise if playback cannot start."""
        ...


def _describe_capture_failure(exc: Exception) -> str:
    if isinstance(exc, PermissionError):
        return "Microphone permission denied."
    if isinstance(exc, FileNotFoundError):
        return "No microphone found."
    return f"Error accessing microphone: {exc}"


class QueuedRecorder:

    def __init__(
        self,
        acquire: Optional[Callable[[], Awaitable[None]]] = None,
        on_release: Optional[Callable[[], None]] = None
    ):
        self._acquire = acquire          # e.g. a permission prompt on the host
        self._on_release = on_release    # e.g. stop the host's input tracks
        self._clips: "asyncio.Queue[AudioClip]" = asyncio.Queue()
        self._listeners: List[Callable[[RecordingStatus], None]] = []
        self._holding_device = False
        self._pending: "Optional[asyncio.Future[AudioClip]]" = None
        self._abandoned = False
        self._attempt = 0                # bumped by release(); a start from an older attempt is stale
        self.status = RecordingStatus.IDLE
        self.error: Optional[str] = None

    def subscribe(self, callback: Callable[[RecordingStatus], None]) -> None:
        self._listeners.append(callback)

    def _set_status(self, status: RecordingStatus) -> None:
        if status is self.status:
            return
        self.status = status
        for callback in self._listeners:
            callback(status)

    def submit(self, clip: AudioClip) -> None:
        """Hand over a finished recording from the front end."""
        self._clips.put_nowait(clip)

    async def start(self) -> None:
        if self.status is RecordingStatus.RECORDING:
            return

        attempt = self._attempt
        self.error = None
        self._set_status(RecordingStatus.AWAITING_PERMISSION)
        try:
            if self._acquire is not None:
                await self._acquire()
        except Exception as e:
            if attempt != self._attempt:
                raise CaptureError("Recording abandoned") from e
            self.error = _describe_capture_failure(e)
            logger.error(self.error)
            self._set_status(RecordingStatus.ERROR)
            raise CaptureError(self.error) from e

        if attempt != self._attempt:
            # Permission arrived after the recording was given up
            logger.info("Releasing microphone acquired for an abandoned recording")
            if self._on_release is not None:
                self._on_release()
            raise CaptureError("Recording abandoned")

        self._holding_device = True
        self._set_status(RecordingStatus.RECORDING)

    async def stop(self) -> AudioClip:
        if self.status is not RecordingStatus.RECORDING:
            raise CaptureError(f"Cannot stop recording while {self.status.value}")
        self._abandoned = False
        self._pending = asyncio.ensure_future(self._clips.get())
        try:
            clip = await self._pending
        except asyncio.CancelledError:
            if self._abandoned:
                raise CaptureError("Recording abandoned") from None
            raise
        finally:
            self._pending = None
            self._release_device()
        self._set_status(RecordingStatus.STOPPED)
        return clip

    def release(self) -> None:
        """Abandon any capture in progress and drop clips nobody asked for."""
        self._attempt += 1
        if self._pending is not None and not self._pending.done():
            # A clip submitted for the next session must not reach this waiter
            self._abandoned = True
            self._pending.cancel()
        self._release_device()
        while not self._clips.empty():
            self._clips.get_nowait()
        if self.status in (RecordingStatus.AWAITING_PERMISSION, RecordingStatus.RECORDING):
            self._set_status(RecordingStatus.IDLE)

    def _release_device(self) -> None:
        if not self._holding_device:
            return
        self._holding_device = False
        if self._on_release is not None:
            self._on_release()
