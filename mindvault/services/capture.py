# audio capture — recording state machine over an injected microphone device
# idle -> initializing -> recording -> stopping -> processing -> idle, error on failure

import asyncio
import logging
from contextlib import AsyncExitStack, asynccontextmanager, suppress
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Optional, Protocol, TypeVar

from mindvault.exceptions import (
    CaptureError,
    DeviceNotFound,
    EmptyRecordingError,
    InvalidStateError,
    PermissionDenied,
)
from mindvault.models.analysis import AudioClip

logger = logging.getLogger(__name__)

T = TypeVar("T")

# tried in order, first supported wins, otherwise the device default
PREFERRED_MIME_TYPES = (
    "audio/webm;codecs=opus",
    "audio/webm",
    "audio/mp4",
    "audio/ogg",
)


class CaptureState(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    RECORDING = "recording"
    STOPPING = "stopping"
    PROCESSING = "processing"
    ERROR = "error"


class AudioStream(Protocol):
    """an open microphone. chunks() ends once stop() has flushed the last buffer"""

    mime_type: str

    def chunks(self) -> AsyncIterator[bytes]: ...

    async def stop(self) -> None: ...

    async def close(self) -> None: ...


class AudioInput(Protocol):
    """a microphone that can be opened with a given encoding"""

    default_mime_type: str

    def is_type_supported(self, mime_type: str) -> bool: ...

    async def open(self, mime_type: Optional[str]) -> AudioStream: ...


def select_mime_type(device: AudioInput, preferences: tuple[str, ...] = PREFERRED_MIME_TYPES) -> Optional[str]:
    """first preferred encoding the device supports, None means use the device default"""
    for mime_type in preferences:
        if device.is_type_supported(mime_type):
            return mime_type
    return None


def classify_device_error(exc: BaseException) -> CaptureError:
    """map a device failure onto the capture error taxonomy"""
    if isinstance(exc, CaptureError):
        return exc
    if isinstance(exc, PermissionError):
        return PermissionDenied("Permission denied. Please allow microphone access.")
    if isinstance(exc, FileNotFoundError):
        return DeviceNotFound("No microphone found.")
    return CaptureError(f"Microphone access failed: {exc}")


@asynccontextmanager
async def acquire_input(device: AudioInput, mime_type: Optional[str]):
    """open the device for the duration of the block, always closing it afterwards"""
    stream = await device.open(mime_type)
    try:
        yield stream
    finally:
        await stream.close()
        logger.debug("Microphone released")


class AudioCaptureController:
    """owns one microphone and turns a start/stop cycle into an AudioClip.

    the device is held through an AsyncExitStack entered in start(). stop,
    cancel and leaving the async context go through _release(); a device
    failure mid-recording closes the stack from the collector's done
    callback. either way the stack is closed exactly once.

    a failed clip (empty, a stream error at stop, a failing handler) is kept
    in last_error and the controller returns to IDLE. ERROR is where it rests
    when the device itself fails, on open or mid-recording; start() accepts
    it like IDLE so the user can retry right away.
    """

    def __init__(
        self,
        device: AudioInput,
        preferred_mime_types: tuple[str, ...] = PREFERRED_MIME_TYPES,
        tick_seconds: float = 1.0,
    ):
        self.device = device
        self.preferred_mime_types = preferred_mime_types
        self.tick_seconds = tick_seconds

        self.state = CaptureState.IDLE
        self.mime_type: Optional[str] = None
        self.elapsed_seconds = 0
        self.last_error: Optional[BaseException] = None

        self._chunks: list[bytes] = []
        self._stream: Optional[AudioStream] = None
        self._exit_stack: Optional[AsyncExitStack] = None
        self._collector: Optional[asyncio.Task] = None
        self._ticker: Optional[asyncio.Task] = None
        self._clip: Optional[AudioClip] = None
        self._pending_release: Optional[asyncio.Future] = None

    async def __aenter__(self) -> "AudioCaptureController":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self.state is CaptureState.RECORDING:
            await self.cancel()
        await self._await_pending_release()

    @property
    def formatted_elapsed(self) -> str:
        minutes, seconds = divmod(self.elapsed_seconds, 60)
        return f"{minutes}:{seconds:02d}"

    # state transitions

    async def start(self) -> None:
        """acquire the microphone and begin recording"""
        if self.state not in (CaptureState.IDLE, CaptureState.ERROR):
            raise InvalidStateError(f"Cannot start recording while {self.state.value}")

        await self._await_pending_release()
        self.state = CaptureState.INITIALIZING
        self.last_error = None
        requested = select_mime_type(self.device, self.preferred_mime_types)

        stack = AsyncExitStack()
        try:
            stream = await stack.enter_async_context(acquire_input(self.device, requested))
        except Exception as e:
            await stack.aclose()
            err = classify_device_error(e)
            self._fail(err)
            if err is e:
                raise
            raise err from e

        self._exit_stack = stack
        self._stream = stream
        self.mime_type = stream.mime_type or requested or self.device.default_mime_type
        self._chunks = []
        self.elapsed_seconds = 0

        self._collector = asyncio.create_task(self._collect(stream))
        self._collector.add_done_callback(self._on_collector_done)
        self._ticker = asyncio.create_task(self._tick())
        self.state = CaptureState.RECORDING
        logger.info(f"Recording started ({self.mime_type})")

    async def stop(self) -> AudioClip:
        """stop recording, release the device and return the finished clip"""
        if self.state is not CaptureState.RECORDING:
            raise InvalidStateError(f"Cannot stop recording while {self.state.value}")

        self.state = CaptureState.STOPPING
        try:
            await self._stream.stop()
            await self._collector
        except Exception as e:
            err = classify_device_error(e)
            self._fail_clip(err)
            if err is e:
                raise
            raise err from e
        finally:
            await self._release()

        clip = AudioClip(data=b"".join(self._chunks), mime_type=self.mime_type)
        self._chunks = []
        self.state = CaptureState.PROCESSING
        logger.info(f"Recording stopped: {len(clip)} bytes after {self.formatted_elapsed}")

        if not clip.data:
            err = EmptyRecordingError("Recording failed: No audio data captured.")
            self._fail_clip(err)
            raise err

        self._clip = clip
        return clip

    async def cancel(self) -> None:
        """forced stop: release the device and discard what was captured"""
        if self.state is not CaptureState.RECORDING:
            raise InvalidStateError(f"Cannot cancel recording while {self.state.value}")

        self.state = CaptureState.STOPPING
        await self._release()
        self._chunks = []
        self.state = CaptureState.IDLE
        logger.info("Recording cancelled")

    async def process(self, handler: Callable[[AudioClip], Awaitable[T]]) -> T:
        """hand the finished clip downstream. there is no cancelling once this begins"""
        if self.state is not CaptureState.PROCESSING or self._clip is None:
            raise InvalidStateError(f"No finished clip to process while {self.state.value}")

        clip, self._clip = self._clip, None
        try:
            result = await handler(clip)
        except Exception as e:
            self._fail_clip(e)
            raise

        self.state = CaptureState.IDLE
        return result

    # internals

    async def _collect(self, stream: AudioStream) -> None:
        async for chunk in stream.chunks():
            if chunk:
                self._chunks.append(chunk)

    async def _tick(self) -> None:
        # ui counter only
        while True:
            await asyncio.sleep(self.tick_seconds)
            self.elapsed_seconds += 1

    async def _release(self) -> None:
        for task in (self._ticker, self._collector):
            if task is not None and not task.done():
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task
        self._ticker = None
        self._collector = None
        self._stream = None

        stack, self._exit_stack = self._exit_stack, None
        if stack is not None:
            await stack.aclose()

    def _fail(self, err: BaseException) -> None:
        logger.warning(f"Capture failed in state {self.state.value}: {err}")
        self.last_error = err
        self.state = CaptureState.ERROR

    def _fail_clip(self, err: BaseException) -> None:
        # a failed clip leaves the error on record and the controller ready again
        self._fail(err)
        self.state = CaptureState.IDLE

    def _on_collector_done(self, task: asyncio.Task) -> None:
        """device failure while recording: fail now instead of at stop()"""
        if task.cancelled() or task.exception() is None:
            return
        if self.state is not CaptureState.RECORDING or task is not self._collector:
            # stop() is draining the stream and reports the failure itself
            return

        self._fail(classify_device_error(task.exception()))
        if self._ticker is not None:
            self._ticker.cancel()
        self._ticker = None
        self._collector = None
        self._stream = None
        self._chunks = []
        stack, self._exit_stack = self._exit_stack, None
        if stack is not None:
            self._pending_release = asyncio.ensure_future(stack.aclose())

    async def _await_pending_release(self) -> None:
        pending, self._pending_release = self._pending_release, None
        if pending is not None:
            await pending
