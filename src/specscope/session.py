"""Render sessions: one explicit handle per running render.

A ``RenderSession`` owns the cancel signal and pause flag of a single render
running on a background thread. ``RenderController`` keeps at most one active
session per raster and waits for the previous one to exit before a new render
is allowed to write to the shared raster.
"""

from __future__ import annotations

import logging
import uuid
from threading import Lock, Thread

from specscope.models import (
    CancelSignal,
    PauseState,
    ProgressSample,
    RenderOptions,
    RenderRaster,
    RenderRequest,
    RenderStatus,
)
from specscope.renderer import DisplaySink, FrameProducer, ProgressCallback, render, validate_request

_logger = logging.getLogger(__name__)


class RenderSession:
    """Handle for one background render (cancel/pause/resume/wait)."""

    def __init__(
        self,
        request: RenderRequest,
        raster: RenderRaster,
        on_progress: ProgressCallback | None = None,
        display_sink: DisplaySink | None = None,
        options: RenderOptions | None = None,
        frame_producer: FrameProducer | None = None,
    ) -> None:
        validate_request(request, raster)
        self.session_id = uuid.uuid4().hex
        self.request = request
        self.raster = raster
        self._on_progress = on_progress
        self._display_sink = display_sink
        self._options = options or RenderOptions()
        self._frame_producer = frame_producer
        self._cancel_signal = CancelSignal()
        self._pause_state = PauseState()
        self._state_lock = Lock()
        self._thread: Thread | None = None
        self._status: RenderStatus | None = None
        self._error: BaseException | None = None
        self._last_progress: ProgressSample | None = None

    def start(self) -> RenderSession:
        with self._state_lock:
            if self._thread is not None:
                raise RuntimeError("Render session already started.")
            self._thread = Thread(target=self._run, daemon=True, name=f"specscope-render-{self.session_id[:8]}")
            thread = self._thread
        thread.start()
        return self

    def cancel(self) -> None:
        _logger.debug("cancel requested: %s", self.session_id[:8])
        self._cancel_signal.cancel()

    def pause(self) -> None:
        self._pause_state.pause()

    def resume(self) -> None:
        self._pause_state.resume()

    @property
    def paused(self) -> bool:
        return self._pause_state.paused

    @property
    def cancelled(self) -> bool:
        return self._cancel_signal.cancelled

    @property
    def status(self) -> RenderStatus | None:
        with self._state_lock:
            return self._status

    @property
    def error(self) -> BaseException | None:
        with self._state_lock:
            return self._error

    @property
    def last_progress(self) -> ProgressSample | None:
        with self._state_lock:
            return self._last_progress

    def is_running(self) -> bool:
        with self._state_lock:
            thread = self._thread
        return thread is not None and thread.is_alive()

    def wait(self, timeout: float | None = None) -> bool:
        """Wait for the render thread to exit. Returns True when it has."""
        with self._state_lock:
            thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def result(self, timeout: float | None = None) -> RenderStatus:
        if not self.wait(timeout):
            raise TimeoutError(f"Render session {self.session_id[:8]} still running.")
        with self._state_lock:
            error = self._error
            status = self._status
        if error is not None:
            raise error
        if status is None:
            raise RuntimeError("Render session was never started.")
        return status

    def _handle_progress(self, sample: ProgressSample) -> None:
        with self._state_lock:
            self._last_progress = sample
        if self._on_progress is not None:
            self._on_progress(sample)

    def _run(self) -> None:
        _logger.debug("render session started: %s", self.session_id[:8])
        try:
            status = render(
                self.request,
                self.raster,
                on_progress=self._handle_progress,
                pause_state=self._pause_state,
                cancel_signal=self._cancel_signal,
                display_sink=self._display_sink,
                options=self._options,
                frame_producer=self._frame_producer,
            )
        except Exception as exc:
            _logger.exception("render session failed: %s", self.session_id[:8])
            with self._state_lock:
                self._error = exc
            return
        with self._state_lock:
            self._status = status
        _logger.debug("render session finished (%s): %s", status, self.session_id[:8])


class RenderController:
    """Keeps at most one active render per raster.

    Starting a render cancels the previous session and waits for it to
    finish its current column before the new session starts writing.
    """

    def __init__(
        self,
        on_progress: ProgressCallback | None = None,
        display_sink: DisplaySink | None = None,
        options: RenderOptions | None = None,
    ) -> None:
        self._on_progress = on_progress
        self._display_sink = display_sink
        self._options = options or RenderOptions()
        self._lock = Lock()
        self._start_lock = Lock()
        self._active: RenderSession | None = None

    @property
    def active(self) -> RenderSession | None:
        with self._lock:
            return self._active

    def start(
        self,
        request: RenderRequest,
        raster: RenderRaster,
        frame_producer: FrameProducer | None = None,
    ) -> RenderSession:
        session = RenderSession(
            request,
            raster,
            on_progress=self._on_progress,
            display_sink=self._display_sink,
            options=self._options,
            frame_producer=frame_producer,
        )
        with self._start_lock:
            with self._lock:
                previous = self._active
                self._active = None
            # join はロック外で行う。旧セッションのコールバックが active/cancel を触っても詰まらない。
            if previous is not None:
                previous.cancel()
                previous.wait()
                _logger.debug("superseded render session: %s", previous.session_id[:8])
            with self._lock:
                self._active = session
            return session.start()

    def cancel(self) -> None:
        with self._lock:
            session = self._active
        if session is not None:
            session.cancel()

    def shutdown(self, timeout: float | None = 2.0) -> None:
        with self._lock:
            session = self._active
            self._active = None
        if session is None:
            return
        session.cancel()
        if not session.wait(timeout):
            _logger.warning("render session did not stop in time: %s", session.session_id[:8])
