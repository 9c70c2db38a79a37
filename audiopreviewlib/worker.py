"""Background analysis with last-request-wins cancellation."""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field

import numpy as np

from .events import EventBus
from .log import dbg
from .models import AnalysisSettings, AudioBuffer, WaveformRender
from .spectrogram import SpectrogramEngine
from .waveform import WaveformDecimator


@dataclass
class AnalysisResult:
    """Everything the views need to draw one settings snapshot.

    Lists are indexed by channel and left empty for a hidden view.
    """
    settings: AnalysisSettings
    waveforms: list[WaveformRender] = field(default_factory=list)
    spectrograms: list[np.ndarray] = field(default_factory=list)
    request_id: int = 0
    elapsed_ms: float = 0.0


def run_analysis(settings: AnalysisSettings, audio_buffer: AudioBuffer, *,
                 engine: SpectrogramEngine | None = None,
                 decimator: WaveformDecimator | None = None,
                 cancel: threading.Event | None = None) -> AnalysisResult | None:
    """Analyze every channel synchronously.  ``None`` if cancelled."""
    engine = engine or SpectrogramEngine()
    decimator = decimator or WaveformDecimator()
    t0 = time.perf_counter()
    result = AnalysisResult(settings=settings)
    for ch in range(audio_buffer.number_of_channels):
        if cancel is not None and cancel.is_set():
            return None
        if settings.waveform_visible:
            result.waveforms.append(
                decimator.decimate_channel(ch, settings, audio_buffer))
        if settings.spectrogram_visible:
            frames = engine.compute(ch, settings, audio_buffer, cancel=cancel)
            if frames is None:
                return None
            result.spectrograms.append(frames)
    result.elapsed_ms = (time.perf_counter() - t0) * 1000
    return result


class AnalysisWorker:
    """Runs :func:`run_analysis` on a single background thread.

    Submitting a request cancels the one before it; a superseded request
    resolves to ``None`` and never emits ``analysis.complete``.

    Events (when an ``event_bus`` is given):

    - ``analysis.start``      request_id, settings
    - ``analysis.complete``   request_id, result
    - ``analysis.cancelled``  request_id
    - ``analysis.failed``     request_id, error
    """

    def __init__(self, engine: SpectrogramEngine | None = None,
                 decimator: WaveformDecimator | None = None,
                 event_bus: EventBus | None = None):
        self.engine = engine or SpectrogramEngine()
        self.decimator = decimator or WaveformDecimator()
        self.event_bus = event_bus
        self._pool = ThreadPoolExecutor(max_workers=1,
                                        thread_name_prefix="audiopreview-analysis")
        self._lock = threading.Lock()
        self._request_id = 0
        self._cancel: threading.Event | None = None

    def _emit(self, event_type: str, **data):
        if self.event_bus:
            self.event_bus.emit(event_type, **data)

    @property
    def latest_request_id(self) -> int:
        return self._request_id

    def submit(self, settings: AnalysisSettings,
               audio_buffer: AudioBuffer) -> Future:
        """Queue an analysis of *settings*; returns a Future of
        :class:`AnalysisResult` (or ``None`` if superseded)."""
        with self._lock:
            if self._cancel is not None:
                self._cancel.set()
            self._request_id += 1
            request_id = self._request_id
            cancel = threading.Event()
            self._cancel = cancel
        return self._pool.submit(self._run, request_id, settings, audio_buffer, cancel)

    def cancel(self) -> None:
        """Cancel the pending or running request, if any."""
        with self._lock:
            if self._cancel is not None:
                self._cancel.set()

    def shutdown(self, wait: bool = True) -> None:
        self.cancel()
        self._pool.shutdown(wait=wait)

    def __enter__(self) -> AnalysisWorker:
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    def _is_stale(self, request_id: int, cancel: threading.Event) -> bool:
        with self._lock:
            return cancel.is_set() or request_id != self._request_id

    def _run(self, request_id: int, settings: AnalysisSettings,
             audio_buffer: AudioBuffer,
             cancel: threading.Event) -> AnalysisResult | None:
        if self._is_stale(request_id, cancel):
            dbg(f"request {request_id} superseded before start")
            self._emit("analysis.cancelled", request_id=request_id)
            return None
        self._emit("analysis.start", request_id=request_id, settings=settings)
        try:
            result = run_analysis(settings, audio_buffer, engine=self.engine,
                                  decimator=self.decimator, cancel=cancel)
        except Exception as e:
            dbg(f"request {request_id} failed: {e}")
            self._emit("analysis.failed", request_id=request_id, error=e)
            raise
        if result is None or self._is_stale(request_id, cancel):
            dbg(f"request {request_id} cancelled")
            self._emit("analysis.cancelled", request_id=request_id)
            return None
        result.request_id = request_id
        dbg(f"request {request_id} complete in {result.elapsed_ms:.1f} ms")
        self._emit("analysis.complete", request_id=request_id, result=result)
        return result
