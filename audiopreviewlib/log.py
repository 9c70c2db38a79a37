"""Debug tracing for the analysis core.

The settings store, the spectrogram engine and the analysis worker call
:func:`dbg` at the points worth seeing when a view looks wrong: a setter
that discarded its input, the hop size picked on initialization, the
frame count and time of every STFT pass, and the fate of each worker
request::

    [14:02:11.408 AnalysisSettingsStore] ignoring frequency scale 'bark'
    [14:02:11.512 SpectrogramEngine] mel spectrogram: ch 0, 900 frames x 40 (window 1024, hop 490) in 21.7 ms
    [14:02:11.514 AnalysisWorker] request 3 complete in 44.0 ms

Tracing is off unless ``AP_DEBUG`` is ``1`` or ``true``.  The variable is
read once; call :func:`reset_enabled` after changing it at runtime.
"""

from __future__ import annotations

import inspect
import os
import sys
import time

DEBUG_ENV_VAR = "AP_DEBUG"

_ENABLED: bool | None = None


def _is_enabled() -> bool:
    global _ENABLED
    if _ENABLED is None:
        _ENABLED = os.environ.get(DEBUG_ENV_VAR, "").strip().lower() in ("1", "true")
    return _ENABLED


def reset_enabled() -> None:
    global _ENABLED
    _ENABLED = None


def _origin(frame) -> str:
    """Class of the method that owns *frame*, else the last module name part."""
    owner = frame.f_locals.get("self")
    if owner is not None:
        return type(owner).__name__
    module = frame.f_globals.get("__name__") or "?"
    return module.rpartition(".")[2]


def dbg(msg: str) -> None:
    """Write ``[HH:MM:SS.mmm Origin] msg`` to stderr when tracing is on."""
    if not _is_enabled():
        return
    now = time.time()
    caller = inspect.currentframe().f_back
    try:
        origin = _origin(caller) if caller is not None else "?"
    finally:
        del caller
    stamp = time.strftime("%H:%M:%S", time.localtime(now))
    print(f"[{stamp}.{int(now % 1 * 1000):03d} {origin}] {msg}",
          file=sys.stderr, flush=True)
