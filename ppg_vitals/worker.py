"""
Run a :class:`~ppg_vitals.session.Session` on its own thread.

Frame producers (capture callbacks, camera threads) should never block on
signal processing.  :class:`SessionWorker` owns the session on a single
daemon thread and receives work as commands through a bounded queue:

* :class:`ProcessSample` – one proxy value; dropped with a warning when the
  queue is full, unless submitted with ``block=True``;
* :class:`SetMode` and :class:`Reset` – control commands; always enqueued.

Commands are applied strictly in arrival order, so a reset can never land in
the middle of a sample update.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Union

from .conditioner import Mode, as_mode
from .session import PpgResult, Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessSample:
    raw: float
    timestamp_ms: Optional[float] = None
    iso: Optional[float] = None


@dataclass(frozen=True)
class SetMode:
    mode: Mode


@dataclass(frozen=True)
class Reset:
    pass


Command = Union[ProcessSample, SetMode, Reset]
ResultCallback = Callable[[PpgResult, Session], None]


class SessionWorker:
    """
    Single-owner thread around a :class:`Session`.

    Parameters
    ----------
    session:
        Session to drive.  A fresh one is created when omitted.
    on_result:
        Called on the worker thread after every processed sample with the
        :class:`PpgResult` and the session (for blood pressure, smoothed
        IBI, ...).
    max_pending:
        Queue capacity (default 64 commands, about two seconds at 30 fps).
    """

    _SENTINEL = None  # signals worker thread to exit

    def __init__(
        self,
        session: Optional[Session] = None,
        on_result: Optional[ResultCallback] = None,
        max_pending: int = 64,
    ) -> None:
        self.session = session if session is not None else Session()
        self.on_result = on_result
        self._queue: "queue.Queue[Optional[Command]]" = queue.Queue(maxsize=max_pending)
        self._thread: Optional[threading.Thread] = None
        self.dropped = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._worker_loop, name="ppg-session", daemon=True
        )
        self._thread.start()
        logger.info("Session worker started.")

    def stop(self, timeout: float = 5.0) -> None:
        """Process everything already queued, then stop the thread."""
        if self._thread is None:
            return
        self._queue.put(self._SENTINEL)
        self._thread.join(timeout=timeout)
        self._thread = None
        logger.info("Session worker stopped (%d samples dropped).", self.dropped)

    def __enter__(self) -> "SessionWorker":
        self.start()
        return self

    def __exit__(self, *_) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Producer API
    # ------------------------------------------------------------------

    def submit_sample(
        self,
        raw: float,
        timestamp_ms: Optional[float] = None,
        iso: Optional[float] = None,
        block: bool = False,
    ) -> bool:
        """
        Queue a sample.  Returns *False* if it was dropped.

        With ``block=False`` (live capture) a full queue drops the sample.
        ``block=True`` waits for room instead, for replaying recordings.
        """
        sample = ProcessSample(raw, timestamp_ms, iso)
        if block:
            self._queue.put(sample)
            return True
        try:
            self._queue.put_nowait(sample)
        except queue.Full:
            self.dropped += 1
            logger.warning("Sample queue full, dropping sample.")
            return False
        return True

    def set_mode(self, mode: Union[Mode, str]) -> None:
        self._queue.put(SetMode(as_mode(mode)))

    def reset(self) -> None:
        self._queue.put(Reset())

    def join(self) -> None:
        """Block until every queued command has been applied."""
        self._queue.join()

    # ------------------------------------------------------------------
    # Worker thread
    # ------------------------------------------------------------------

    def _worker_loop(self) -> None:
        while True:
            command = self._queue.get()
            try:
                if command is self._SENTINEL:
                    break
                self._apply(command)
            except Exception:
                logger.exception("Failed to apply %r.", command)
            finally:
                self._queue.task_done()

    def _apply(self, command: Command) -> None:
        if isinstance(command, ProcessSample):
            result = self.session.process_sample(
                command.raw, timestamp_ms=command.timestamp_ms, iso=command.iso
            )
            if self.on_result is not None:
                try:
                    self.on_result(result, self.session)
                except Exception:
                    logger.exception("Result callback failed.")
        elif isinstance(command, SetMode):
            self.session.set_mode(command.mode)
        elif isinstance(command, Reset):
            self.session.reset()
        else:
            raise TypeError(f"unknown command {command!r}")
