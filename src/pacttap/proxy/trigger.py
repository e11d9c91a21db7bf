"""
Synthesis trigger.

Turns interrupt signals into contract synthesis passes. The signal handler
only enqueues an event; a worker thread runs the passes one at a time, so a
burst of signals never leads to two writers on the same output file.
"""

import logging
import queue
import signal
import threading
import time
from typing import Any, Callable, Optional


logger = logging.getLogger("pacttap.trigger")

_STOP = object()
DRAIN_POLL_INTERVAL = 0.1


class SynthesisTrigger:
    """
    Runs a synthesis pass each time a signal arrives.

    The pass callable is invoked on a dedicated worker thread. At most one
    pass runs at a time and at most one further request waits behind it;
    signals arriving while a request is already pending are folded into it.

    A pass that raises is fatal: the error is stored in ``error``, on_error
    is called with it and the worker stops accepting events.

    Example:
        trigger = SynthesisTrigger(run_pass, on_error=supervisor_stop)
        trigger.install()
        ...
        trigger.drain()
        trigger.uninstall()
    """

    def __init__(
        self,
        synthesize: Callable[[], Any],
        signum: int = signal.SIGINT,
        on_error: Optional[Callable[[BaseException], None]] = None
    ):
        self.synthesize = synthesize
        self.signum = signum
        self.on_error = on_error
        self.error: Optional[BaseException] = None
        self.passes = 0

        self._events: "queue.Queue[Any]" = queue.Queue(maxsize=1)
        self._guard = threading.Lock()
        self._worker: Optional[threading.Thread] = None
        self._previous_handler: Any = None
        self._installed = False
        self._closing = False

    def install(self) -> None:
        """Register the signal handler and start the worker thread."""
        if self._installed:
            return

        self._worker = threading.Thread(target=self._run, name="pacttap-synthesis", daemon=True)
        self._worker.start()
        self._previous_handler = signal.signal(self.signum, self._handle_signal)
        self._installed = True
        logger.debug(f"Synthesis trigger listening for {signal.Signals(self.signum).name}")

    def uninstall(self) -> None:
        """Restore the signal handler that was active before install()."""
        if not self._installed:
            return

        signal.signal(self.signum, self._previous_handler)
        self._installed = False

    def _handle_signal(self, signum, frame) -> None:
        self.fire()

    def fire(self) -> bool:
        """
        Request a synthesis pass.

        Returns:
            True if a new request was queued, False if one was already pending
            or the trigger has failed or is draining
        """
        if self.error is not None or self._closing:
            return False

        try:
            self._events.put_nowait(self.signum)
        except queue.Full:
            logger.debug("Synthesis already pending, coalescing trigger")
            return False
        return True

    def run_pass(self) -> bool:
        """
        Run one synthesis pass unless another is in flight.

        Returns:
            True if the pass ran, False if it was skipped
        """
        if not self._guard.acquire(blocking=False):
            logger.debug("Synthesis already in progress, skipping")
            return False
        try:
            self.synthesize()
            self.passes += 1
        finally:
            self._guard.release()
        return True

    def _run(self) -> None:
        while True:
            event = self._events.get()
            if event is _STOP:
                return

            try:
                self.run_pass()
            except Exception as e:
                self.error = e
                logger.debug("Synthesis pass failed", exc_info=True)
                if self.on_error is not None:
                    self.on_error(e)
                return

    def drain(self, timeout: Optional[float] = None) -> None:
        """
        Finish any pending pass and stop the worker.

        Signals arriving from here on no longer queue passes, so the signal
        handler never competes with us for the queue's lock.

        Args:
            timeout: Seconds to wait for the worker; None waits indefinitely
        """
        self._closing = True
        if self._worker is None:
            return

        deadline = None if timeout is None else time.monotonic() + timeout
        while self._worker.is_alive():
            try:
                self._events.put(_STOP, timeout=DRAIN_POLL_INTERVAL)
                break
            except queue.Full:
                # a worker that stopped after a failed pass leaves its slot full
                if deadline is not None and time.monotonic() >= deadline:
                    logger.warning("Timed out waiting for pending synthesis to start")
                    return

        remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
        self._worker.join(remaining)
