"""
Recording engine supervisor.

Owns the engine child process: starts it, forwards its stderr, waits for it
and turns its exit into either a clean return or a ChildCrash.
"""

import logging
import signal
import socket
import subprocess
import sys
import threading
import time
from collections import deque
from typing import Deque, Dict, List, Optional

from ..common.errors import ChildCrash, StartupError


logger = logging.getLogger("pacttap.supervisor")

# Exit statuses treated as a normal shutdown (negative = killed by signal)
GRACEFUL_RETURNCODES = (0, -signal.SIGINT, -signal.SIGTERM)

STDERR_TAIL_LINES = 20
READY_POLL_INTERVAL = 0.1


class ProxySupervisor:
    """
    Runs the recording engine as a child process.

    Example:
        supervisor = ProxySupervisor(["mitmdump", "--listen-port", "8080"])
        supervisor.start()
        supervisor.wait_until_ready(8080, timeout=10)
        supervisor.check(supervisor.wait())
    """

    def __init__(
        self,
        command: List[str],
        env: Optional[Dict[str, str]] = None,
        echo_stderr: bool = True
    ):
        """
        Args:
            command: Engine command line
            env: Environment for the engine (defaults to ours)
            echo_stderr: Copy the engine's stderr to ours while keeping a tail
        """
        self.command = list(command)
        self.env = env
        self.echo_stderr = echo_stderr
        self.process: Optional[subprocess.Popen] = None
        self.stderr_tail: Deque[str] = deque(maxlen=STDERR_TAIL_LINES)
        self._stderr_thread: Optional[threading.Thread] = None
        self._terminated = False

    @property
    def running(self) -> bool:
        return self.process is not None and self.process.poll() is None

    def start(self) -> None:
        """
        Launch the engine.

        Raises:
            StartupError: If the process cannot be started at all
        """
        if self.process is not None:
            raise StartupError("recording engine already started")

        logger.debug(f"Starting recording engine: {' '.join(self.command)}")
        try:
            self.process = subprocess.Popen(
                self.command,
                env=self.env,
                stderr=subprocess.PIPE,
                text=True,
                errors='replace',
            )
        except (OSError, ValueError) as e:
            raise StartupError(f"failed to start recording engine: {e}") from e

        self._stderr_thread = threading.Thread(
            target=self._pump_stderr,
            name="pacttap-engine-stderr",
            daemon=True,
        )
        self._stderr_thread.start()

    def _pump_stderr(self) -> None:
        stream = self.process.stderr
        for line in stream:
            self.stderr_tail.append(line.rstrip("\n"))
            if self.echo_stderr:
                sys.stderr.write(line)
                sys.stderr.flush()
        stream.close()

    def wait_until_ready(self, port: int, timeout: float, host: str = "127.0.0.1") -> bool:
        """
        Poll the engine's listen port until it accepts connections.

        Args:
            port: Port the engine listens on
            timeout: Seconds to wait; 0 skips the probe
            host: Address to probe

        Returns:
            True once the port accepts a connection, False if the engine
            exited first or the timeout elapsed
        """
        if timeout <= 0:
            return True

        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if not self.running:
                return False
            try:
                with socket.create_connection((host, port), timeout=READY_POLL_INTERVAL):
                    return True
            except OSError:
                time.sleep(READY_POLL_INTERVAL)

        logger.warning(f"Recording engine not accepting connections on port {port} after {timeout}s")
        return False

    def wait(self) -> int:
        """Block until the engine exits and return its exit status."""
        if self.process is None:
            raise StartupError("recording engine was never started")

        returncode = self.process.wait()
        if self._stderr_thread is not None:
            self._stderr_thread.join(timeout=5)
        logger.debug(f"Recording engine exited with status {returncode}")
        return returncode

    def terminate(self) -> None:
        """Ask the engine to stop. Safe to call when it already exited."""
        if self.running:
            self._terminated = True
            self.process.terminate()

    def failure_reason(self) -> str:
        """Last non-empty line the engine wrote to stderr, if any."""
        for line in reversed(self.stderr_tail):
            if line.strip():
                return line.strip()
        return ""

    def check(self, returncode: int) -> None:
        """
        Raise ChildCrash unless returncode is a normal shutdown.

        A shutdown we asked for through terminate() is never a crash.
        """
        if returncode in GRACEFUL_RETURNCODES or self._terminated:
            return

        if returncode < 0:
            try:
                status = f"killed by {signal.Signals(-returncode).name}"
            except ValueError:
                status = f"killed by signal {-returncode}"
        else:
            status = f"exit code {returncode}"

        message = f"recording engine exited early ({status})"
        reason = self.failure_reason()
        if reason:
            message += f": {reason}"
        raise ChildCrash(message, returncode=returncode)
