"""
Proxy session.

Runs one `pacttap proxy` invocation: writes the engine config, starts the
recording engine under supervision, and synthesizes the consumer contract
every time the user hits Ctrl+C. The session lives exactly as long as the
engine does.
"""

import enum
import logging
import os
import signal
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..common.errors import ConfigError
from ..common.utils import ANSI_GREEN, ANSI_RESET, ANSI_YELLOW
from .config import ProxyConfig, setup_proxy_config
from .settings import ProxySettings
from .store import InteractionStore
from .supervisor import ProxySupervisor
from .synthesizer import synthesize
from .trigger import SynthesisTrigger
from .writer import write_contract


logger = logging.getLogger("pacttap.proxy")


class SessionState(enum.Enum):
    IDLE = "idle"
    CONFIG_WRITTEN = "config-written"
    PROXY_STARTING = "proxy-starting"
    PROXY_RUNNING = "proxy-running"
    SYNTHESIS_IN_PROGRESS = "synthesis-in-progress"
    SYNTHESIS_COMPLETE = "synthesis-complete"
    SYNTHESIS_FAILED = "synthesis-failed"
    PROXY_EXITED = "proxy-exited"


def synthesize_contract(settings: ProxySettings, out: Callable[[str], None] = print) -> bool:
    """
    One pass of the pipeline: read captures, synthesize, write.

    Nothing is written when no interactions were recorded.

    Args:
        settings: Session settings
        out: Where status lines go

    Returns:
        True if a contract was written

    Raises:
        ReadError: If the capture directory cannot be read
        WriteError: If the contract cannot be written
    """
    store = InteractionStore(str(settings.stubs_dir))
    contract, has_interactions = synthesize(store, settings.consumer_name, settings.provider_name)

    if store.skipped:
        logger.warning(f"Skipped {store.skipped} malformed capture record(s)")

    if not has_interactions:
        out("\nInfo - No contract was generated because no interactions were recorded")
        return False

    write_contract(contract, settings.output_path)
    out(f"\n{ANSI_GREEN}Success{ANSI_RESET} - wrote the consumer contract to {settings.output_path} "
        f"({len(contract.interactions)} interactions)")
    return True


def engine_environment() -> Dict[str, str]:
    """Our environment, with this package importable by the engine interpreter."""
    env = dict(os.environ)
    package_root = str(Path(__file__).resolve().parents[2])
    env["PYTHONPATH"] = os.pathsep.join(p for p in (package_root, env.get("PYTHONPATH")) if p)
    return env


class ProxySession:
    """
    Supervises the recording engine and snapshots contracts on demand.

    Lifecycle:
        IDLE -> CONFIG_WRITTEN -> PROXY_STARTING -> PROXY_RUNNING
        PROXY_RUNNING -> SYNTHESIS_IN_PROGRESS -> SYNTHESIS_COMPLETE | SYNTHESIS_FAILED
        ... -> PROXY_EXITED

    A trigger signal never stops the engine. The command ends when the
    engine exits; a failed synthesis pass stops the engine and is re-raised.

    Example:
        session = ProxySession(settings)
        session.run()
    """

    def __init__(
        self,
        settings: ProxySettings,
        signum: int = signal.SIGINT,
        out: Callable[[str], None] = print
    ):
        self.settings = settings
        self.signum = signum
        self.out = out
        self.state = SessionState.IDLE
        self.history: List[SessionState] = [SessionState.IDLE]
        self.proxy_config: Optional[ProxyConfig] = None
        self.supervisor: Optional[ProxySupervisor] = None
        self.trigger: Optional[SynthesisTrigger] = None
        self._state_lock = threading.Lock()

    def _transition(self, state: SessionState) -> None:
        with self._state_lock:
            logger.debug(f"Session state: {self.state.value} -> {state.value}")
            self.state = state
            self.history.append(state)

    def _prepare_work_dir(self) -> None:
        work_dir = Path(self.settings.work_dir)
        try:
            work_dir.mkdir(parents=True, exist_ok=True)
            self.settings.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigError(f"cannot create work directory {work_dir}: {e}") from e

    def _synthesis_pass(self) -> None:
        self.out("\n\ngenerating consumer contract...")
        self._transition(SessionState.SYNTHESIS_IN_PROGRESS)
        try:
            synthesize_contract(self.settings, out=self.out)
        except Exception:
            self._transition(SessionState.SYNTHESIS_FAILED)
            raise
        self._transition(SessionState.SYNTHESIS_COMPLETE)
        self._transition(SessionState.PROXY_RUNNING)

    def _on_synthesis_error(self, error: BaseException) -> None:
        logger.error(f"Contract synthesis failed, stopping the proxy: {error}")
        if self.supervisor is not None:
            self.supervisor.terminate()

    def run(self) -> int:
        """
        Run the session until the recording engine exits.

        Returns:
            The engine's exit status (0 or a graceful signal status)

        Raises:
            ConfigError: Invalid settings, before anything is started
            StartupError: The engine could not be launched
            ChildCrash: The engine exited unexpectedly
            ReadError, WriteError: A synthesis pass failed
        """
        settings = self.settings
        settings.validate()

        self._prepare_work_dir()
        self.proxy_config = setup_proxy_config(settings.port, settings.target, str(settings.config_path))
        self._transition(SessionState.CONFIG_WRITTEN)

        self.supervisor = ProxySupervisor(settings.build_engine_command(), env=engine_environment())
        self.trigger = SynthesisTrigger(
            self._synthesis_pass,
            signum=self.signum,
            on_error=self._on_synthesis_error,
        )

        # handler goes in before the engine exists so an early Ctrl+C is never lost
        self.trigger.install()
        try:
            self._transition(SessionState.PROXY_STARTING)
            self.supervisor.start()
            if self.trigger.error is not None:
                # a pass already failed while the engine was being launched
                self.supervisor.terminate()

            ready = self.supervisor.wait_until_ready(self.proxy_config.port, settings.ready_timeout)
            if ready:
                self._transition(SessionState.PROXY_RUNNING)
                self.out(f"{ANSI_GREEN}Listening{ANSI_RESET} - pacttap proxy is listening on port "
                         f"{self.proxy_config.port} and will proxy messages for {self.proxy_config.target.to}")
                self.out("\nHit Ctrl + C to generate the consumer contract")
            elif self.supervisor.running:
                self._transition(SessionState.PROXY_RUNNING)
                self.out(f"{ANSI_YELLOW}Warning{ANSI_RESET} - pacttap proxy is not confirmed listening on port "
                         f"{self.proxy_config.port} after {settings.ready_timeout}s")
                self.out("\nHit Ctrl + C to generate the consumer contract")

            returncode = self.supervisor.wait()
        finally:
            # a pass requested by the same Ctrl+C that stopped the engine still runs
            self.trigger.drain()
            self.trigger.uninstall()

        self._transition(SessionState.PROXY_EXITED)
        self.out(f"\nRecording engine exited (status {returncode})")

        if self.trigger.error is not None:
            raise self.trigger.error
        self.supervisor.check(returncode)
        return returncode
