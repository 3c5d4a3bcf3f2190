import shutil
import logging
import threading
import subprocess
from pathlib import Path
from typing import Any, Dict, Optional

from webfarm.local.config import effective_settings as config
from webfarm.local.supervisor import process_utils
from webfarm.local.supervisor.errors import AlreadyStagedError, InvalidStateError, NotStagedError

log = logging.getLogger(__name__)


class Executable:
    """
    A single background worker discovered in a site's bundle root.

    The worker is copied from `<base_path>/<name>/` into an isolated run
    directory, launched from there, restarted when it crashes, and finally
    killed with its run directory removed. An instance covers exactly one
    generation and is never reused after `teardown()`.
    """

    def __init__(
        self,
        base_path: Path,
        exe_name: str,
        extension: Optional[str] = None,
        drain_timeout: Optional[float] = None,
        delete_attempts: Optional[int] = None,
        delete_delay: Optional[float] = None,
    ) -> None:
        """
        :param base_path: The bundle root holding one sub-directory per worker (`<site>/bin`).
        :param exe_name: Logical name of the worker; also the sub-directory and binary name.
        :param extension: Binary extension, `EXECUTABLE_EXTENSION` by default.
        :param drain_timeout: Default seconds `drain()` waits, `DRAIN_TIMEOUT` by default.
        :param delete_attempts: Run directory removal attempts, `DELETE_RETRY_ATTEMPTS` by default.
        :param delete_delay: Pause between removal attempts, `DELETE_RETRY_DELAY` by default.
        """
        self.base_path = Path(base_path)
        self.name = exe_name
        self.extension = config.EXECUTABLE_EXTENSION if extension is None else extension
        self.drain_timeout = config.DRAIN_TIMEOUT if drain_timeout is None else drain_timeout
        self.delete_attempts = config.DELETE_RETRY_ATTEMPTS if delete_attempts is None else delete_attempts
        self.delete_delay = config.DELETE_RETRY_DELAY if delete_delay is None else delete_delay

        self.restart_count = 0
        self._execution_path: Optional[Path] = None
        self._process: Optional[subprocess.Popen] = None
        self._torn_down = False
        self._lock = threading.RLock()

    def __repr__(self) -> str:
        return f"Executable(name={self.name!r}, base_path='{self.base_path}')"

    #* --- Paths ---
    @property
    def origin_dir(self) -> Path:
        return self.base_path / self.name

    @property
    def origin_exe_path(self) -> Path:
        return process_utils.get_executable_path(self.origin_dir, self.name, self.extension)

    @property
    def execution_path(self) -> Optional[Path]:
        """The run directory base assigned at staging time (`<execution>/<site>`)."""
        return self._execution_path

    @property
    def execution_dir(self) -> Optional[Path]:
        if self._execution_path is None:
            return None
        return self._execution_path / self.name

    @property
    def execution_exe_path(self) -> Optional[Path]:
        if self._execution_path is None:
            return None
        return process_utils.get_executable_path(self.execution_dir, self.name, self.extension)

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process is not None else None

    @property
    def exit_code(self) -> Optional[int]:
        """The last known exit code, or None while running or before launch."""
        if self._process is None:
            return None
        return self._process.poll()

    #* --- Lifecycle ---
    def exists(self) -> bool:
        """Returns True if the origin binary is present."""
        return self.origin_exe_path.is_file()

    def is_running(self) -> bool:
        """Returns True if a process was launched and the OS reports it has not exited."""
        return self._process is not None and self._process.poll() is None

    def stage(self, execution_path: Path) -> None:
        """
        Copies the worker bundle into `<execution_path>/<name>/`.

        The sidecar configuration file found one level above the bundle root
        (`SIDECAR_FILENAME`) is copied into the run directory root as well.

        :param execution_path: Base directory for this site's run directories.
        :raises InvalidStateError: If the worker is running or was torn down.
        :raises AlreadyStagedError: If the worker was already staged, or its run directory is populated.
        """
        with self._lock:
            if self.is_running():
                raise InvalidStateError(f"Worker '{self.name}' is already running.")
            if self._torn_down:
                raise InvalidStateError(f"Worker '{self.name}' has been torn down and cannot be staged again.")
            if self._execution_path is not None:
                raise AlreadyStagedError(
                    f"Worker '{self.name}' is already staged in '{self.execution_dir}'. Tear it down first."
                )

            target_dir = Path(execution_path) / self.name
            if target_dir.is_dir() and any(target_dir.iterdir()):
                raise AlreadyStagedError(f"Run directory '{target_dir}' is already populated.")

            self._execution_path = Path(execution_path)
            log.debug(f"Staging worker '{self.name}' from '{self.origin_dir}' to '{target_dir}'.")
            target_dir.mkdir(parents=True, exist_ok=True)
            shutil.copytree(self.origin_dir, target_dir, dirs_exist_ok=True)

            sidecar_path = self.base_path.parent / config.SIDECAR_FILENAME
            if sidecar_path.is_file():
                shutil.copy2(sidecar_path, target_dir / config.SIDECAR_FILENAME)
                log.debug(f"Copied sidecar '{sidecar_path.name}' into '{target_dir}'.")

    def launch(self) -> None:
        """
        Starts the staged binary with its run directory as working directory.

        :raises InvalidStateError: If the worker is running or was torn down.
        :raises NotStagedError: If `stage()` has not been called.
        """
        with self._lock:
            if self.is_running():
                raise InvalidStateError(f"Worker '{self.name}' is already running.")
            if self._torn_down:
                raise InvalidStateError(f"Worker '{self.name}' has been torn down and cannot be launched.")
            if self._execution_path is None:
                raise NotStagedError(f"Worker '{self.name}' must be staged before it is launched.")
            self._start()

    def _start(self) -> None:
        """Spawns the staged binary. Callers hold the lock and have checked preconditions."""
        try:
            self._process = process_utils.launch_process([str(self.execution_exe_path)], self.execution_dir)
        except OSError as e:
            log.error(f"Failed to start worker '{self.name}' from '{self.execution_exe_path}': {e}")
            raise
        log.info(f"Worker '{self.name}' started with PID: {self._process.pid}")

    def poll(self) -> bool:
        """
        Restarts the worker in place if it exited with a non-zero code.

        A clean (zero) exit is an intentional stop and is never restarted.

        :return: True if the worker was relaunched.
        """
        with self._lock:
            if self._torn_down or self._process is None or self.is_running():
                return False

            exit_code = self._process.returncode
            if exit_code == 0:
                log.debug(f"Worker '{self.name}' exited cleanly. Not restarting.")
                return False

            log.warning(f"Worker '{self.name}' (PID: {self._process.pid}) exited with code {exit_code}. Restarting...")
            self._start()
            self.restart_count += 1
            return True

    def drain(self, timeout: Optional[float] = None) -> None:
        """
        Waits up to `timeout` seconds for the worker to exit on its own.

        The process is never killed here and a timeout is not an error.
        """
        with self._lock:
            if self._process is None:
                return
            wait_for = self.drain_timeout if timeout is None else timeout
            try:
                self._process.wait(timeout=wait_for)
            except subprocess.TimeoutExpired:
                log.debug(f"Worker '{self.name}' still running after {wait_for}s drain.")

    def teardown(self) -> None:
        """
        Kills the worker if it is running and removes its run directory.

        Safe to call on a worker that was never staged or launched, and safe
        to call more than once.

        :raises TeardownError: If the run directory is still locked after the last retry.
        """
        with self._lock:
            self._torn_down = True

            if self._process is not None:
                if self.is_running():
                    log.info(f"Killing worker '{self.name}' (PID: {self._process.pid}).")
                    process_utils.kill_process_tree(self._process)
                self._process = None

            if self._execution_path is not None:
                process_utils.remove_tree_with_retry(self.execution_dir, self.delete_attempts, self.delete_delay)

    def status(self) -> Dict[str, Any]:
        """Returns a snapshot of the worker state for display."""
        with self._lock:
            return {
                "name": self.name,
                "origin": str(self.origin_dir),
                "run_dir": str(self.execution_dir) if self.execution_dir else None,
                "pid": self.pid,
                "running": self.is_running(),
                "exit_code": self.exit_code,
                "restart_count": self.restart_count,
            }
