import sys
import time
import shutil
import psutil
import logging
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional

from webfarm.local.supervisor.errors import TeardownError

log = logging.getLogger(__name__)


#* --- Process Creation ---
def get_executable_path(directory: Path, exe_name: str, extension: str) -> Path:
    """Returns the full path of `<directory>/<exe_name><extension>`."""
    return directory / f"{exe_name}{extension}"

def _get_popen_creation_flags() -> Dict[str, Any]:
    """Returns platform-specific creation flags for subprocess.Popen."""
    if sys.platform == "win32":
        return {"creationflags": subprocess.CREATE_NO_WINDOW}
    return {"start_new_session": True}

def launch_process(args: List[str], cwd: Path) -> subprocess.Popen:
    """
    Starts a detached child process with no console window and no captured output.

    :param args: The command line, executable first.
    :param cwd: The working directory of the child.
    :return: The Popen handle of the started process.
    """
    return subprocess.Popen(
        args,
        cwd=str(cwd),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        **_get_popen_creation_flags()
    )


#* --- Process Termination ---
def _forceful_kill(processes: List[psutil.Process]) -> None:
    """Kills the given processes, skipping any that already exited."""
    for proc in processes:
        try:
            log.debug(f"Killing process {proc.name()} (PID {proc.pid}).")
            proc.kill()
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied:
            log.warning(f"Access denied while killing process {proc.pid}.")

def kill_process_tree(process: subprocess.Popen, timeout: float = 5.0) -> None:
    """
    Forcefully kills a child process and every descendant it spawned.

    Descendants are found through psutil before the parent dies, since
    orphans get re-parented and can no longer be traced back. The parent
    itself is killed and reaped through its Popen handle.

    :param process: The Popen handle of the child process.
    :param timeout: Seconds to wait for the killed processes to go away.
    """
    try:
        children = psutil.Process(process.pid).children(recursive=True)
    except psutil.NoSuchProcess:
        children = []

    _forceful_kill(children)
    try:
        process.kill()
    except ProcessLookupError:
        pass

    try:
        process.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        log.warning(f"Process {process.pid} is still alive {timeout}s after being killed.")

    _, alive = psutil.wait_procs(children, timeout=timeout)
    for proc in alive:
        log.warning(f"Child process {proc.pid} is still alive {timeout}s after being killed.")


#* --- Filesystem Cleanup ---
def remove_tree_with_retry(path: Path, attempts: int, delay: float) -> int:
    """
    Recursively deletes a directory, retrying while the OS refuses to release files.

    A just-killed process, an antivirus scanner or an indexer can briefly hold
    handles inside the directory; such failures surface as OSError (locked or
    access denied) and are retried after `delay` seconds. A directory that is
    already gone counts as removed.

    :param path: Directory to delete.
    :param attempts: Maximum number of deletion attempts.
    :param delay: Pause in seconds between attempts.
    :return: The attempt number that succeeded (0 if there was nothing to delete).
    :raises TeardownError: If the directory still cannot be removed after the last attempt.
    """
    last_error: Optional[OSError] = None
    for attempt in range(1, attempts + 1):
        if not path.exists():
            return attempt if last_error else 0
        try:
            shutil.rmtree(path)
            if attempt > 1:
                log.info(f"Removed '{path}' on attempt {attempt}/{attempts}.")
            return attempt
        except FileNotFoundError:
            return attempt
        except OSError as e:
            last_error = e
            log.debug(f"Could not remove '{path}' (attempt {attempt}/{attempts}): {e}")
            if attempt < attempts:
                time.sleep(delay)

    raise TeardownError(
        f"Failed to remove '{path}' after {attempts} attempts: {last_error}",
        path=path,
        attempts=attempts,
    ) from last_error
