"""Pytest configuration and shared fixtures for the worker host tests."""
import sys
import time
from pathlib import Path
from typing import Callable, Dict, Optional

import pytest

from webfarm.local.supervisor import BackgroundWorkerService, Executable

EXT = ".exe"

# Shell scripts stand in for worker binaries; they are named <name>.exe like the real thing.
SLEEP_SCRIPT = "#!/bin/sh\npwd > cwd.txt\nexec sleep 30\n"
CLEAN_EXIT_SCRIPT = "#!/bin/sh\necho run >> runs.log\nexit 0\n"
CRASH_ONCE_SCRIPT = (
    "#!/bin/sh\n"
    "echo run >> runs.log\n"
    "if [ -f crashed ]; then exec sleep 30; fi\n"
    "touch crashed\n"
    "exit 1\n"
)
SPAWNS_CHILD_SCRIPT = "#!/bin/sh\nsleep 30 &\necho $! > child.pid\nwait\n"

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="worker bundles are POSIX shell scripts")


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.02) -> bool:
    """Polls `predicate` until it is true or `timeout` expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def sites_path(tmp_path: Path) -> Path:
    path = tmp_path / "sites"
    path.mkdir()
    return path


@pytest.fixture
def execution_path(tmp_path: Path) -> Path:
    return tmp_path / "execution"


@pytest.fixture
def make_bundle(sites_path: Path) -> Callable[..., Path]:
    """Creates `<sites>/<site>/bin/<name>/` and returns the bundle directory."""
    def _make_bundle(
        site: str,
        name: str,
        script: Optional[str] = SLEEP_SCRIPT,
        files: Optional[Dict[str, str]] = None,
        executable: bool = True,
    ) -> Path:
        bundle_dir = sites_path / site / "bin" / name
        bundle_dir.mkdir(parents=True, exist_ok=True)
        if script is not None:
            exe_path = bundle_dir / f"{name}{EXT}"
            exe_path.write_text(script)
            exe_path.chmod(0o755 if executable else 0o644)
        for relative, content in (files or {}).items():
            target = bundle_dir / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
        return bundle_dir
    return _make_bundle


@pytest.fixture
def make_unit(sites_path: Path, make_bundle) -> Callable[..., Executable]:
    """Creates a bundle for `siteA` and returns an Executable for it."""
    created = []

    def _make_unit(name: str = "worker1", script: Optional[str] = SLEEP_SCRIPT, **kwargs) -> Executable:
        make_bundle("siteA", name, script=script, files=kwargs.pop("files", None))
        kwargs.setdefault("delete_delay", 0.01)
        unit = Executable(sites_path / "siteA" / "bin", name, extension=EXT, **kwargs)
        created.append(unit)
        return unit

    yield _make_unit
    for unit in created:
        unit.teardown()


@pytest.fixture
def service(sites_path: Path, execution_path: Path) -> BackgroundWorkerService:
    svc = BackgroundWorkerService(sites_path, execution_path, extension=EXT, delete_delay=0.01)
    yield svc
    svc.shutdown_all()
