import logging
import threading
from pathlib import Path
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple

from webfarm.local.config import effective_settings as config
from webfarm.local.supervisor.discovery import ExecutableFinder
from webfarm.local.supervisor.errors import TeardownError
from webfarm.local.supervisor.executable import Executable
from webfarm.local.supervisor.registry import SiteRegistry

log = logging.getLogger(__name__)


class UnitFailure(NamedTuple):
    """A worker that raised during a fan-out over all sites."""
    site: str
    name: str
    error: Exception


class BackgroundWorkerService:
    """
    Owns the background workers of every site and exposes the operations
    the host driver calls: `update_site`, `poll_all`, `drain_all` and
    `shutdown_all`.

    Fan-outs never abort on the first failing worker. Every failure is
    logged and returned to the caller as a `UnitFailure`.
    """

    def __init__(
        self,
        sites_path: Optional[Path] = None,
        execution_path: Optional[Path] = None,
        extension: Optional[str] = None,
        fanout_workers: Optional[int] = None,
        **unit_options: Any,
    ) -> None:
        """
        :param sites_path: Root of the deployed sites, `SITES_DIR` by default.
        :param execution_path: Root of the run directories, `EXECUTION_DIR` by default.
        :param extension: Worker binary extension, `EXECUTABLE_EXTENSION` by default.
        :param fanout_workers: Threads used by fan-outs, `FANOUT_WORKERS` by default.
        :param unit_options: Extra keyword arguments passed to every Executable.
        """
        self.sites_path = Path(sites_path or config.SITES_DIR)
        self.execution_path = Path(execution_path or config.EXECUTION_DIR)
        self.fanout_workers = max(1, fanout_workers or config.FANOUT_WORKERS)
        self.finder = ExecutableFinder(self.sites_path, extension, **unit_options)
        self.registry = SiteRegistry()
        # Held by every registry mutation and fan-out so a worker is never
        # polled while it is being built or torn down.
        self._lock = threading.RLock()

    def __enter__(self) -> "BackgroundWorkerService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown_all()

    def update_site(self, site_name: str) -> List[Executable]:
        """
        Redeploys a site: retires the current generation, then stages and
        launches a fresh one from a new discovery pass.

        :param site_name: The site to redeploy.
        :return: The workers of the new generation.
        :raises TeardownError: If a worker of the old generation could not be removed.
            The new generation is not started and the failed workers stay registered.
        """
        with self._lock:
            previous = self.registry.pop(site_name)
            if previous:
                log.info(f"Tearing down {len(previous)} worker(s) of site '{site_name}'...")
            failures = self._run_each([(site_name, unit) for unit in previous], lambda unit: unit.teardown(), "teardown")
            if failures:
                # Workers still on disk stay registered so the next update_site or shutdown_all retries them.
                failed_names = {failure.name for failure in failures}
                self.registry.replace(site_name, [unit for unit in previous if unit.name in failed_names])
                first = failures[0].error
                raise TeardownError(
                    f"{len(failures)} worker(s) of site '{site_name}' could not be torn down; "
                    "the new generation was not started.",
                    path=getattr(first, "path", None),
                    attempts=getattr(first, "attempts", 0),
                ) from first

            site_execution_path = self.execution_path / site_name
            new_units: List[Executable] = []
            try:
                for unit in self.finder.find_executables(site_name):
                    new_units.append(unit)
                    unit.stage(site_execution_path)
                    unit.launch()
            finally:
                # Workers started before a failure stay registered so shutdown_all can reclaim them.
                self.registry.replace(site_name, new_units)

            log.info(f"Site '{site_name}' updated with {len(new_units)} worker(s).")
            return new_units

    def poll_all(self) -> List[UnitFailure]:
        """Restarts every worker that crashed since the previous poll."""
        return self._fan_out(lambda unit: unit.poll(), "poll")

    def drain_all(self, timeout: Optional[float] = None) -> List[UnitFailure]:
        """Gives every worker a bounded grace window to exit on its own."""
        return self._fan_out(lambda unit: unit.drain(timeout), "drain")

    def shutdown_all(self) -> List[UnitFailure]:
        """
        Tears down every worker of every site and empties the registry.

        Calling it again is a no-op.
        """
        with self._lock:
            pairs = self.registry.clear()
            if pairs:
                log.info(f"Shutting down {len(pairs)} worker(s)...")
            return self._run_each(pairs, lambda unit: unit.teardown(), "teardown")

    def status(self) -> Dict[str, List[Dict[str, Any]]]:
        """Returns the status of every registered worker, grouped by site."""
        with self._lock:
            return {site: [unit.status() for unit in self.registry.units(site)] for site in self.registry.sites()}

    def _fan_out(self, action: Callable[[Executable], Any], label: str) -> List[UnitFailure]:
        with self._lock:
            return self._run_each(self.registry.all_units(), action, label)

    def _run_each(
        self,
        pairs: List[Tuple[str, Executable]],
        action: Callable[[Executable], Any],
        label: str,
    ) -> List[UnitFailure]:
        """Applies `action` to each worker and collects the failures."""
        if self.fanout_workers > 1 and len(pairs) > 1:
            with ThreadPoolExecutor(max_workers=self.fanout_workers, thread_name_prefix=f"Worker-{label}") as pool:
                futures = [(site, unit, pool.submit(action, unit)) for site, unit in pairs]
                outcomes = [(site, unit, future.exception()) for site, unit, future in futures]
        else:
            outcomes = []
            for site, unit in pairs:
                try:
                    action(unit)
                    outcomes.append((site, unit, None))
                except Exception as e:
                    outcomes.append((site, unit, e))

        failures = []
        for site, unit, error in outcomes:
            if error is None:
                continue
            log.error(f"Worker '{unit.name}' of site '{site}' failed during {label}: {error}", exc_info=error)
            failures.append(UnitFailure(site, unit.name, error))
        return failures
