import logging
import threading
from pathlib import Path
from typing import List, Optional, Sequence

from watchdog.observers import Observer

from webfarm.local.config import effective_settings as config
from webfarm.local.supervisor import process_utils
from webfarm.local.supervisor.deploy_watcher import DeployChangeHandler
from webfarm.local.supervisor.errors import TeardownError
from webfarm.local.supervisor.supervisor import BackgroundWorkerService

log = logging.getLogger(__name__)


def request_shutdown(signal_path: Optional[Path] = None) -> None:
    """Asks a running host to stop by creating the shutdown signal file."""
    signal_path = signal_path or config.SHUTDOWN_SIGNAL_PATH
    signal_path.parent.mkdir(parents=True, exist_ok=True)
    signal_path.touch()
    log.info(f"Shutdown signal written to '{signal_path}'.")

def check_for_shutdown_signal(signal_path: Path) -> bool:
    """Checks if the shutdown signal file exists."""
    if signal_path.exists():
        log.info("Shutdown signal file detected. Exiting supervision loop.")
        return True
    return False


class WorkerHost:
    """
    Drives a BackgroundWorkerService: deploys every site on start, polls the
    workers on a fixed interval, redeploys sites whose bundles changed on
    disk, and drains then shuts everything down on stop.
    """

    def __init__(
        self,
        service: BackgroundWorkerService,
        sites: Sequence[str] = (),
        poll_interval: Optional[float] = None,
        watch_deploys: Optional[bool] = None,
        shutdown_signal_path: Optional[Path] = None,
    ) -> None:
        self.service = service
        self.sites: List[str] = list(sites)
        # Without an explicit site list every site under the sites root is managed, including new ones.
        self.discover_sites = not self.sites
        self.poll_interval = config.SUPERVISOR_SLEEP_INTERVAL if poll_interval is None else poll_interval
        self.watch_deploys = config.DEPLOY_WATCH_ENABLED if watch_deploys is None else watch_deploys
        self.shutdown_signal_path = shutdown_signal_path or config.SHUTDOWN_SIGNAL_PATH
        self.stop_event = threading.Event()
        self.deploy_handler = DeployChangeHandler(service.sites_path, ignored_paths=[service.execution_path])
        self._observer: Optional[Observer] = None
        self._stopped = False

    def start(self) -> None:
        """Deploys every managed site and starts the deploy watcher."""
        self.shutdown_signal_path.unlink(missing_ok=True)
        if not self.sites:
            self.sites = self.service.finder.find_sites()
        log.info(f"Starting background workers for {len(self.sites)} site(s): {', '.join(self.sites) or '-'}")

        for site_name in self.sites:
            self._deploy_new_site(site_name)

        if self.watch_deploys and self.service.sites_path.is_dir():
            self._observer = Observer()
            self._observer.schedule(self.deploy_handler, str(self.service.sites_path), recursive=True)
            self._observer.start()
            log.info(f"Watching '{self.service.sites_path}' for deployments.")

    def _remove_stale_run_dirs(self, site_name: str) -> None:
        """Removes run directories left behind by a host that did not shut down cleanly."""
        stale_dir = self.service.execution_path / site_name
        if stale_dir.exists():
            log.warning(f"Removing stale run directories in '{stale_dir}'.")
            try:
                process_utils.remove_tree_with_retry(stale_dir, config.DELETE_RETRY_ATTEMPTS, config.DELETE_RETRY_DELAY)
            except TeardownError as e:
                log.error(f"Could not remove stale run directories in '{stale_dir}': {e}")

    def update_site(self, site_name: str) -> bool:
        """Redeploys one site, logging instead of raising so other sites keep running."""
        try:
            self.service.update_site(site_name)
            return True
        except Exception as e:
            log.error(f"Failed to update site '{site_name}': {e}", exc_info=True)
            return False

    def _deploy_new_site(self, site_name: str) -> None:
        if config.CLEAN_EXECUTION_DIR_ON_START:
            self._remove_stale_run_dirs(site_name)
        self.update_site(site_name)

    def _find_new_sites(self) -> List[str]:
        """Returns site directories that appeared since the last check, when sites are discovered."""
        if not self.discover_sites:
            return []
        return [site_name for site_name in self.service.finder.find_sites() if site_name not in self.sites]

    def run_once(self) -> None:
        """One supervision tick: deploy new sites, apply pending redeploys, then poll every worker."""
        ready_sites = self.deploy_handler.pop_ready_sites()

        new_sites = self._find_new_sites()
        for site_name in new_sites:
            log.info(f"New site '{site_name}' detected. Deploying...")
            self.sites.append(site_name)
            self._deploy_new_site(site_name)

        for site_name in ready_sites:
            if site_name in new_sites:
                continue
            if site_name not in self.sites:
                log.debug(f"Ignoring deployment change for unmanaged site '{site_name}'.")
                continue
            log.info(f"Deployment change detected for site '{site_name}'. Redeploying...")
            self.update_site(site_name)

        failures = self.service.poll_all()
        if failures:
            log.warning(f"{len(failures)} worker(s) failed their liveness check.")

        if self._observer is not None and not self._observer.is_alive():
            log.error("Watchdog observer thread has stopped unexpectedly. Restarting observer.")
            self._observer = Observer()
            self._observer.schedule(self.deploy_handler, str(self.service.sites_path), recursive=True)
            self._observer.start()

    def run(self) -> None:
        """Main supervision loop. Returns after the host has been stopped."""
        self.start()
        try:
            while not self.stop_event.is_set():
                if check_for_shutdown_signal(self.shutdown_signal_path):
                    break
                self.run_once()
                self.stop_event.wait(self.poll_interval)
        except KeyboardInterrupt:
            log.info("Supervision loop interrupted by user.")
        finally:
            self.stop()

    def stop(self) -> None:
        """Stops the deploy watcher, drains and tears down every worker. Safe to call twice."""
        self.stop_event.set()
        if self._stopped:
            return
        self._stopped = True

        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

        self.service.drain_all()
        failures = self.service.shutdown_all()
        if failures:
            log.error(f"{len(failures)} worker(s) could not be torn down cleanly.")
        self.shutdown_signal_path.unlink(missing_ok=True)
        log.info("Background worker host stopped.")
