import time
import logging
import threading
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler

from webfarm.local.config import effective_settings as config

log = logging.getLogger(__name__)

# Events that never change a deployment.
IGNORED_EVENT_TYPES = {"opened", "closed_no_write"}


class DeployChangeHandler(FileSystemEventHandler):
    """
    A watchdog event handler that turns changes under `<sites>/<site>/bin`
    (or to the site's sidecar file) into redeploy requests for that site.

    A deployment touches many files, so a site only becomes ready once no
    event has arrived for `debounce_interval` seconds.
    """

    def __init__(
        self,
        sites_path: Path,
        debounce_interval: Optional[float] = None,
        ignored_paths: Iterable[Path] = (),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__()
        self.sites_path = Path(sites_path).resolve()
        self.debounce_interval = config.DEPLOY_DEBOUNCE_SECONDS if debounce_interval is None else debounce_interval
        self.ignored_paths = [Path(p).resolve() for p in ignored_paths]
        self.clock = clock
        self.last_event: Dict[str, float] = {}
        self._lock = threading.Lock()

    def get_site_for_path(self, path_str: str) -> Optional[str]:
        """
        Determines which site a file system event belongs to.

        :param path_str: The path string from the watchdog event.
        :return: The site name, or None if the path is not part of a deployment.
        """
        if not path_str:
            return None
        event_path = Path(path_str).resolve()

        for ignored in self.ignored_paths:
            if event_path == ignored or ignored in event_path.parents:
                return None

        try:
            parts = event_path.relative_to(self.sites_path).parts
        except ValueError:
            return None

        if len(parts) >= 2 and parts[1] == config.BUNDLE_DIR_NAME:
            return parts[0]
        if len(parts) == 2 and parts[1] == config.SIDECAR_FILENAME:
            return parts[0]
        return None

    def on_any_event(self, event: FileSystemEvent) -> None:
        """The main event handler method for watchdog, called on any file change."""
        if event.event_type in IGNORED_EVENT_TYPES:
            return

        for path_str in (event.src_path, getattr(event, "dest_path", "")):
            site_name = self.get_site_for_path(path_str)
            if site_name:
                log.debug(f"Watchdog event: {event.event_type} on {path_str} (site '{site_name}')")
                self.request_update(site_name)

    def request_update(self, site_name: str) -> None:
        """Marks a site for redeploy and restarts its quiet period."""
        with self._lock:
            self.last_event[site_name] = self.clock()

    def pop_ready_sites(self) -> List[str]:
        """Returns (and forgets) the sites whose last change is older than the debounce interval."""
        now = self.clock()
        with self._lock:
            ready = sorted(site for site, seen in self.last_event.items() if now - seen >= self.debounce_interval)
            for site_name in ready:
                del self.last_event[site_name]
        return ready
