import logging
from pathlib import Path
from typing import Any, Iterator, List, Optional

from webfarm.local.config import effective_settings as config
from webfarm.local.supervisor.executable import Executable

log = logging.getLogger(__name__)


class ExecutableFinder:
    """Finds the background workers deployed under `<sites_path>/<site>/bin`."""

    def __init__(self, sites_path: Path, extension: Optional[str] = None, **unit_options: Any) -> None:
        """
        :param sites_path: Root directory holding one folder per site.
        :param extension: Binary extension, `EXECUTABLE_EXTENSION` by default.
        :param unit_options: Extra keyword arguments passed to every Executable.
        """
        self.sites_path = Path(sites_path)
        self.extension = config.EXECUTABLE_EXTENSION if extension is None else extension
        self.unit_options = unit_options

    def get_bundle_root(self, site_name: str) -> Path:
        return self.sites_path / site_name / config.BUNDLE_DIR_NAME

    def find_executables(self, site_name: str) -> Iterator[Executable]:
        """
        Yields one Executable per `bin/<name>/` folder that holds `<name><ext>`.

        Folders without the binary (support files only) are skipped. A site
        without a bundle root yields nothing.
        """
        bundle_root = self.get_bundle_root(site_name)
        if not bundle_root.is_dir():
            log.debug(f"Site '{site_name}' has no bundle root at '{bundle_root}'.")
            return

        for sub_dir in sorted(p for p in bundle_root.iterdir() if p.is_dir()):
            exe = Executable(bundle_root, sub_dir.name, extension=self.extension, **self.unit_options)
            if exe.exists():
                yield exe
            else:
                log.debug(f"Skipping '{sub_dir}': no '{exe.origin_exe_path.name}' inside.")

    def find_sites(self) -> List[str]:
        """Returns the names of all site directories under the sites root."""
        if not self.sites_path.is_dir():
            return []
        return sorted(p.name for p in self.sites_path.iterdir() if p.is_dir() and not p.name.startswith('.'))
