import threading
from typing import Dict, Iterable, List, Tuple

from webfarm.local.supervisor.errors import DuplicateUnitError
from webfarm.local.supervisor.executable import Executable


class SiteRegistry:
    """
    Maps each site to the workers of its current generation.

    Every accessor returns a copy, so callers may tear down or replace
    workers while walking the result without mutating a live collection.
    """

    def __init__(self) -> None:
        self._sites: Dict[str, List[Executable]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return sum(len(units) for units in self._sites.values())

    def __contains__(self, site_name: str) -> bool:
        with self._lock:
            return site_name in self._sites

    def sites(self) -> List[str]:
        with self._lock:
            return list(self._sites)

    def units(self, site_name: str) -> List[Executable]:
        with self._lock:
            return list(self._sites.get(site_name, []))

    def all_units(self) -> List[Tuple[str, Executable]]:
        with self._lock:
            return [(site, unit) for site, units in self._sites.items() for unit in units]

    def replace(self, site_name: str, units: Iterable[Executable]) -> List[Executable]:
        """
        Installs `units` as the site's generation and returns the one it replaced.

        :raises DuplicateUnitError: If two units share a logical name.
        """
        new_units = list(units)
        names = [unit.name for unit in new_units]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise DuplicateUnitError(f"Site '{site_name}' would hold duplicate workers: {', '.join(duplicates)}")

        with self._lock:
            previous = self._sites.get(site_name, [])
            self._sites[site_name] = new_units
            return previous

    def pop(self, site_name: str) -> List[Executable]:
        """Removes the site and returns the workers it held."""
        with self._lock:
            return self._sites.pop(site_name, [])

    def clear(self) -> List[Tuple[str, Executable]]:
        """Empties the registry and returns every `(site, worker)` pair it held."""
        with self._lock:
            removed = [(site, unit) for site, units in self._sites.items() for unit in units]
            self._sites.clear()
            return removed
