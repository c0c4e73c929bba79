"""Raw dependency sources and the per-run dependency cache."""

import logging
import os
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union
from urllib.parse import urlparse

from .exceptions import MalformedSourceError
from .models import Edge, Priority

logger = logging.getLogger(__name__)


def _is_url(path: str) -> bool:
    """Check if a path is a URL."""
    result = urlparse(str(path))
    return result.scheme in ('http', 'https')


def filter_by_ceiling(entries: Iterable[Edge], ceiling: int) -> List[Edge]:
    """Keep entries at or below ``ceiling`` plus every external entry, in order."""
    return [
        (priority, dep_id) for priority, dep_id in entries
        if priority <= ceiling or priority == Priority.EXTERNAL
    ]


def parse_priority(value, package_id: str, location: Optional[str] = None) -> int:
    try:
        return int(Priority.parse(value))
    except ValueError:
        raise MalformedSourceError(
            f"Invalid dependency priority {value!r}", package_id, location
        ) from None


class MappingSource:
    """Dependency lists held in memory: ``{package: [(priority, dep), ...]}``."""

    def __init__(self, dependencies: Mapping[str, Iterable[Tuple[Union[int, str], str]]]):
        self._dependencies: Dict[str, List[Edge]] = {}
        for package_id, entries in dependencies.items():
            parsed = []
            for entry in entries:
                try:
                    priority, dep_id = entry
                except (TypeError, ValueError):
                    raise MalformedSourceError(f"Invalid dependency record {entry!r}", package_id) from None
                if not dep_id:
                    raise MalformedSourceError("Empty dependency id", package_id)
                parsed.append((parse_priority(priority, package_id), str(dep_id)))
            self._dependencies[package_id] = parsed

    def fetch(self, package_id: str, priority_ceiling: int) -> List[Edge]:
        return filter_by_ceiling(self._dependencies.get(package_id, []), priority_ceiling)

    def __contains__(self, package_id: str) -> bool:
        return package_id in self._dependencies


class DepFileSource:
    """
    A directory of ``<package>.dep`` files.

    Each non-blank line holds ``<priority> <dependency>``, the priority
    given as 1..4 or as a name. ``#`` starts a comment. A package without a
    file has no dependencies.
    """

    SUFFIX = ".dep"

    def __init__(self, directory):
        self.directory = Path(directory)
        if not self.directory.is_dir():
            raise MalformedSourceError(f"Dependency directory not found: {self.directory}")

    def fetch(self, package_id: str, priority_ceiling: int) -> List[Edge]:
        return filter_by_ceiling(self.read(package_id), priority_ceiling)

    def read(self, package_id: str) -> List[Edge]:
        dep_file = self.directory / f"{package_id}{self.SUFFIX}"
        if not dep_file.is_file():
            logger.debug(f"No dependency file for {package_id}, treating it as a leaf")
            return []

        entries: List[Edge] = []
        with open(dep_file, 'r') as f:
            for line_no, line in enumerate(f, start=1):
                line = line.split('#', 1)[0].strip()
                if not line:
                    continue
                location = f"{dep_file}:{line_no}"
                parts = line.split()
                if len(parts) != 2:
                    raise MalformedSourceError(
                        f"Expected '<priority> <dependency>', got {line!r}", package_id, location
                    )
                priority = parse_priority(parts[0], package_id, location)
                entries.append((priority, parts[1]))

        logger.debug(f"Read {len(entries)} dependencies for {package_id} from {dep_file}")
        return entries

    def packages(self) -> List[str]:
        """Every package that has a dependency file."""
        return sorted(
            name[:-len(self.SUFFIX)] for name in os.listdir(self.directory)
            if name.endswith(self.SUFFIX)
        )


class XmlSource:
    """
    Dependencies described in a packages XML document::

        <packages>
          <package name="gtk3">
            <dependency status="required" name="glib2"/>
            <dependency status="external" name="xorg"/>
          </package>
        </packages>
    """

    def __init__(self, xml_path):
        self.xml_path = str(xml_path)
        self._dependencies = self._parse(self.xml_path)

    def fetch(self, package_id: str, priority_ceiling: int) -> List[Edge]:
        return filter_by_ceiling(self._dependencies.get(package_id, []), priority_ceiling)

    def packages(self) -> List[str]:
        return sorted(self._dependencies)

    @staticmethod
    def _parse(xml_path: str) -> Dict[str, List[Edge]]:
        logger.info(f"Reading package metadata from {xml_path}")
        try:
            tree = ET.parse(xml_path)
        except ET.ParseError as e:
            raise MalformedSourceError(f"Cannot parse XML: {e}", location=xml_path) from None
        except OSError as e:
            raise MalformedSourceError(f"Cannot read XML: {e}", location=xml_path) from None

        dependencies: Dict[str, List[Edge]] = {}
        for package in tree.getroot().iter('package'):
            name = (package.get('name') or '').strip()
            if not name:
                raise MalformedSourceError("<package> without a name", location=xml_path)
            entries = dependencies.setdefault(name, [])
            for dep in package.findall('dependency'):
                dep_name = (dep.get('name') or (dep.text or '')).strip()
                if not dep_name:
                    raise MalformedSourceError("<dependency> without a name", name, xml_path)
                status = dep.get('status', 'required')
                entries.append((parse_priority(status, name, xml_path), dep_name))

        logger.debug(f"Parsed {len(dependencies)} packages from {xml_path}")
        return dependencies


class DependencyCache:
    """
    Fetches each package's dependency list once per run.

    The cached list is handed out by reference and becomes the node's
    ``source_edges``: once a rewire or a cycle prune has dropped an entry,
    re-expanding the package later in the run regenerates the same
    decision.
    """

    def __init__(self, source):
        self.source = source
        self._cache: Dict[str, List[Edge]] = {}
        self.fetch_count = 0

    def get(self, package_id: str, priority_ceiling: int) -> List[Edge]:
        if package_id not in self._cache:
            entries = self.source.fetch(package_id, priority_ceiling)
            if entries is None:
                raise MalformedSourceError("Dependency source returned nothing", package_id)
            validated: List[Edge] = []
            for entry in entries:
                try:
                    priority, dep_id = entry
                except (TypeError, ValueError):
                    raise MalformedSourceError(f"Invalid dependency record {entry!r}", package_id) from None
                if not dep_id:
                    raise MalformedSourceError("Empty dependency id", package_id)
                validated.append((parse_priority(priority, package_id), dep_id))
            self._cache[package_id] = validated
            self.fetch_count += 1
            logger.debug(f"Cached {len(validated)} dependencies for {package_id} (ceiling {priority_ceiling})")
        return self._cache[package_id]

    def seed(self, package_id: str, entries: Iterable[Edge]) -> None:
        """Install a dependency list without asking the source."""
        self._cache[package_id] = [(int(priority), dep_id) for priority, dep_id in entries]

    def is_cached(self, package_id: str) -> bool:
        return package_id in self._cache

    def remove(self, package_id: str, dep_id: str, priority: Optional[int] = None,
               count: Optional[int] = 1) -> int:
        """
        Drop the first ``count`` entries naming ``dep_id`` (all of them when
        ``count`` is None), optionally only those with ``priority``.

        Returns:
            How many entries were dropped
        """
        entries = self._cache.get(package_id)
        if not entries:
            return 0
        kept: List[Edge] = []
        removed = 0
        for entry in entries:
            matches = entry[1] == dep_id and (priority is None or entry[0] == priority)
            if matches and (count is None or removed < count):
                removed += 1
                continue
            kept.append(entry)
        entries[:] = kept
        return removed

    def replace_first(self, package_id: str, old_id: str, new_id: str) -> bool:
        """Swap the first entry naming ``old_id`` for ``new_id``, keeping its priority."""
        entries = self._cache.get(package_id, [])
        for index, (priority, dep_id) in enumerate(entries):
            if dep_id == old_id:
                entries[index] = (priority, new_id)
                return True
        return False


def open_source(location: str):
    """Pick a source implementation for a directory, an XML file or a URL."""
    if _is_url(location):
        from .api_client import MetadataClient
        return MetadataClient(location)
    path = Path(location)
    if path.is_dir():
        return DepFileSource(path)
    if path.suffix.lower() == '.xml':
        return XmlSource(path)
    raise MalformedSourceError(f"Unsupported dependency source: {location}")
