"""Client for fetching dependency lists from a package metadata server."""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from . import __version__
from .exceptions import MalformedSourceError
from .models import Edge
from .sources import filter_by_ceiling, parse_priority

logger = logging.getLogger(__name__)


class MetadataClient:
    """Fetches ``{base_url}/packages/<id>/dependencies`` over HTTP."""

    def __init__(self, base_url: str, timeout: int = 30):
        """Initialize the API client."""
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "User-Agent": f"deporder/{__version__}"
        })

    def get_dependencies(self, package_id: str) -> Optional[Dict[str, Any]]:
        """
        Get the raw dependency document of a package.

        Args:
            package_id: The package to fetch dependencies for

        Returns:
            Parsed JSON response, or None if the server does not know the package

        Raises:
            MalformedSourceError: on transport errors, unexpected status codes
                or a body that is not JSON
        """
        encoded_name = quote(package_id, safe='')
        url = f"{self.base_url}/packages/{encoded_name}/dependencies"
        logger.debug(f"Fetching dependencies for {package_id}")
        logger.debug(f"  URL: {url}")

        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Error fetching dependencies for {package_id}: {e}")
            raise MalformedSourceError(f"Request failed: {e}", package_id, url) from e

        if response.status_code == 404:
            logger.info(f"Unknown package {package_id}, treating it as a leaf")
            return None
        if response.status_code != 200:
            raise MalformedSourceError(f"HTTP {response.status_code}", package_id, url)

        try:
            return response.json()
        except ValueError as e:
            raise MalformedSourceError(f"Response is not JSON: {e}", package_id, url) from None

    def fetch(self, package_id: str, priority_ceiling: int) -> List[Edge]:
        document = self.get_dependencies(package_id)
        if document is None:
            return []

        records = document.get("dependencies")
        if not isinstance(records, list):
            raise MalformedSourceError("Missing 'dependencies' list", package_id, self.base_url)

        entries: List[Edge] = []
        for record in records:
            name = record.get("name") if isinstance(record, dict) else None
            if not name:
                raise MalformedSourceError(f"Invalid dependency record {record!r}", package_id, self.base_url)
            priority = parse_priority(record.get("priority", "required"), package_id, self.base_url)
            entries.append((priority, name))

        return filter_by_ceiling(entries, priority_ceiling)

    def close(self):
        """Close the session and clean up resources."""
        self.session.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
