"""
Docker Registry HTTP API v2 client

Thin, stateless wrappers around the handful of endpoints the overview needs.
Every call blocks until the registry answers; there are no retries.
"""

import logging
import time
from typing import Dict, List, Optional, Any

import requests

from .errors import DecodeError, DeadlineExceededError, MissingDigestError, NetworkError

logger = logging.getLogger(__name__)

MANIFEST_V2 = 'application/vnd.docker.distribution.manifest.v2+json'
DIGEST_HEADER = 'Docker-Content-Digest'


class Deadline:
    """
    Point in time after which no further registry call should start

    The remaining time caps the requests timeout of each call, which bounds
    connecting and every read but not a whole slow transfer.
    """

    def __init__(self, seconds: Optional[float] = None, clock=time.monotonic):
        """
        Args:
            seconds: Budget from now; None means no deadline
            clock: Monotonic clock, replaceable in tests
        """
        self._clock = clock
        self.expires_at = None if seconds is None else clock() + seconds

    def remaining(self) -> Optional[float]:
        if self.expires_at is None:
            return None
        return self.expires_at - self._clock()

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0


class RegistryClient:
    """Client for a single registry host"""

    def __init__(self, host: str, scheme: str = 'https',
                 session: Optional[requests.Session] = None,
                 timeout: Optional[float] = None):
        """
        Initialize client

        Args:
            host: Registry host, optionally with port (e.g., "registry.local:5000")
            scheme: URL scheme used to reach the registry (default: https)
            session: Pre-built session, mostly for tests
            timeout: Per-call timeout in seconds (default: None, wait forever)
        """
        self.host = host
        self.base_url = f"{scheme}://{host}"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'User-Agent': 'hubcrawler/0.1.0'
        })

    def _timeout(self, url: str, deadline: Optional[Deadline]) -> Optional[float]:
        if deadline is None or deadline.remaining() is None:
            return self.timeout
        remaining = deadline.remaining()
        if remaining <= 0:
            raise DeadlineExceededError(f"Deadline exceeded before requesting {url}")
        if self.timeout is None:
            return remaining
        return min(self.timeout, remaining)

    def _get(self, path: str, deadline: Optional[Deadline] = None,
             headers: Optional[Dict[str, str]] = None) -> requests.Response:
        url = f"{self.base_url}{path}"
        timeout = self._timeout(url, deadline)
        logger.debug("GET %s", url)
        try:
            response = self.session.get(url, headers=headers, timeout=timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Error fetching {url}: {e}") from e
        return response

    @staticmethod
    def _json(response: requests.Response, url: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(f"Invalid JSON from {url}: {e}") from e

    def fetch_catalog(self, deadline: Optional[Deadline] = None) -> Dict[str, List[str]]:
        """
        List repositories known to the registry

        Returns:
            Dict with a 'repositories' list of repository names
        """
        path = '/v2/_catalog'
        data = self._json(self._get(path, deadline), path)
        if not isinstance(data, dict):
            raise DecodeError(f"Unexpected catalog payload from {path}")
        repositories = data.get('repositories') or []
        if not isinstance(repositories, list):
            raise DecodeError(f"Unexpected catalog payload from {path}")
        return {'repositories': [str(r) for r in repositories]}

    def fetch_tag_list(self, repository: str, deadline: Optional[Deadline] = None) -> Dict[str, Any]:
        """
        List tags of a repository

        Args:
            repository: Repository name (e.g., "team/app")

        Returns:
            Dict with 'name' and 'tags'; a null tag list comes back empty
        """
        path = f"/v2/{repository}/tags/list"
        data = self._json(self._get(path, deadline), path)
        if not isinstance(data, dict):
            raise DecodeError(f"Unexpected tag list payload from {path}")
        tags = data.get('tags') or []
        if not isinstance(tags, list):
            raise DecodeError(f"Unexpected tag list payload from {path}")
        return {
            'name': data.get('name') or repository,
            'tags': [str(t) for t in tags],
        }

    def fetch_manifest(self, repository: str, tag: str,
                       deadline: Optional[Deadline] = None) -> Dict[str, Any]:
        """
        Fetch the manifest of a tag with the registry's default media type

        The schema 1 document is what carries the 'history' array used for
        provenance.
        """
        path = f"/v2/{repository}/manifests/{tag}"
        data = self._json(self._get(path, deadline), path)
        if not isinstance(data, dict):
            raise DecodeError(f"Unexpected manifest payload from {path}")
        return data

    def fetch_digest(self, repository: str, tag: str,
                     deadline: Optional[Deadline] = None) -> str:
        """
        Fetch the content digest needed to delete a tag

        Raises:
            MissingDigestError: The registry did not send a digest header
        """
        path = f"/v2/{repository}/manifests/{tag}"
        response = self._get(path, deadline, headers={'Accept': MANIFEST_V2})
        digest = response.headers.get(DIGEST_HEADER)
        if not digest:
            raise MissingDigestError(f"No {DIGEST_HEADER} header for {repository}:{tag}")
        return digest

    def delete_manifest(self, repository: str, digest: str,
                        deadline: Optional[Deadline] = None) -> int:
        """
        Delete a manifest by digest

        Returns:
            HTTP status code returned by the registry
        """
        url = f"{self.base_url}/v2/{repository}/manifests/{digest}"
        timeout = self._timeout(url, deadline)
        try:
            response = self.session.delete(url, timeout=timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Error deleting {url}: {e}") from e
        return response.status_code
