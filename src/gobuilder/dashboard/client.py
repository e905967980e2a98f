"""
Client for the build dashboard.

The dashboard hands out work ("which revision should this builder build
next"), stores commits and build results, and lists the secondary projects.
Every reply is a JSON envelope ``{"Response": ..., "Error": ""}``; a
non-empty ``Error`` means the request was understood but refused.

Read-only queries are retried a few times since repeating them is harmless.
Writes are sent exactly once per call; the dashboard stores results keyed by
builder, package and hash, so a caller retrying on a later cycle cannot
create duplicates.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from ..models.results import BuildResult
from ..models.runtime import Revision
from ..validation import ReportingError, simple_retry

logger = logging.getLogger(__name__)

KIND_BUILD_COMMIT = "build-go-commit"
KIND_BUILD_PACKAGE = "build-package"


class DashboardClient:
    """
    HTTP client for the dashboard API.
    """

    def __init__(
        self,
        host: str,
        retries: int = 3,
        retry_delay: float = 1.0,
        request_timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            host: Dashboard host name, or a full base URL
            retries: Attempts for read-only queries
            retry_delay: Seconds between attempts
            request_timeout: Per-request timeout; None blocks
            session: Pre-configured requests session (tests inject a mock)
        """
        if "://" not in host:
            host = f"http://{host}"
        self.base_url = host.rstrip("/") + "/"
        self.retries = retries
        self.retry_delay = retry_delay
        self.request_timeout = request_timeout
        self.session = session or requests.Session()

    def _call(
        self,
        method: str,
        cmd: str,
        params: Dict[str, str],
        body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Perform one request and decode the envelope.

        Raises:
            ReportingError: On transport failure, HTTP error status or an
                undecodable reply
        """
        url = self.base_url + cmd
        try:
            response = self.session.request(
                method, url, params=params, json=body, timeout=self.request_timeout
            )
            response.raise_for_status()
            envelope = response.json()
        except requests.RequestException as e:
            raise ReportingError(f"{method} {url}: {e}") from e
        except ValueError as e:
            raise ReportingError(f"{method} {url}: invalid JSON reply: {e}") from e
        if not isinstance(envelope, dict):
            raise ReportingError(f"{method} {url}: unexpected reply {envelope!r}")
        return envelope

    def _query(self, cmd: str, params: Dict[str, str]) -> Dict[str, Any]:
        return simple_retry(
            lambda: self._call("GET", cmd, params),
            max_attempts=self.retries,
            delay=self.retry_delay,
            context=f"dashboard {cmd}",
        )

    def todo(self, builder: str, package: str = "", go_hash: str = "") -> str:
        """
        Ask for the next revision this builder should build.

        Args:
            builder: Build configuration name
            package: Secondary project import path, empty for the primary project
            go_hash: Primary revision a secondary project is built against

        Returns:
            The revision hash, or "" when there is nothing to do

        Raises:
            ReportingError: If the dashboard could not be queried
        """
        kind = KIND_BUILD_PACKAGE if package else KIND_BUILD_COMMIT
        envelope = self._query("todo", {
            "kind": kind,
            "builder": builder,
            "packagePath": package,
            "goHash": go_hash,
        })
        if envelope.get("Error"):
            raise ReportingError(f"todo {builder} {package}: {envelope['Error']}")
        response = envelope.get("Response")
        if not response:
            return ""
        if response.get("Kind") not in (None, kind):
            raise ReportingError(f"todo {builder}: expected kind {kind}, got {response.get('Kind')}")
        data = response.get("Data") or {}
        return data.get("Hash", "") or ""

    def commit_exists(self, package: str, hash: str) -> bool:
        """
        Whether the dashboard already knows about a commit.

        Raises:
            ReportingError: If the dashboard could not be reached
        """
        envelope = self._query("commit", {"packagePath": package, "hash": hash})
        # The dashboard answers "not found" through the Error field.
        return not envelope.get("Error")

    def post_commit(self, key: str, package: str, revision: Revision) -> None:
        """
        Record a commit on the dashboard.

        Raises:
            ReportingError: If the commit was not stored
        """
        body = {
            "PackagePath": package,
            "Hash": revision.hash,
            "ParentHash": revision.parent,
            "User": revision.author,
            "Desc": revision.desc,
            "Time": revision.date,
        }
        envelope = self._call("POST", "commit", {"key": key}, body)
        if envelope.get("Error"):
            raise ReportingError(f"commit {revision.hash}: {envelope['Error']}")

    def post_result(self, key: str, result: BuildResult) -> None:
        """
        Record a build result on the dashboard.

        Raises:
            ReportingError: If the result was not stored
        """
        envelope = self._call("POST", "result", {"key": key}, result.to_payload())
        if envelope.get("Error"):
            raise ReportingError(
                f"result {result.builder} {result.package or 'go'} {result.hash}: {envelope['Error']}"
            )

    def packages(self, kind: str = "subrepo") -> List[str]:
        """
        List the import paths of the secondary projects.

        Raises:
            ReportingError: If the dashboard could not be queried
        """
        envelope = self._query("packages", {"kind": kind})
        if envelope.get("Error"):
            raise ReportingError(f"packages {kind}: {envelope['Error']}")
        return [p["Path"] for p in envelope.get("Response") or [] if p.get("Path")]
