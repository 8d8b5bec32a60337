from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from backend.mcps.codescan.config import ScanConfig
from backend.mcps.codescan.errors import (
    AuthenticationFailed,
    FileDecodeError,
    FileFetchFailed,
    RepositoryNotFound,
    ScanError,
)
from backend.mcps.codescan.models import FileRecord


logger = logging.getLogger(__name__)

DEFAULT_REF = "main"
PER_PAGE = 100


class GitLabClient:
    """
    Minimal GitLab REST client: project lookup, tree listing and raw file reads.

    The token is sent as PRIVATE-TOKEN and never included in error messages.
    Every request carries the configured timeout.
    """

    def __init__(
        self,
        token: str,
        config: Optional[ScanConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config or ScanConfig()
        self.base_url = self.config.gitlab_url
        self.timeout = self.config.request_timeout
        self.session = session or requests.Session()
        self.session.headers.update({"PRIVATE-TOKEN": token, "Accept": "application/json"})
        self._default_refs: Dict[str, str] = {}

    def get_project(self, project_path: str) -> Dict[str, Any]:
        response = self._get(f"/projects/{_encode(project_path)}")
        if response.status_code == 404:
            raise RepositoryNotFound(project_path)
        self._raise_for_auth(response)
        if response.status_code >= 400:
            raise ScanError(f"GitLab API error ({response.status_code}) for project {project_path}")
        project = response.json()
        self._default_refs[project_path] = project.get("default_branch") or DEFAULT_REF
        return project

    def list_projects(self) -> List[Dict[str, Any]]:
        """Projects the token's user is a member of (first page)."""
        response = self._get("/projects", params={"membership": "true", "per_page": PER_PAGE})
        self._raise_for_auth(response)
        if response.status_code >= 400:
            raise ScanError(f"Failed to fetch projects from GitLab ({response.status_code})")
        return response.json()

    def list_files(self, project_path: str, ref: Optional[str] = None) -> List[FileRecord]:
        """Recursive tree listing, following X-Next-Page pagination."""
        records: List[FileRecord] = []
        params: Dict[str, Any] = {
            "recursive": "true",
            "per_page": PER_PAGE,
            "ref": ref or self._ref_for(project_path),
        }
        page = "1"
        while page:
            response = self._get(
                f"/projects/{_encode(project_path)}/repository/tree",
                params={**params, "page": page},
            )
            if response.status_code == 404:
                raise RepositoryNotFound(project_path)
            self._raise_for_auth(response)
            if response.status_code >= 400:
                raise ScanError(f"GitLab API error ({response.status_code}) listing {project_path}")
            records.extend(FileRecord.from_tree_entry(entry) for entry in response.json())
            page = response.headers.get("X-Next-Page", "").strip()

        logger.debug("Listed %d tree entries for %s", len(records), project_path)
        return records

    def get_file_content(self, project_path: str, file_path: str, ref: Optional[str] = None) -> str:
        """
        Raw file content as text.

        Raises:
            FileFetchFailed: transport error, timeout or HTTP error status
            FileDecodeError: binary content or invalid UTF-8
        """
        endpoint = f"/projects/{_encode(project_path)}/repository/files/{_encode(file_path)}/raw"
        try:
            response = self._get(endpoint, params={"ref": ref or self._ref_for(project_path)})
        except requests.Timeout as exc:
            raise FileFetchFailed(file_path, "request timed out") from exc
        except requests.RequestException as exc:
            raise FileFetchFailed(file_path, f"request failed: {exc.__class__.__name__}") from exc

        if response.status_code >= 400:
            raise FileFetchFailed(file_path, f"HTTP {response.status_code}")

        raw = response.content
        if b"\x00" in raw:
            raise FileDecodeError(file_path, "binary content")
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise FileDecodeError(file_path, "not valid UTF-8") from exc

    def _ref_for(self, project_path: str) -> str:
        return self._default_refs.get(project_path, DEFAULT_REF)

    def _get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        return self.session.get(f"{self.base_url}{endpoint}", params=params, timeout=self.timeout)

    @staticmethod
    def _raise_for_auth(response: requests.Response) -> None:
        if response.status_code in (401, 403):
            raise AuthenticationFailed(f"GitLab rejected the credential ({response.status_code})")


def _encode(path: str) -> str:
    return quote(path, safe="")
