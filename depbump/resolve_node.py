"""JavaScript (Yarn) package version resolution."""

import logging
from urllib.parse import urlsplit

import httpx
from packaging.version import InvalidVersion, Version

from . import rewrite_node
from .config import Settings, get_settings
from .credentials import credential_for, normalize
from .errors import PrivateSourceNotReachable
from .models import Credential, Dependency, DependencyFile, RequirementRecord

logger = logging.getLogger(__name__)


def _is_prerelease(version: str) -> bool:
    return "-" in version


def _release(version: str) -> Version | None:
    try:
        return Version(version.split("+")[0])
    except InvalidVersion:
        return None


class YarnUpdateChecker:
    """Latest versions for a package from the npm registry.

    Yarn installs conflicting ranges as nested copies, so the latest
    release is always resolvable.
    """

    def __init__(
        self,
        dependency: Dependency,
        dependency_files: list[DependencyFile],
        credentials: list[Credential | dict] = (),
        settings: Settings | None = None,
        client: httpx.Client | None = None,
    ):
        self.dependency = dependency
        self.dependency_files = list(dependency_files)
        self.credentials = normalize(credentials)
        self.settings = settings or get_settings()
        self._client = client
        self._cache: dict[str, str | None] = {}

    @property
    def dependency_url(self) -> str:
        return f"{self.settings.npm_registry_url}/{self.dependency.name.replace('/', '%2F')}"

    def latest_version(self) -> str | None:
        if "latest" not in self._cache:
            self._cache["latest"] = self._fetch_latest_version()
        return self._cache["latest"]

    def latest_resolvable_version(self) -> str | None:
        return self.latest_version()

    def updated_requirements(self) -> list[RequirementRecord]:
        return rewrite_node.updated_requirements(
            self.dependency.requirements, self.latest_resolvable_version()
        )

    def needs_update(self) -> bool:
        latest = self.latest_resolvable_version()
        if latest is None:
            return False
        if self.dependency.version is None:
            return True
        new, current = _release(latest), _release(self.dependency.version)
        if new is None or current is None:
            return latest != self.dependency.version
        return new > current

    def _fetch_latest_version(self) -> str | None:
        document = self._fetch_registry_document()
        if document is None:
            return None

        latest = document.get("dist-tags", {}).get("latest")
        if latest and not _is_prerelease(latest):
            return latest

        stable = [v for v in document.get("versions", {}) if not _is_prerelease(v) and _release(v)]
        return max(stable, key=_release) if stable else None

    def _fetch_registry_document(self) -> dict | None:
        host = urlsplit(self.settings.npm_registry_url).hostname or ""
        credential = credential_for(host, self.credentials)
        headers = {"Authorization": f"Bearer {credential.password}"} if credential else {}

        if self._client is not None:
            response = self._client.get(self.dependency_url, headers=headers)
        else:
            with httpx.Client(timeout=self.settings.http_timeout, follow_redirects=True) as client:
                response = client.get(self.dependency_url, headers=headers)

        if response.status_code in (401, 403):
            raise PrivateSourceNotReachable(host)
        if response.status_code == 404:
            # Private packages 404 rather than 401 when the token lacks access
            if credential is not None:
                raise PrivateSourceNotReachable(host)
            return None
        response.raise_for_status()
        return response.json()
