"""Docker image tag resolution."""

import logging
import re

import httpx

from .config import Settings, get_settings
from .credentials import auth_for, normalize
from .errors import PrivateSourceNotReachable
from .models import Credential, Dependency, DependencyFile, RequirementRecord

logger = logging.getLogger(__name__)

# Hub pagination is followed at most this many pages deep.
MAX_TAG_PAGES = 10

_TAG = re.compile(r"^(?P<version>\d+(?:\.\d+)*)(?P<suffix>[-_.][A-Za-z].*)?$")


def _tag_shape(tag: str) -> tuple[int, str] | None:
    """(number of numeric components, suffix) for comparable tags."""
    match = _TAG.match(tag)
    if not match:
        return None
    return len(match.group("version").split(".")), match.group("suffix") or ""


def _tag_key(tag: str) -> tuple[int, ...]:
    return tuple(int(p) for p in _TAG.match(tag).group("version").split("."))


class DockerUpdateChecker:
    """Newest tag of an image that has the same shape as the current tag."""

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
        self._tags: list[str] | None = None

    @property
    def registry(self) -> str | None:
        for req in self.dependency.requirements:
            if req.source and req.source.get("registry"):
                return req.source["registry"]
        return None

    def latest_version(self) -> str | None:
        current = self.dependency.version
        shape = _tag_shape(current) if current else None
        if shape is None:
            return None
        candidates = [t for t in self.tags() if _tag_shape(t) == shape]
        if not candidates:
            return None
        return max(candidates, key=_tag_key)

    def latest_resolvable_version(self) -> str | None:
        return self.latest_version()

    def updated_requirements(self) -> list[RequirementRecord]:
        # Image references carry no requirement string
        return list(self.dependency.requirements)

    def needs_update(self) -> bool:
        latest = self.latest_resolvable_version()
        if latest is None:
            return False
        return _tag_key(latest) > _tag_key(self.dependency.version)

    def tags(self) -> list[str]:
        if self._tags is None:
            self._tags = self._fetch_registry_tags() if self.registry else self._fetch_hub_tags()
        return self._tags

    def _get(self, url: str, auth: tuple[str, str] | None = None) -> httpx.Response:
        if self._client is not None:
            return self._client.get(url, auth=auth)
        with httpx.Client(timeout=self.settings.http_timeout, follow_redirects=True) as client:
            return client.get(url, auth=auth)

    def _fetch_hub_tags(self) -> list[str]:
        repository = self.dependency.name
        if "/" not in repository:
            repository = f"library/{repository}"
        url = f"{self.settings.docker_hub_url}/v2/repositories/{repository}/tags?page_size=100"

        tags = []
        for _ in range(MAX_TAG_PAGES):
            response = self._get(url)
            if response.status_code == 404:
                return []
            if response.status_code in (401, 403):
                raise PrivateSourceNotReachable("hub.docker.com")
            response.raise_for_status()
            body = response.json()
            tags.extend(r["name"] for r in body.get("results", []))
            url = body.get("next")
            if not url:
                break
        return tags

    def _fetch_registry_tags(self) -> list[str]:
        url = f"https://{self.registry}/v2/{self.dependency.name}/tags/list"
        response = self._get(url, auth=auth_for(url, self.credentials))
        if response.status_code in (401, 403):
            raise PrivateSourceNotReachable(self.registry)
        if response.status_code == 404:
            return []
        response.raise_for_status()
        return response.json().get("tags") or []
