"""Bundler version resolution."""

import logging
import posixpath
import re
from functools import cached_property
from urllib.parse import quote, urlsplit

import httpx

from . import native_bundler
from .config import Settings, get_settings
from .credentials import auth_for, normalize
from .editor import GEMFILE, GEMSPEC, locate_declaration
from .errors import PathDependenciesNotReachable, PrivateSourceNotReachable
from .git import GitCommitChecker
from .models import Credential, Dependency, DependencyFile, RequirementRecord, VersionResolutionResult
from .rewrite_ruby import GemVersion, RequirementsUpdater

logger = logging.getLogger(__name__)

RUBYGEMS_HOSTS = ("rubygems.org", "index.rubygems.org")

_GLOBAL_SOURCE = re.compile(r"^\s*source\s*\(?\s*[\"'](?P<url>[^\"']+)[\"']", re.MULTILINE)
_GEM_SOURCE_OPTION = re.compile(r"(?:source:|:source\s*=>)\s*[\"'](?P<url>[^\"']+)[\"']")
_PATH_OPTION = re.compile(r"(?:path:|:path\s*=>)\s*[\"'](?P<path>[^\"']+)[\"']")


def _gem_version(version: str) -> GemVersion | None:
    try:
        return GemVersion(version)
    except ValueError:
        return None


class BundlerUpdateChecker:
    """Latest and latest-resolvable versions for a Ruby gem."""

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
        self._resolvable_details: dict[bool, VersionResolutionResult | None] = {}

    # Files

    def _file(self, *names: str) -> DependencyFile | None:
        return next((f for f in self.dependency_files if f.name in names), None)

    @property
    def gemfile(self) -> DependencyFile | None:
        return self._file("Gemfile", "gems.rb")

    @property
    def lockfile(self) -> DependencyFile | None:
        return self._file("Gemfile.lock", "gems.locked")

    @property
    def gemspecs(self) -> list[DependencyFile]:
        return [f for f in self.dependency_files if f.name.endswith(".gemspec")]

    @property
    def ruby_version_file(self) -> DependencyFile | None:
        return self._file(".ruby-version")

    # Public interface

    @cached_property
    def git_commit_checker(self) -> GitCommitChecker:
        return GitCommitChecker(self.dependency, self.credentials, self.settings, self._client)

    def git_dependency(self) -> bool:
        return self.git_commit_checker.git_dependency()

    def latest_version(self) -> str | None:
        if self.dependency.is_path_dependency:
            return None
        if not self.git_dependency():
            return self.latest_release

        latest_release = self.latest_release
        if latest_release and self.git_commit_checker.head_commit_or_ref_in_release(latest_release):
            return latest_release
        if self.git_commit_checker.pinned():
            return self.dependency.version
        return self.git_commit_checker.head_commit_for_current_branch()

    def latest_resolvable_version(self) -> str | None:
        if not self.git_dependency():
            details = self.latest_resolvable_version_details()
            return details.version if details else None

        if not self.git_commit_checker.pinned():
            details = self.latest_resolvable_version_details()
            return details.commit_sha if details else None

        details = self.latest_resolvable_version_details(remove_git_source=True)
        latest_release = details.version if details else None
        if self.git_commit_checker.current_commit_in_release(latest_release):
            return latest_release
        return self.dependency.version

    def updated_requirements(self) -> list[RequirementRecord]:
        resolvable = None
        if self.dependency.requirement_for(self.gemfile.name if self.gemfile else "Gemfile"):
            details = self.latest_resolvable_version_details(
                remove_git_source=self._should_switch_source_from_git_to_rubygems()
            )
            resolvable = details.version if details else None
        return RequirementsUpdater(
            requirements=self.dependency.requirements,
            existing_version=self.dependency.version,
            remove_git_source=self._should_switch_source_from_git_to_rubygems(),
            latest_version=self.latest_release,
            latest_resolvable_version=resolvable,
        ).updated_requirements()

    def needs_update(self) -> bool:
        latest = self.latest_resolvable_version() if self.lockfile else self.latest_version()
        if latest is None or self.dependency.version is None:
            return latest is not None
        current, new = _gem_version(self.dependency.version), _gem_version(latest)
        if current is None or new is None:
            return latest != self.dependency.version
        return new > current

    # Registry lookups

    @cached_property
    def latest_release(self) -> str | None:
        """Highest non-prerelease version published on the gem's source."""
        source = self._registry_source()
        if source is None:
            versions = self._fetch_rubygems_versions()
        else:
            versions = self._fetch_compact_index_versions(source)
        if not versions:
            return None
        releases = [v for v in (_gem_version(n) for n in versions) if v and not v.prerelease]
        return str(max(releases)) if releases else None

    def _registry_source(self) -> str | None:
        for req in self.dependency.requirements:
            if req.source_type == "registry" and req.source and req.source.get("url"):
                return req.source["url"]
        if self.gemfile is None:
            return None
        declaration = locate_declaration(self.gemfile.content, self.dependency.name, GEMFILE)
        if declaration:
            match = _GEM_SOURCE_OPTION.search(declaration.text)
            if match:
                return match.group("url")
        sources = [m.group("url") for m in _GLOBAL_SOURCE.finditer(self.gemfile.content)]
        if sources and not any(urlsplit(s).hostname in RUBYGEMS_HOSTS for s in sources):
            return sources[0]
        return None

    def _get(self, url: str, auth: tuple[str, str] | None = None) -> httpx.Response:
        if self._client is not None:
            return self._client.get(url, auth=auth)
        with httpx.Client(timeout=self.settings.http_timeout, follow_redirects=True) as client:
            return client.get(url, auth=auth)

    def _fetch_rubygems_versions(self) -> list[str] | None:
        url = f"{self.settings.rubygems_url}/api/v1/versions/{quote(self.dependency.name)}.json"
        response = self._get(url)
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return [v["number"] for v in response.json() if not v.get("prerelease")]

    def _fetch_compact_index_versions(self, source: str) -> list[str] | None:
        url = f"{source.rstrip('/')}/info/{quote(self.dependency.name)}"
        response = self._get(url, auth=auth_for(url, self.credentials))
        if response.status_code in (401, 403):
            raise PrivateSourceNotReachable(urlsplit(source).hostname or source)
        if response.status_code == 404:
            return None
        response.raise_for_status()

        versions = []
        for line in response.text.splitlines():
            if not line.strip() or line.startswith("---"):
                continue
            number = line.split(" ", 1)[0].split("-")[0]
            versions.append(number)
        return versions

    # Resolution

    def latest_resolvable_version_details(self, remove_git_source: bool = False) -> VersionResolutionResult | None:
        if remove_git_source not in self._resolvable_details:
            self._resolvable_details[remove_git_source] = self._resolve(remove_git_source)
        return self._resolvable_details[remove_git_source]

    def _resolve(self, remove_git_source: bool) -> VersionResolutionResult | None:
        if self.gemfile is None or self.lockfile is None:
            return None
        if self.dependency.is_path_dependency:
            return None
        self._check_path_dependencies()

        lockfile = native_bundler.lock(
            self._prepared_files(remove_git_source),
            self.dependency.name,
            self.credentials,
            self.settings,
            git_urls=self._git_urls(),
        )
        version = native_bundler.locked_version(lockfile, self.dependency.name)
        if version is None:
            return None
        return VersionResolutionResult(
            version=version,
            commit_sha=native_bundler.locked_revision(lockfile, self.dependency.name),
        )

    def _prepared_files(self, remove_git_source: bool) -> dict[str, str]:
        name = self.dependency.name
        gemfile = native_bundler.loosen_requirement(self.gemfile.content, name)
        if remove_git_source:
            gemfile = native_bundler.remove_git_source(gemfile, name)

        files = {
            self.gemfile.name: native_bundler.https_with_token(gemfile, self.credentials),
            self.lockfile.name: native_bundler.https_with_token(self.lockfile.content, self.credentials),
        }
        for gemspec in self.gemspecs:
            content = native_bundler.sanitized_gemspec_content(
                gemspec.name, gemspec.content, self.lockfile.content
            )
            files[gemspec.name] = native_bundler.loosen_requirement(content, name, GEMSPEC)
        if self.ruby_version_file:
            files[self.ruby_version_file.name] = self.ruby_version_file.content
        return files

    def _check_path_dependencies(self) -> None:
        missing = []
        gemspec_dirs = {posixpath.normpath(posixpath.dirname(f.name.lstrip("/"))) for f in self.gemspecs}
        for match in GEMFILE.pattern.finditer(self.gemfile.content):
            path = _PATH_OPTION.search(match.group(0))
            if path and posixpath.normpath(path.group("path")) not in gemspec_dirs:
                missing.append(match.group("name"))
        if missing:
            raise PathDependenciesNotReachable(missing)

    def _git_urls(self) -> tuple[str, ...]:
        return tuple(
            r.source["url"] for r in self.dependency.requirements
            if r.source_type == "git" and r.source.get("url")
        )

    def _should_switch_source_from_git_to_rubygems(self) -> bool:
        if not self.git_dependency() or not self.git_commit_checker.pinned():
            return False
        details = self.latest_resolvable_version_details(remove_git_source=True)
        return self.git_commit_checker.current_commit_in_release(details.version if details else None)
