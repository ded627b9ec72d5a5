"""Python package version resolution."""

import json
import logging
import os
import re
from pathlib import Path
from urllib.parse import urlsplit

import httpx
from packaging.specifiers import SpecifierSet
from packaging.utils import canonicalize_name
from packaging.version import InvalidVersion, Version

from . import rewrite_python
from .config import Settings, get_settings
from .credentials import authenticated_url, normalize, scrub
from .editor import REQUIREMENTS_TXT, locate_declaration, rewrite
from .errors import (
    ChildProcessFailed,
    DependencyFileNotEvaluatable,
    DependencyFileNotResolvable,
    PrivateSourceNotReachable,
    UpdateError,
)
from .models import Credential, Dependency, DependencyFile, RequirementRecord
from .sandbox import in_a_temporary_directory, in_isolated_process, run_command, write_files

logger = logging.getLogger(__name__)

REQUIREMENTS_FILE = "requirements.txt"
REPORT_FILE = "pip-report.json"

_INDEX_OPTION = re.compile(r"^(?P<option>\s*(?:--index-url|--extra-index-url|-i)[\s=]+)(?P<url>\S+)", re.MULTILINE)
_PRIVATE_INDEX = re.compile(
    r"(?:40[13]|Unauthorized|Forbidden)[^\n]*?(?P<url>https?://[^\s'\"]+)"
)
_NOT_RESOLVABLE = re.compile(
    r"ResolutionImpossible|No matching distribution found|Could not find a version that satisfies"
)
_NOT_EVALUATABLE = re.compile(r"Invalid requirement|Could not open requirements file|Invalid URL")


def _pip_dry_run(directory: str, command: list[str], timeout: float) -> dict:
    # Runs in the isolated worker; PIP_* variables set here never reach the caller.
    os.chdir(directory)
    os.environ["PIP_DISABLE_PIP_VERSION_CHECK"] = "1"
    os.environ["PIP_NO_INPUT"] = "1"
    run_command(
        [*command, "install", "--dry-run", "--ignore-installed", "--quiet",
         "--report", REPORT_FILE, "-r", REQUIREMENTS_FILE],
        cwd=directory,
        timeout=timeout,
    )
    return json.loads(Path(directory, REPORT_FILE).read_text())


class PipUpdateChecker:
    """Latest and latest-resolvable versions for a Python package."""

    def __init__(
        self,
        dependency: Dependency,
        dependency_files: list[DependencyFile],
        credentials: list[Credential | dict] = (),
        settings: Settings | None = None,
        python_version: str | None = None,
        client: httpx.Client | None = None,
    ):
        """Initialize the checker.

        Args:
            dependency: Dependency to check
            dependency_files: Files the dependency was parsed from
            credentials: Per-host credentials for private indexes
            settings: Runtime settings (defaults to the environment)
            python_version: Target Python version (e.g., "3.11")
            client: Optional preconfigured HTTP client
        """
        self.dependency = dependency
        self.dependency_files = list(dependency_files)
        self.credentials = normalize(credentials)
        self.settings = settings or get_settings()
        self.python_version = python_version
        self._client = client
        self._cache: dict[str, dict | None] = {}
        self._latest_resolvable: dict[str, str | None] = {}

    @property
    def requirements_file(self) -> DependencyFile | None:
        return next((f for f in self.dependency_files if f.file_name == REQUIREMENTS_FILE), None)

    def latest_version(self) -> str | None:
        """Get the latest stable release of the package.

        Returns:
            Latest version string, or None if the package is unknown
        """
        metadata = self._fetch_package_metadata(self.dependency.name)
        if not metadata:
            return None

        releases = metadata.get("releases", {})
        available_versions = []
        for version_str, files in releases.items():
            try:
                version = Version(version_str)
            except InvalidVersion:
                continue  # Skip invalid versions
            if version.is_prerelease or not files:
                continue
            if all(f.get("yanked") for f in files):
                continue
            if self._is_compatible_with_python(files, version_str):
                available_versions.append(version)

        if not available_versions:
            # Use info.version as authoritative when no file metadata is published
            version_str = metadata.get("info", {}).get("version")
            if version_str and not self.python_version:
                try:
                    if not Version(version_str).is_prerelease:
                        return version_str
                except InvalidVersion:
                    pass
            return None

        return str(max(available_versions))

    def latest_resolvable_version(self) -> str | None:
        """Highest version pip can install alongside the other requirements.

        Returns:
            Resolved version string, or None when there is nothing to resolve against
        """
        if "version" not in self._latest_resolvable:
            self._latest_resolvable["version"] = self._resolve()
        return self._latest_resolvable["version"]

    def updated_requirements(self) -> list[RequirementRecord]:
        target = self.latest_resolvable_version() if self.requirements_file else self.latest_version()
        return rewrite_python.updated_requirements(self.dependency.requirements, target)

    def needs_update(self) -> bool:
        latest = self.latest_resolvable_version() if self.requirements_file else self.latest_version()
        if latest is None:
            return False
        if self.dependency.version is None:
            return True
        try:
            return Version(latest) > Version(self.dependency.version)
        except InvalidVersion:
            return latest != self.dependency.version

    def _fetch_package_metadata(self, package_name: str) -> dict | None:
        """Fetch package metadata from the index's JSON API.

        Args:
            package_name: Name of the package

        Returns:
            Package metadata dict or None if not found
        """
        # Check cache first
        if package_name in self._cache:
            return self._cache[package_name]

        url = f"{self.settings.pypi_url}/pypi/{package_name}/json"
        if self._client is not None:
            response = self._client.get(url)
        else:
            with httpx.Client(timeout=self.settings.http_timeout, follow_redirects=True) as client:
                response = client.get(url)

        if response.status_code in (401, 403):
            raise PrivateSourceNotReachable(urlsplit(url).hostname or url)
        if response.status_code == 404:
            metadata = None
        else:
            response.raise_for_status()
            metadata = response.json()

        self._cache[package_name] = metadata
        return metadata

    def _is_compatible_with_python(self, release_files: list[dict], version_str: str) -> bool:
        """Check if a release is compatible with target Python version.

        Args:
            release_files: List of release file metadata
            version_str: Version string being checked

        Returns:
            True if compatible, False otherwise
        """
        if not self.python_version:
            return True  # No filtering if no target Python version

        for file_info in release_files:
            requires_python = file_info.get("requires_python")
            if not requires_python:
                continue
            try:
                if Version(self.python_version) not in SpecifierSet(requires_python):
                    return False
            except (InvalidVersion, ValueError):
                logger.debug("Ignoring requires_python %r on %s", requires_python, version_str)
                continue

        return True

    def _resolve(self) -> str | None:
        if self.requirements_file is None or self.dependency.is_path_dependency:
            return None

        with in_a_temporary_directory(self.settings.scratch_root) as directory:
            write_files(directory, {REQUIREMENTS_FILE: self._prepared_requirements()})
            try:
                report = in_isolated_process(
                    _pip_dry_run,
                    str(directory.resolve()),
                    self.settings.pip_command,
                    self.settings.subprocess_timeout,
                    timeout=self.settings.subprocess_timeout + 30,
                    scratch_root=self.settings.scratch_root,
                )
            except ChildProcessFailed as error:
                raise self._classify_error(error) from error

        wanted = canonicalize_name(self.dependency.name)
        for item in report.get("install", []):
            metadata = item.get("metadata", {})
            if canonicalize_name(metadata.get("name", "")) == wanted:
                return metadata.get("version")
        return None

    def _prepared_requirements(self) -> str:
        """The requirements file with the target unconstrained and indexes authenticated."""
        content = self.requirements_file.content
        declaration = locate_declaration(content, self.dependency.name, REQUIREMENTS_TXT)
        if declaration is not None and declaration.requirement_span is not None:
            content = rewrite(content, declaration, "")
        return _INDEX_OPTION.sub(
            lambda m: m.group("option") + authenticated_url(m.group("url"), self.credentials),
            content,
        )

    def _classify_error(self, error: ChildProcessFailed) -> UpdateError:
        if error.error_class != "HelperSubprocessFailed":
            return error
        text = scrub(f"{error.error_message}\n{error.stderr}", self.credentials)
        logger.debug("pip failed for %s: %s", self.dependency.name, text)

        match = _PRIVATE_INDEX.search(text)
        if match:
            return PrivateSourceNotReachable(urlsplit(match.group("url")).hostname)
        if _NOT_EVALUATABLE.search(text):
            return DependencyFileNotEvaluatable(text.strip())
        if _NOT_RESOLVABLE.search(text):
            return DependencyFileNotResolvable(text.strip())
        return error
