"""The update pipeline: resolve a dependency, rewrite its requirements, edit its files."""

import asyncio
import logging
from dataclasses import dataclass, field

from packaging.version import InvalidVersion, Version

from .config import Settings, get_settings
from .credentials import normalize
from .errors import DependencyFileNotResolvable, UpdateError
from .models import UNFIXABLE, Credential, Dependency, DependencyFile
from .registry import file_updater_for, update_checker_for

logger = logging.getLogger(__name__)


@dataclass
class UpdateReport:
    """Outcome of updating one dependency."""

    dependency: Dependency
    latest_version: str | None = None
    latest_resolvable_version: str | None = None
    semver_delta: str = "unknown"  # patch, minor, major, unknown
    updated_files: list[DependencyFile] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.updated_files)


def calculate_semver_delta(old_version: str | None, new_version: str | None) -> str:
    """Calculate semantic version delta.

    Args:
        old_version: Currently locked version
        new_version: Version being moved to

    Returns:
        Semver delta: "major", "minor", "patch", or "unknown"
    """
    if not old_version or not new_version:
        return "unknown"  # No baseline to compare

    try:
        old_ver = Version(old_version)
        new_ver = Version(new_version)
    except InvalidVersion:
        return "unknown"

    if new_ver > old_ver:
        if new_ver.major > old_ver.major:
            return "major"
        elif new_ver.minor > old_ver.minor:
            return "minor"
        elif new_ver.micro > old_ver.micro:
            return "patch"

    return "unknown"


def update_dependency(
    dependency: Dependency,
    dependency_files: list[DependencyFile],
    credentials: list[Credential | dict] = (),
    settings: Settings | None = None,
) -> UpdateReport:
    """Run one dependency through resolution, requirement rewriting and file editing.

    Version resolution completes before any file is edited.

    Raises:
        UnsupportedPackageManager: If the dependency's package manager is unknown
        DependencyFileNotResolvable: If a requirement cannot admit the new version
    """
    settings = settings or get_settings()
    credentials = normalize(credentials)

    checker = update_checker_for(dependency.package_manager)(
        dependency, dependency_files, credentials=credentials, settings=settings
    )
    if not checker.needs_update():
        logger.info("%s is up to date", dependency.name)
        return UpdateReport(dependency=dependency, notes=[f"{dependency.name} is up to date"])

    latest_version = checker.latest_version()
    latest_resolvable = checker.latest_resolvable_version()
    requirements = checker.updated_requirements()

    unfixable = [r.file for r in requirements if r.requirement == UNFIXABLE]
    if unfixable:
        raise DependencyFileNotResolvable(
            f"The requirement for {dependency.name} in {', '.join(unfixable)} "
            f"cannot be updated to {latest_resolvable or latest_version}"
        )

    new_version = latest_resolvable or latest_version
    updated_dependency = Dependency(
        name=dependency.name,
        version=new_version,
        requirements=requirements,
        package_manager=dependency.package_manager,
        previous_version=dependency.version,
        previous_requirements=dependency.requirements,
    )
    logger.info("Updating %s from %s to %s", dependency.name, dependency.version, new_version)

    updater = file_updater_for(dependency.package_manager)(
        updated_dependency, dependency_files, credentials=credentials, settings=settings
    )
    return UpdateReport(
        dependency=updated_dependency,
        latest_version=latest_version,
        latest_resolvable_version=latest_resolvable,
        semver_delta=calculate_semver_delta(dependency.version, new_version),
        updated_files=updater.updated_dependency_files(),
    )


async def update_dependencies(
    dependencies: list[Dependency],
    dependency_files: list[DependencyFile],
    credentials: list[Credential | dict] = (),
    settings: Settings | None = None,
    max_concurrency: int | None = None,
) -> list[UpdateReport | UpdateError]:
    """Update independent dependencies concurrently.

    Each pipeline runs in a worker thread with its own sandbox. Update errors
    are returned in place of that dependency's report; anything else propagates.

    Args:
        dependencies: Dependencies to update, all against the same files
        dependency_files: The project's dependency files
        credentials: Per-host credentials
        settings: Runtime settings
        max_concurrency: Maximum pipelines in flight (defaults to settings)

    Returns:
        One report or error per dependency, in input order
    """
    settings = settings or get_settings()
    semaphore = asyncio.Semaphore(max_concurrency or settings.max_concurrency)

    async def run(dependency: Dependency) -> UpdateReport | UpdateError:
        async with semaphore:
            try:
                return await asyncio.to_thread(
                    update_dependency, dependency, dependency_files, credentials, settings
                )
            except UpdateError as error:
                logger.warning("Could not update %s: %s", dependency.name, error)
                return error

    tasks = [run(dependency) for dependency in dependencies]
    return await asyncio.gather(*tasks)
