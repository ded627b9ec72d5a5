"""Applying a Yarn dependency update to package.json and yarn.lock."""

import logging

from .config import Settings, get_settings
from .credentials import normalize, scrub
from .editor import PACKAGE_JSON, replace_declaration
from .errors import DependencyFileNotFound
from .models import Credential, Dependency, DependencyFile
from .sandbox import in_a_temporary_directory, run_helper_subprocess, write_files

logger = logging.getLogger(__name__)

LOCKFILE = "yarn.lock"
# Carried into the sandbox so registry settings apply to the install.
CONFIG_FILES = (".npmrc", ".yarnrc")


class YarnFileUpdater:
    """Rewrite package.json ranges and regenerate yarn.lock through the JS helper."""

    def __init__(
        self,
        dependency: Dependency,
        dependency_files: list[DependencyFile],
        credentials: list[Credential | dict] = (),
        settings: Settings | None = None,
    ):
        self.dependency = dependency
        self.dependency_files = list(dependency_files)
        self.credentials = normalize(credentials)
        self.settings = settings or get_settings()

    def _file(self, name: str) -> DependencyFile | None:
        return next((f for f in self.dependency_files if f.name == name), None)

    def _lockfile_for(self, manifest: DependencyFile) -> DependencyFile | None:
        return next(
            (
                f for f in self.dependency_files
                if f.file_name == LOCKFILE and f.directory == manifest.directory
            ),
            None,
        )

    def updated_dependency_files(self) -> list[DependencyFile]:
        updated = {}
        for record in self.dependency.requirements:
            file = self._file(record.file)
            if file is None:
                raise DependencyFileNotFound(record.file)
            if record.requirement is None:
                continue
            content = replace_declaration(
                file.content, self.dependency.name, PACKAGE_JSON, record.requirement
            )
            if content is not None and content != file.content:
                updated[file.name] = file.with_content(content)

        manifest = next(
            (self._file(r.file) for r in self.dependency.requirements),
            next((f for f in self.dependency_files if f.file_name == "package.json"), None),
        )
        lockfile = self._lockfile_for(manifest) if manifest is not None else None
        if lockfile is not None:
            content = self._updated_lockfile_content(manifest, updated)
            if content != lockfile.content:
                updated[lockfile.name] = lockfile.with_content(content)

        return list(updated.values())

    def _updated_lockfile_content(self, manifest: DependencyFile, updated: dict[str, DependencyFile]) -> str:
        files = {}
        for file in self.dependency_files:
            if file.file_name in ("package.json", LOCKFILE) and file.directory != manifest.directory:
                continue
            # Registry config applies from the project directory or the repo root.
            if file.file_name in CONFIG_FILES and file.directory not in (manifest.directory, "/"):
                continue
            if file.file_name in ("package.json", LOCKFILE, *CONFIG_FILES):
                files[file.name] = updated.get(file.name, file).content

        with in_a_temporary_directory(self.settings.scratch_root) as directory:
            write_files(directory, files)
            project_directory = directory / manifest.directory.lstrip("/")
            result = run_helper_subprocess(
                self.settings.js_helper_command,
                "update",
                [str(project_directory.resolve()), self.dependency.name, self.dependency.version],
                timeout=self.settings.subprocess_timeout,
            )
        return scrub(result[LOCKFILE], self.credentials)
