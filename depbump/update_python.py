"""Applying a pip dependency update to requirement files."""

import logging

from .config import Settings, get_settings
from .credentials import normalize
from .editor import REQUIREMENTS_TXT, replace_declaration
from .errors import DependencyFileNotFound
from .models import Credential, Dependency, DependencyFile

logger = logging.getLogger(__name__)


class PipFileUpdater:
    """Rewrite the dependency's specifier in every requirements file that declares it."""

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

    def updated_dependency_files(self) -> list[DependencyFile]:
        updated = []
        for record in self.dependency.requirements:
            if record.requirement is None:
                continue
            file = next((f for f in self.dependency_files if f.name == record.file), None)
            if file is None:
                raise DependencyFileNotFound(record.file)

            content = replace_declaration(
                file.content, self.dependency.name, REQUIREMENTS_TXT, record.requirement
            )
            if content is None:
                logger.debug("%s has no specifier in %s", self.dependency.name, file.name)
                continue
            if content != file.content:
                updated.append(file.with_content(content))
        return updated
