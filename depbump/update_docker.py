"""Applying a Docker image tag update to Dockerfiles."""

from .config import Settings, get_settings
from .credentials import normalize
from .editor import DOCKERFILE, find_declarations, rewrite
from .errors import DependencyFileNotFound
from .models import Credential, Dependency, DependencyFile


class DockerFileUpdater:
    """Point every `FROM` line for the image at the new tag."""

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
            file = next((f for f in self.dependency_files if f.name == record.file), None)
            if file is None:
                raise DependencyFileNotFound(record.file)
            content = self._updated_content(file.content)
            if content != file.content:
                updated.append(file.with_content(content))
        return updated

    def _updated_content(self, content: str) -> str:
        declarations = [
            d for d in find_declarations(content, DOCKERFILE)
            if d.name == self.dependency.name
            and d.requirement_text is not None
            and d.requirement_text == (self.dependency.previous_version or d.requirement_text)
        ]
        # Later spans first so earlier offsets stay valid
        for declaration in reversed(declarations):
            content = rewrite(content, declaration, self.dependency.version)
        return content
