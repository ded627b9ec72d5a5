"""Core data models for depbump."""

import posixpath
from dataclasses import dataclass, field, replace

# Marker returned by the requirement rewriters when a constraint cannot be
# relaxed to admit the target version.
UNFIXABLE = ":unfixable"


@dataclass(frozen=True)
class DependencyFile:
    """A manifest or lockfile fetched from the repository."""

    name: str  # path relative to the repository root
    content: str

    @property
    def file_name(self) -> str:
        return posixpath.basename(self.name)

    @property
    def directory(self) -> str:
        """Directory of the file, always starting with a `/`."""
        return "/" + posixpath.dirname(self.name).lstrip("/")

    def with_content(self, content: str) -> "DependencyFile":
        """Return a copy of this file carrying new content."""
        return replace(self, content=content)


@dataclass(frozen=True)
class RequirementRecord:
    """One declaration of a dependency inside one file."""

    file: str
    requirement: str | None = None
    groups: tuple[str, ...] = ()
    source: dict | None = None  # git, path, registry or tag details

    def with_requirement(self, requirement: str | None) -> "RequirementRecord":
        return replace(self, requirement=requirement)

    @property
    def source_type(self) -> str:
        if not self.source:
            return "registry"
        return self.source.get("type", "registry")


@dataclass
class Dependency:
    """A dependency together with every place it is declared."""

    name: str
    version: str | None = None
    requirements: list[RequirementRecord] = field(default_factory=list)
    package_manager: str = ""
    previous_version: str | None = None
    previous_requirements: list[RequirementRecord] | None = None

    def requirement_for(self, file_name: str) -> RequirementRecord | None:
        return next((r for r in self.requirements if r.file == file_name), None)

    @property
    def git_source(self) -> dict | None:
        sources = [r.source for r in self.requirements if r.source_type == "git"]
        return sources[0] if sources else None

    @property
    def is_path_dependency(self) -> bool:
        return any(r.source_type == "path" for r in self.requirements)


@dataclass(frozen=True)
class VersionResolutionResult:
    """Resolved version, plus the commit for unpinned git dependencies."""

    version: str | None
    commit_sha: str | None = None


@dataclass(frozen=True)
class Credential:
    """Secret scoped to one source host."""

    host: str
    username: str
    password: str

    @classmethod
    def from_dict(cls, data: dict) -> "Credential":
        return cls(
            host=data["host"],
            username=data.get("username") or "x-access-token",
            password=data["password"],
        )
