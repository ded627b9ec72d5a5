"""Dockerfile FROM line parsing."""

from .editor import DOCKERFILE
from .models import Dependency, DependencyFile, RequirementRecord


def parse_dockerfiles(files: list[DependencyFile]) -> list[Dependency]:
    """One dependency per tagged base image; digest-only and untagged images are skipped."""
    dependencies: dict[str, Dependency] = {}
    for file in files:
        for match in DOCKERFILE.pattern.finditer(file.content):
            tag = match.group("requirement")
            if not tag or match.group("digest"):
                continue
            name = match.group("name")
            source = {"type": "tag"}
            if match.group("registry"):
                source["registry"] = match.group("registry")
            record = RequirementRecord(file=file.name, requirement=None, source=source)

            dependency = dependencies.setdefault(
                name, Dependency(name=name, version=tag, package_manager="docker")
            )
            if dependency.requirement_for(file.name) is None:
                dependency.requirements.append(record)
    return list(dependencies.values())
