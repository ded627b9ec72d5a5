"""Node.js package.json and yarn.lock parsing."""

import json
import re

from .errors import DependencyFileNotParseable
from .models import Dependency, DependencyFile, RequirementRecord

DEPENDENCY_SECTIONS = ("dependencies", "devDependencies", "optionalDependencies", "peerDependencies")

_LOCK_VERSION = re.compile(r'^\s+version:?\s+"?(?P<version>[^"\s]+)"?\s*$', re.MULTILINE)


def _lockfile_versions(content: str) -> dict[str, str]:
    """`{"name@range": version}` for every entry in a yarn.lock."""
    versions = {}
    for block in re.split(r"\n\s*\n", content):
        lines = [line for line in block.splitlines() if line and not line.startswith("#")]
        if not lines or lines[0].startswith(" "):
            continue
        match = _LOCK_VERSION.search(block)
        if not match:
            continue
        for spec in lines[0].rstrip(":").split(","):
            versions[spec.strip().strip('"')] = match.group("version")
    return versions


def parse_package_json(files: list[DependencyFile]) -> list[Dependency]:
    """Parse package.json (and yarn.lock, if present) into dependencies.

    Args:
        files: The dependency files for one project

    Returns:
        Parsed dependencies
    """
    package_json = next((f for f in files if f.file_name == "package.json"), None)
    if package_json is None:
        return []
    try:
        manifest = json.loads(package_json.content)
    except json.JSONDecodeError as e:
        raise DependencyFileNotParseable(package_json.name, f"{package_json.name} is not valid JSON: {e}") from e

    lockfile = next((f for f in files if f.file_name == "yarn.lock"), None)
    locked = _lockfile_versions(lockfile.content) if lockfile else {}

    dependencies: dict[str, Dependency] = {}
    for section in DEPENDENCY_SECTIONS:
        for name, requirement in (manifest.get(section) or {}).items():
            if name in dependencies:
                continue
            dependencies[name] = Dependency(
                name=name,
                version=locked.get(f"{name}@{requirement}"),
                requirements=[
                    RequirementRecord(file=package_json.name, requirement=requirement, groups=(section,))
                ],
                package_manager="yarn",
            )
    return list(dependencies.values())
