"""Python requirements.txt parsing."""

import re

from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name

from .editor import REQUIREMENTS_TXT, locate_declaration
from .models import Dependency, DependencyFile, RequirementRecord


class RequirementsParser:
    """Parser for Python requirements.txt files."""

    def __init__(self):
        # Patterns for lines to skip
        self.skip_patterns = [
            r"^\s*#",  # Comment lines
            r"^\s*$",  # Empty lines
            r"^-e\s+",  # Editable installs
            r"^(?:git|hg|svn|bzr)\+",  # VCS URLs
            r"^https?://",  # Direct URLs
            r"^file://",  # File URLs
            r"^\./",  # Local paths
            r"^-[rcfi]\s+",  # Includes, constraints, find links, index
            r"^--",  # Other pip options
        ]

    def _should_skip_line(self, line: str) -> bool:
        """Check if a line should be skipped during parsing."""
        stripped = line.strip()
        if not stripped:
            return True

        return any(re.match(pattern, stripped) for pattern in self.skip_patterns)

    def _parse_requirement_line(self, line: str) -> Requirement | None:
        """Parse a single requirement line using packaging library."""
        line_for_parsing = line.split("#")[0].strip()
        if not line_for_parsing:
            return None
        try:
            return Requirement(line_for_parsing)
        except InvalidRequirement:
            # Skip malformed requirements gracefully
            return None

    def parse(self, file: DependencyFile) -> list[Dependency]:
        """Parse one requirements file into dependencies."""
        dependencies: dict[str, Dependency] = {}

        for line in file.content.splitlines():
            if self._should_skip_line(line):
                continue
            req = self._parse_requirement_line(line)
            if req is None or req.url:
                continue

            key = canonicalize_name(req.name)
            if key in dependencies:
                continue
            declaration = locate_declaration(file.content, req.name, REQUIREMENTS_TXT)
            requirement = declaration.requirement_text if declaration else None

            dependencies[key] = Dependency(
                name=req.name,
                version=_pinned_version(req),
                requirements=[RequirementRecord(file=file.name, requirement=requirement)],
                package_manager="pip",
            )

        return list(dependencies.values())


def _pinned_version(req: Requirement) -> str | None:
    specifiers = list(req.specifier)
    if len(specifiers) == 1 and specifiers[0].operator in ("==", "===") and "*" not in specifiers[0].version:
        return specifiers[0].version
    return None


def parse_requirements(files: list[DependencyFile]) -> list[Dependency]:
    """Parse requirements files into dependencies.

    A dependency declared in several files gets one requirement record per file.

    Args:
        files: requirements.txt style files

    Returns:
        Parsed dependencies, in first-seen order
    """
    parser = RequirementsParser()
    merged: dict[str, Dependency] = {}
    for file in files:
        for dependency in parser.parse(file):
            key = canonicalize_name(dependency.name)
            if key in merged:
                merged[key].requirements.extend(dependency.requirements)
                merged[key].version = merged[key].version or dependency.version
            else:
                merged[key] = dependency
    return list(merged.values())
