"""Package manager detection for dependency files."""

import fnmatch
import posixpath
import re

from .errors import UnsupportedPackageManager

# File names (or globs) each package manager reads.
MANAGER_FILES = {
    "bundler": ("Gemfile", "gems.rb", "*.gemspec", "Gemfile.lock", "gems.locked", ".ruby-version"),
    "yarn": ("package.json", "yarn.lock", ".npmrc", ".yarnrc"),
    "pip": ("requirements.txt", "requirements/*.txt"),
    "docker": ("Dockerfile", "*.Dockerfile"),
}

# Files whose presence selects the package manager.
MANIFESTS = {
    "bundler": ("Gemfile", "gems.rb", "*.gemspec"),
    "yarn": ("package.json",),
    "pip": ("requirements.txt", "requirements/*.txt"),
    "docker": ("Dockerfile", "*.Dockerfile"),
}


def identify(content: str, filename: str | None = None) -> str:
    """Detect package manager from content and filename hints.

    Args:
        content: The manifest file content
        filename: Optional filename for additional context

    Returns:
        Detected package manager: 'pip', 'yarn', 'bundler', 'docker' or 'unknown'
    """
    # Filename-based detection (takes precedence)
    if filename:
        base = posixpath.basename(filename)
        if base.endswith("requirements.txt"):
            return "pip"
        if base == "package.json":
            return "yarn"
        if base in ("Gemfile", "gems.rb") or base.endswith(".gemspec"):
            return "bundler"
        if base == "Dockerfile" or base.endswith(".Dockerfile"):
            return "docker"

    # Content-based detection
    if re.search(r"^\s*gem\s+[\"']", content, re.MULTILINE):
        return "bundler"
    if re.search(r"^\s*FROM\s+\S+", content, re.MULTILINE | re.IGNORECASE):
        return "docker"

    python_patterns = [
        r"^[a-zA-Z0-9\-_]+\s*[><=!~]+\s*[\d\w\.\-]+",  # package>=1.0.0
        r"^[a-zA-Z0-9\-_]+\[.*?\]\s*[><=!~]+",  # package[extras]>=1.0.0
        r";\s*(?:sys_platform|python_version)",  # environment markers
    ]
    for pattern in python_patterns:
        if re.search(pattern, content, re.MULTILINE):
            return "pip"

    if re.search(r'"(?:dependencies|devDependencies)"', content):
        return "yarn"

    return "unknown"


def _matches(name: str, patterns: tuple[str, ...]) -> bool:
    return any(fnmatch.fnmatch(name, p) or fnmatch.fnmatch(posixpath.basename(name), p) for p in patterns)


def package_manager_for(file_names: list[str]) -> str:
    """Pick the package manager whose manifest appears in `file_names`.

    Raises:
        UnsupportedPackageManager: If no known manifest is present
    """
    for package_manager, manifests in MANIFESTS.items():
        if any(_matches(n, manifests) for n in file_names):
            return package_manager
    raise UnsupportedPackageManager("unknown")


def relevant_files(package_manager: str, file_names: list[str]) -> list[str]:
    """The subset of `file_names` that `package_manager` reads."""
    if package_manager not in MANAGER_FILES:
        raise UnsupportedPackageManager(package_manager)
    return [n for n in file_names if _matches(n, MANAGER_FILES[package_manager])]
