"""Error taxonomy raised back to the orchestrator."""

import posixpath

from .credentials import sanitize_url


class UpdateError(Exception):
    """Base class for every error raised by depbump."""


class UnsupportedPackageManager(UpdateError):
    def __init__(self, package_manager: str):
        self.package_manager = package_manager
        super().__init__(f"Unsupported package manager: {package_manager}")


#####################
# File level errors #
#####################


class DependencyFileNotFound(UpdateError):
    def __init__(self, file_path: str, msg: str | None = None):
        self.file_path = file_path
        super().__init__(msg or f"{file_path} not found")

    @property
    def file_name(self) -> str:
        return posixpath.basename(self.file_path)

    @property
    def directory(self) -> str:
        return "/" + posixpath.dirname(self.file_path).lstrip("/")


class DependencyFileNotParseable(DependencyFileNotFound):
    def __init__(self, file_path: str, msg: str | None = None):
        super().__init__(file_path, msg or f"{file_path} could not be parsed")


class DependencyFileNotEvaluatable(UpdateError):
    """The native tool could not even load the manifest."""


class DependencyFileNotResolvable(UpdateError):
    """The manifest loaded but no consistent dependency graph exists."""


###########################
# Dependency level errors #
###########################


class GitDependenciesNotReachable(UpdateError):
    def __init__(self, *dependency_urls):
        urls = []
        for url in dependency_urls:
            urls.extend(url if isinstance(url, (list, tuple)) else [url])
        self.dependency_urls = [sanitize_url(u) for u in urls]
        super().__init__(
            "The following git URLs could not be retrieved: "
            + ", ".join(self.dependency_urls)
        )


class GitDependencyBranchNotFound(UpdateError):
    def __init__(self, dependency: str, branch: str):
        self.dependency = dependency
        self.branch = branch
        super().__init__(
            f"The branch '{branch}' could not be retrieved for {dependency}"
        )


class PathDependenciesNotReachable(UpdateError):
    def __init__(self, *dependencies):
        deps = []
        for dep in dependencies:
            deps.extend(dep if isinstance(dep, (list, tuple)) else [dep])
        self.dependencies = deps
        super().__init__(
            "The following path based dependencies could not be retrieved: "
            + ", ".join(deps)
        )


class PrivateSourceNotReachable(UpdateError):
    def __init__(self, source: str):
        self.source = source
        super().__init__(
            "The following source could not be reached as it requires "
            f"authentication (and any provided details were invalid): {source}"
        )


####################
# Sandbox failures #
####################


class ChildProcessFailed(UpdateError):
    """Raised when a function run in an isolated worker fails."""

    def __init__(self, error_class: str, error_message: str, stderr: str = ""):
        self.error_class = error_class
        self.error_message = error_message
        self.stderr = stderr
        super().__init__(f"{error_class}: {error_message}")


class HelperSubprocessFailed(UpdateError):
    """Raised when an external helper or native tool exits unsuccessfully."""

    def __init__(
        self,
        message: str,
        stdout: str = "",
        stderr: str = "",
        exit_status: int | None = None,
    ):
        self.message = message
        self.stdout = stdout
        self.stderr = stderr
        self.exit_status = exit_status
        super().__init__(message)
