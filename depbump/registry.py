"""Dispatch tables keyed on package manager."""

from .errors import UnsupportedPackageManager
from .parse_docker import parse_dockerfiles
from .parse_node import parse_package_json
from .parse_python import parse_requirements
from .parse_ruby import parse_bundler_files
from .resolve_docker import DockerUpdateChecker
from .resolve_node import YarnUpdateChecker
from .resolve_python import PipUpdateChecker
from .resolve_ruby import BundlerUpdateChecker
from .update_docker import DockerFileUpdater
from .update_node import YarnFileUpdater
from .update_python import PipFileUpdater
from .update_ruby import BundlerFileUpdater

UPDATE_CHECKERS = {
    "bundler": BundlerUpdateChecker,
    "pip": PipUpdateChecker,
    "yarn": YarnUpdateChecker,
    "docker": DockerUpdateChecker,
}

FILE_UPDATERS = {
    "bundler": BundlerFileUpdater,
    "pip": PipFileUpdater,
    "yarn": YarnFileUpdater,
    "docker": DockerFileUpdater,
}

FILE_PARSERS = {
    "bundler": parse_bundler_files,
    "pip": parse_requirements,
    "yarn": parse_package_json,
    "docker": parse_dockerfiles,
}


def _lookup(table: dict, package_manager: str):
    try:
        return table[package_manager]
    except KeyError:
        raise UnsupportedPackageManager(package_manager) from None


def update_checker_for(package_manager: str):
    return _lookup(UPDATE_CHECKERS, package_manager)


def file_updater_for(package_manager: str):
    return _lookup(FILE_UPDATERS, package_manager)


def file_parser_for(package_manager: str):
    return _lookup(FILE_PARSERS, package_manager)
