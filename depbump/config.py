"""Runtime settings read from the environment."""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

_PREFIX = "DEPBUMP_"
_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def _env(name: str, default: str) -> str:
    return os.environ.get(_PREFIX + name, default)


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(_PREFIX + name)
    return float(value) if value else default


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(_PREFIX + name)
    return int(value) if value else default


@dataclass
class Settings:
    """Paths, endpoints and limits used by the pipeline."""

    scratch_root: str = "tmp"
    subprocess_timeout: float = 300.0
    http_timeout: float = 30.0
    max_concurrency: int = 6
    log_level: str = "INFO"
    rubygems_url: str = "https://rubygems.org"
    pypi_url: str = "https://pypi.org"
    npm_registry_url: str = "https://registry.npmjs.org"
    docker_hub_url: str = "https://hub.docker.com"
    bundle_command: list[str] = field(default_factory=lambda: ["bundle"])
    pip_command: list[str] = field(default_factory=lambda: [sys.executable, "-m", "pip"])
    git_command: list[str] = field(default_factory=lambda: ["git"])
    js_helper_command: list[str] = field(
        default_factory=lambda: [
            "node",
            str(_PROJECT_ROOT / "helpers" / "javascript" / "bin" / "run.js"),
        ]
    )

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            scratch_root=_env("SCRATCH_ROOT", defaults.scratch_root),
            subprocess_timeout=_env_float("SUBPROCESS_TIMEOUT", defaults.subprocess_timeout),
            http_timeout=_env_float("HTTP_TIMEOUT", defaults.http_timeout),
            max_concurrency=_env_int("MAX_CONCURRENCY", defaults.max_concurrency),
            log_level=_env("LOG_LEVEL", defaults.log_level),
            rubygems_url=_env("RUBYGEMS_URL", defaults.rubygems_url).rstrip("/"),
            pypi_url=_env("PYPI_URL", defaults.pypi_url).rstrip("/"),
            npm_registry_url=_env("NPM_REGISTRY_URL", defaults.npm_registry_url).rstrip("/"),
            docker_hub_url=_env("DOCKER_HUB_URL", defaults.docker_hub_url).rstrip("/"),
            bundle_command=_env("BUNDLE_COMMAND", "bundle").split(),
            pip_command=_env("PIP_COMMAND", f"{sys.executable} -m pip").split(),
            git_command=_env("GIT_COMMAND", "git").split(),
            js_helper_command=os.environ[_PREFIX + "JS_HELPER_COMMAND"].split()
            if _PREFIX + "JS_HELPER_COMMAND" in os.environ
            else defaults.js_helper_command,
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    """Process-wide settings, read from the environment once."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
