"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

from depbump.config import Settings
from depbump.models import Credential, DependencyFile

HELPERS_DIR = Path(__file__).parent / "helpers"


@pytest.fixture
def settings(tmp_path):
    """Settings with a per-test scratch root."""
    return Settings(
        scratch_root=str(tmp_path / "scratch"),
        subprocess_timeout=30.0,
        js_helper_command=[sys.executable, str(HELPERS_DIR / "run_helper.py")],
    )


@pytest.fixture
def bundler_settings(settings):
    """Settings whose `bundle` is the fake in tests/helpers."""
    settings.bundle_command = [sys.executable, str(HELPERS_DIR / "fake_bundle.py")]
    return settings


@pytest.fixture
def helper_command():
    """Command line for the JSON protocol test helper."""
    return [sys.executable, str(HELPERS_DIR / "run_helper.py")]


@pytest.fixture
def credentials():
    return [Credential(host="github.com", username="x-access-token", password="secret-token")]


@pytest.fixture
def sample_gemfile():
    return DependencyFile(
        name="Gemfile",
        content=(
            'source "https://rubygems.org"\n'
            "\n"
            'gem "i18n-extra", "~> 0.1"\n'
            'gem "business", "~> 1.4.0"  # billing calendars\n'
            "gem 'statesman', '~> 1.2.0'\n"
            'gem "i18n", "~> 0.7"\n'
        ),
    )


@pytest.fixture
def sample_lockfile():
    return DependencyFile(
        name="Gemfile.lock",
        content=(
            "GEM\n"
            "  remote: https://rubygems.org/\n"
            "  specs:\n"
            "    business (1.4.0)\n"
            "    i18n (0.7.0)\n"
            "    i18n-extra (0.1.2)\n"
            "    statesman (1.2.1)\n"
            "\n"
            "PLATFORMS\n"
            "  ruby\n"
            "\n"
            "DEPENDENCIES\n"
            "  business (~> 1.4.0)\n"
            "  i18n (~> 0.7)\n"
            "  i18n-extra (~> 0.1)\n"
            "  statesman (~> 1.2.0)\n"
            "\n"
            "BUNDLED WITH\n"
            "   1.15.4\n"
        ),
    )


@pytest.fixture
def sample_requirements():
    """Sample requirements.txt content for testing."""
    return DependencyFile(
        name="requirements.txt",
        content="fastapi==0.85.0\nuvicorn>=0.18.0  # server\nrequests>=2.0, <3\n",
    )


@pytest.fixture
def sample_package_json():
    """Sample package.json content for testing."""
    return DependencyFile(
        name="package.json",
        content="""{
  "name": "test-project",
  "scripts": {
    "etag": "1.0.0"
  },
  "dependencies": {
    "etag": "^1.0.0",
    "lodash": "~4.17.21"
  },
  "devDependencies": {
    "jest": "29.x"
  }
}
""",
    )


@pytest.fixture
def sample_dockerfile():
    return DependencyFile(
        name="Dockerfile",
        content=(
            "FROM ubuntu:17.04\n"
            "\n"
            "RUN apt-get update && apt-get upgrade -y\n"
            "\n"
            "FROM python:3.6.3\n"
        ),
    )
