"""Test that project structure is correct and modules can be imported."""

import depbump.detect
import depbump.models
import depbump.pipeline
import depbump.registry
from depbump.models import Dependency, RequirementRecord


def test_core_modules_importable():
    """Ensure core modules can be imported."""
    # This will fail if modules have syntax errors or missing dependencies
    assert hasattr(depbump.models, "Dependency")
    assert hasattr(depbump.models, "DependencyFile")
    assert hasattr(depbump.detect, "package_manager_for")
    assert hasattr(depbump.pipeline, "update_dependency")


def test_every_package_manager_is_registered():
    """Each supported package manager has a parser, checker and updater."""
    managers = {"bundler", "pip", "yarn", "docker"}
    assert set(depbump.registry.FILE_PARSERS) == managers
    assert set(depbump.registry.UPDATE_CHECKERS) == managers
    assert set(depbump.registry.FILE_UPDATERS) == managers


def test_model_creation():
    """Test that basic models can be instantiated."""
    record = RequirementRecord(file="requirements.txt", requirement="==0.85.0")
    dependency = Dependency(name="fastapi", version="0.85.0", requirements=[record], package_manager="pip")

    assert dependency.name == "fastapi"
    assert dependency.requirements[0].requirement == "==0.85.0"
    assert dependency.previous_version is None
