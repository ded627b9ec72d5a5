"""Tests for applying pip updates."""

import pytest

from depbump.errors import DependencyFileNotFound
from depbump.models import Dependency, DependencyFile, RequirementRecord
from depbump.update_python import PipFileUpdater


class TestPipFileUpdater:
    """Test rewriting requirements files."""

    def test_pin_rewritten(self, sample_requirements):
        """Only the dependency's specifier changes."""
        dependency = Dependency(
            name="fastapi",
            version="0.115.0",
            requirements=[RequirementRecord(file="requirements.txt", requirement="==0.115.0")],
            package_manager="pip",
        )
        updated = PipFileUpdater(dependency, [sample_requirements]).updated_dependency_files()

        assert len(updated) == 1
        assert updated[0].content == "fastapi==0.115.0\nuvicorn>=0.18.0  # server\nrequests>=2.0, <3\n"

    def test_every_declaring_file_updated(self, sample_requirements):
        """Each file is rewritten from its own record."""
        dev = DependencyFile(name="requirements/dev.txt", content="-r ../requirements.txt\nUvicorn[standard] >= 0.18\n")
        dependency = Dependency(
            name="uvicorn",
            version="0.30.1",
            requirements=[
                RequirementRecord(file="requirements.txt", requirement=">=0.30.1"),
                RequirementRecord(file="requirements/dev.txt", requirement=">= 0.30"),
            ],
            package_manager="pip",
        )

        updated = PipFileUpdater(dependency, [sample_requirements, dev]).updated_dependency_files()

        assert [f.name for f in updated] == ["requirements.txt", "requirements/dev.txt"]
        assert "uvicorn>=0.30.1  # server\n" in updated[0].content
        assert updated[1].content == "-r ../requirements.txt\nUvicorn[standard] >= 0.30\n"

    def test_unchanged_files_omitted(self, sample_requirements):
        """Files whose content is identical are not returned."""
        dependency = Dependency(
            name="requests",
            requirements=[RequirementRecord(file="requirements.txt", requirement=">=2.0, <3")],
        )
        assert PipFileUpdater(dependency, [sample_requirements]).updated_dependency_files() == []

    def test_unconstrained_record_skipped(self, sample_requirements):
        """Records without a specifier have nothing to rewrite."""
        dependency = Dependency(name="fastapi", requirements=[RequirementRecord(file="requirements.txt")])
        assert PipFileUpdater(dependency, [sample_requirements]).updated_dependency_files() == []

    def test_missing_file(self):
        """Records must point at a fetched file."""
        dependency = Dependency(
            name="fastapi", requirements=[RequirementRecord(file="requirements.txt", requirement="==1.0")]
        )
        with pytest.raises(DependencyFileNotFound):
            PipFileUpdater(dependency, []).updated_dependency_files()
