"""Tests for CLI functionality."""

import json
from unittest.mock import MagicMock, patch

from typer.testing import CliRunner

from apps.cli.main import app, read_dependency_files
from depbump.errors import DependencyFileNotResolvable
from depbump.models import Dependency, DependencyFile, RequirementRecord
from depbump.pipeline import UpdateReport


def _updated_report(name="fastapi", old="0.85.0", new="0.115.0"):
    dependency = Dependency(
        name=name,
        version=new,
        requirements=[RequirementRecord(file="requirements.txt", requirement=f"=={new}")],
        package_manager="pip",
        previous_version=old,
        previous_requirements=[RequirementRecord(file="requirements.txt", requirement=f"=={old}")],
    )
    return UpdateReport(
        dependency=dependency,
        latest_version=new,
        latest_resolvable_version=new,
        semver_delta="minor",
        updated_files=[DependencyFile(name="requirements.txt", content=f"{name}=={new}\nuvicorn>=0.18.0\n")],
    )


class TestCLI:
    """Test CLI command interface."""

    def setup_method(self):
        """Setup test fixtures."""
        self.runner = CliRunner()

    def _project(self, tmp_path):
        req_file = tmp_path / "requirements.txt"
        req_file.write_text("fastapi==0.85.0\nuvicorn>=0.18.0\n")
        return req_file

    def test_cli_help_command(self):
        """Should display help when called with --help."""
        result = self.runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "depbump" in result.output.lower()
        assert "update" in result.output.lower()
        assert "requirements.txt" in result.output

    def test_update_in_place(self, tmp_path):
        """Should write the updated files back into the project."""
        req_file = self._project(tmp_path)

        with patch("apps.cli.main.update_dependency", return_value=_updated_report()) as mock_update:
            result = self.runner.invoke(app, ["update", str(tmp_path), "fastapi"])

        assert result.exit_code == 0
        assert "Updated requirements.txt" in result.output
        assert req_file.read_text() == "fastapi==0.115.0\nuvicorn>=0.18.0\n"

        dependency = mock_update.call_args[0][0]
        assert dependency.name == "fastapi"
        assert dependency.version == "0.85.0"

    def test_update_dry_run(self, tmp_path):
        """Should show a diff without modifying files."""
        req_file = self._project(tmp_path)

        with patch("apps.cli.main.update_dependency", return_value=_updated_report()):
            result = self.runner.invoke(app, ["update", str(tmp_path), "fastapi", "--dry-run"])

        assert result.exit_code == 0
        assert req_file.read_text() == "fastapi==0.85.0\nuvicorn>=0.18.0\n"
        assert "a/requirements.txt" in result.output
        assert "-fastapi==0.85.0" in result.output
        assert "+fastapi==0.115.0" in result.output

    def test_update_json_format(self, tmp_path):
        """Should output JSON format when requested."""
        self._project(tmp_path)

        with patch("apps.cli.main.update_dependency", return_value=_updated_report()):
            result = self.runner.invoke(app, ["update", str(tmp_path), "fastapi", "--format", "json", "--dry-run"])

        assert result.exit_code == 0
        output_data = json.loads(result.stdout)
        assert output_data["name"] == "fastapi"
        assert output_data["previous_version"] == "0.85.0"
        assert output_data["version"] == "0.115.0"
        assert output_data["semver_delta"] == "minor"
        assert output_data["requirements"] == [{"file": "requirements.txt", "requirement": "==0.115.0"}]
        assert output_data["updated_files"] == ["requirements.txt"]

    def test_update_no_changes_exit_code(self, tmp_path):
        """Should return exit code 2 when no changes needed."""
        req_file = self._project(tmp_path)
        dependency = Dependency(name="fastapi", version="0.85.0", package_manager="pip")
        report = UpdateReport(dependency=dependency, notes=["fastapi is up to date"])

        with patch("apps.cli.main.update_dependency", return_value=report):
            result = self.runner.invoke(app, ["update", str(tmp_path), "fastapi"])

        assert result.exit_code == 2  # No changes exit code
        assert "No updates available" in result.output
        assert req_file.read_text() == "fastapi==0.85.0\nuvicorn>=0.18.0\n"

    def test_update_unknown_dependency(self, tmp_path):
        """Should fail when the dependency is not declared."""
        self._project(tmp_path)

        with patch("apps.cli.main.update_dependency") as mock_update:
            result = self.runner.invoke(app, ["update", str(tmp_path), "django"])

        assert result.exit_code == 1
        assert "not declared" in result.output
        mock_update.assert_not_called()

    def test_update_without_manifest(self, tmp_path):
        """Should fail when no supported manifest is present."""
        (tmp_path / "README.md").write_text("# nothing here\n")

        result = self.runner.invoke(app, ["update", str(tmp_path), "fastapi"])

        assert result.exit_code == 1
        assert "Error" in result.output

    def test_update_error_handling(self, tmp_path):
        """Should report update errors and exit non-zero."""
        self._project(tmp_path)

        with patch(
            "apps.cli.main.update_dependency",
            side_effect=DependencyFileNotResolvable("fastapi cannot be resolved"),
        ):
            result = self.runner.invoke(app, ["update", str(tmp_path), "fastapi"])

        assert result.exit_code == 1
        assert "cannot be resolved" in result.output

    def test_update_with_credentials_file(self, tmp_path):
        """Should load credentials and pass them to the pipeline."""
        self._project(tmp_path)
        credentials_file = tmp_path / "credentials.json"
        credentials_file.write_text(json.dumps([
            {"host": "pypi.example.com", "username": "deploy", "password": "hunter2"}
        ]))

        with patch("apps.cli.main.update_dependency", return_value=_updated_report()) as mock_update:
            result = self.runner.invoke(
                app, ["update", str(tmp_path), "fastapi", "--dry-run", "--credentials", str(credentials_file)]
            )

        assert result.exit_code == 0
        credentials = mock_update.call_args.kwargs["credentials"]
        assert [(c.host, c.username, c.password) for c in credentials] == [("pypi.example.com", "deploy", "hunter2")]

    def test_check_command(self, tmp_path):
        """Should print current, latest and resolvable versions."""
        self._project(tmp_path)
        checker = MagicMock()
        checker.latest_version.return_value = "0.115.0"
        checker.latest_resolvable_version.return_value = "0.110.0"
        checker.needs_update.return_value = True

        with patch("apps.cli.main.update_checker_for", return_value=MagicMock(return_value=checker)):
            result = self.runner.invoke(app, ["check", str(tmp_path), "fastapi"])

        assert result.exit_code == 0
        assert "fastapi (pip)" in result.output
        assert "0.85.0" in result.output
        assert "0.115.0" in result.output
        assert "0.110.0" in result.output

    def test_check_up_to_date(self, tmp_path):
        """Should exit 2 when nothing newer is available."""
        self._project(tmp_path)
        checker = MagicMock()
        checker.latest_version.return_value = "0.85.0"
        checker.latest_resolvable_version.return_value = "0.85.0"
        checker.needs_update.return_value = False

        with patch("apps.cli.main.update_checker_for", return_value=MagicMock(return_value=checker)):
            result = self.runner.invoke(app, ["check", str(tmp_path), "fastapi"])

        assert result.exit_code == 2
        assert "No updates available" in result.output


class TestReadDependencyFiles:
    """Test collecting a project's dependency files."""

    def test_collects_relevant_files(self, tmp_path):
        """Only the detected package manager's files are read."""
        (tmp_path / "package.json").write_text('{"dependencies": {"etag": "^1.0.0"}}')
        (tmp_path / "yarn.lock").write_text("# yarn lockfile v1\n")
        (tmp_path / "README.md").write_text("# project\n")

        package_manager, files = read_dependency_files(tmp_path)

        assert package_manager == "yarn"
        assert [f.name for f in files] == ["package.json", "yarn.lock"]

    def test_skips_vendored_directories(self, tmp_path):
        """Installed packages do not count as project files."""
        (tmp_path / "package.json").write_text("{}")
        vendored = tmp_path / "node_modules" / "etag"
        vendored.mkdir(parents=True)
        (vendored / "package.json").write_text("{}")

        _, files = read_dependency_files(tmp_path)

        assert [f.name for f in files] == ["package.json"]
