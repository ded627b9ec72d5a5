"""Tests for Python requirements.txt parsing."""

from depbump.models import DependencyFile
from depbump.parse_python import RequirementsParser, parse_requirements


def _parse(content, name="requirements.txt"):
    return parse_requirements([DependencyFile(name=name, content=content)])


class TestPythonParser:
    """Test Python requirements.txt parsing."""

    def test_parse_single_requirement(self):
        """Should parse a single package requirement."""
        dependencies = _parse("fastapi==0.85.0")

        assert len(dependencies) == 1

        dependency = dependencies[0]
        assert dependency.name == "fastapi"
        assert dependency.version == "0.85.0"
        assert dependency.package_manager == "pip"
        assert dependency.requirements[0].file == "requirements.txt"
        assert dependency.requirements[0].requirement == "==0.85.0"
        assert dependency.requirements[0].source_type == "registry"

    def test_parse_multiple_requirements(self):
        """Should parse multiple package requirements."""
        dependencies = _parse("fastapi==0.85.0\nuvicorn>=0.18.0\nrequests~=2.28.0")

        assert [d.name for d in dependencies] == ["fastapi", "uvicorn", "requests"]
        assert [d.requirements[0].requirement for d in dependencies] == ["==0.85.0", ">=0.18.0", "~=2.28.0"]

    def test_only_exact_pins_have_a_version(self):
        """Ranges do not tell us the installed version."""
        dependencies = _parse("fastapi==0.85.0\nuvicorn>=0.18.0\ndjango==4.2.*")
        assert [d.version for d in dependencies] == ["0.85.0", None, None]

    def test_parse_with_comments(self):
        """Should skip comment lines and trailing comments."""
        content = """# Web framework
fastapi==0.85.0  # Fast API framework
# Server
uvicorn>=0.18.0"""

        dependencies = _parse(content)

        assert len(dependencies) == 2
        assert dependencies[0].name == "fastapi"
        assert dependencies[0].requirements[0].requirement == "==0.85.0"
        assert dependencies[1].name == "uvicorn"

    def test_parse_with_environment_markers(self):
        """Should keep the specifier without the marker."""
        dependency = _parse('uvloop>=0.17.0; sys_platform != "win32"')[0]

        assert dependency.name == "uvloop"
        assert dependency.requirements[0].requirement == ">=0.17.0"

    def test_parse_with_extras(self):
        """Should parse package extras correctly."""
        dependency = _parse("fastapi[all]==0.85.0")[0]

        assert dependency.name == "fastapi"
        assert dependency.requirements[0].requirement == "==0.85.0"

    def test_parse_complex_specifiers(self):
        """Should keep the specifier text as written."""
        dependency = _parse("django>=3.2,<4.0")[0]
        assert dependency.requirements[0].requirement == ">=3.2,<4.0"

    def test_unconstrained_requirement(self):
        """Names without a specifier have no requirement."""
        dependency = _parse("requests\n")[0]
        assert dependency.requirements[0].requirement is None

    def test_parse_vcs_and_url_dependencies(self):
        """Should skip VCS and direct URL dependencies."""
        content = """fastapi==0.85.0
git+https://github.com/user/repo.git@v1.0.0#egg=custom-lib
custom-lib @ https://example.com/custom-lib-1.0.tar.gz
uvicorn>=0.18.0"""

        assert [d.name for d in _parse(content)] == ["fastapi", "uvicorn"]

    def test_parse_editable_and_options(self):
        """Should skip editable installs and pip options."""
        content = """--index-url https://pypi.example.com/simple
-r base.txt
fastapi==0.85.0
-e ./local-package
uvicorn>=0.18.0"""

        assert [d.name for d in _parse(content)] == ["fastapi", "uvicorn"]

    def test_parse_malformed_line_gracefully(self):
        """Should handle malformed lines gracefully and continue."""
        content = """fastapi==0.85.0
this is not valid!
uvicorn>=0.18.0"""

        assert [d.name for d in _parse(content)] == ["fastapi", "uvicorn"]

    def test_parse_empty_file(self):
        """Should handle empty and comment-only files gracefully."""
        assert _parse("") == []
        assert _parse("# This is a comment\n# Another comment\n") == []

    def test_first_declaration_wins(self):
        """Duplicate names in one file yield one dependency."""
        parser = RequirementsParser()
        dependencies = parser.parse(DependencyFile(name="requirements.txt", content="Django==4.2\ndjango==3.2\n"))

        assert len(dependencies) == 1
        assert dependencies[0].version == "4.2"

    def test_dependency_merged_across_files(self):
        """One record per declaring file."""
        dependencies = parse_requirements([
            DependencyFile(name="requirements.txt", content="fastapi==0.85.0\n"),
            DependencyFile(name="requirements/dev.txt", content="FastAPI>=0.80\npytest==8.0.0\n"),
        ])

        assert [d.name for d in dependencies] == ["fastapi", "pytest"]
        fastapi = dependencies[0]
        assert [(r.file, r.requirement) for r in fastapi.requirements] == [
            ("requirements.txt", "==0.85.0"),
            ("requirements/dev.txt", ">=0.80"),
        ]
        assert fastapi.version == "0.85.0"
