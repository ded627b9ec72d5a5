"""Gemfile, gemspec and Gemfile.lock parsing."""

import re

from . import native_bundler
from .editor import GEMFILE, GEMSPEC, find_declarations, quoted_requirements
from .errors import DependencyFileNotParseable
from .models import Dependency, DependencyFile, RequirementRecord


def _option(name: str) -> re.Pattern:
    return re.compile(rf"(?:\b{name}:|:{name}\s*=>)\s*[\"'](?P<value>[^\"']+)[\"']")


_GIT = _option("git")
_GITHUB = _option("github")
_BRANCH = _option("branch")
_REF = _option("ref")
_TAG = _option("tag")
_PATH = _option("path")
_SOURCE = _option("source")
_GROUP_OPTION = re.compile(r"(?:\bgroups?:|:groups?\s*=>)\s*(?P<value>\[[^\]]*\]|:\w+|[\"'][^\"']+[\"'])")
_GROUP_BLOCK = re.compile(r"^\s*group\s*\(?(?P<groups>[^)\n]*?)\)?\s+do\b")
_BLOCK_START = re.compile(r"\bdo\s*(?:\|[^|]*\|)?\s*(?:#.*)?$")
_BLOCK_END = re.compile(r"^\s*end\b")
_SYMBOL = re.compile(r":?[\"']?(\w+)[\"']?")


def _symbols(text: str) -> tuple[str, ...]:
    return tuple(m.group(1) for m in _SYMBOL.finditer(text) if m.group(1))


def _gemfile_groups(content: str) -> dict[int, tuple[str, ...]]:
    """Map each line number to the groups enclosing it."""
    stack: list[tuple[str, ...]] = []
    groups_by_line = {}
    for number, line in enumerate(content.splitlines()):
        groups_by_line[number] = tuple(g for frame in stack for g in frame)
        match = _GROUP_BLOCK.match(line)
        if match:
            stack.append(_symbols(match.group("groups")))
        elif _BLOCK_START.search(line):
            stack.append(())
        elif _BLOCK_END.match(line) and stack:
            stack.pop()
    return groups_by_line


def _source(declaration_text: str) -> dict | None:
    git = _GIT.search(declaration_text)
    github = _GITHUB.search(declaration_text)
    if git or github:
        url = git.group("value") if git else f"https://github.com/{github.group('value')}.git"
        branch = _BRANCH.search(declaration_text)
        ref = _REF.search(declaration_text) or _TAG.search(declaration_text)
        return {
            "type": "git",
            "url": url,
            "branch": branch.group("value") if branch else None,
            "ref": ref.group("value") if ref else None,
        }
    path = _PATH.search(declaration_text)
    if path:
        return {"type": "path", "path": path.group("value")}
    source = _SOURCE.search(declaration_text)
    if source:
        return {"type": "registry", "url": source.group("value")}
    return None


def _requirement(declaration) -> str | None:
    if declaration.requirement_text is None:
        return None
    return ", ".join(quoted_requirements(declaration.requirement_text))


class BundlerParser:
    """Turns a Gemfile / gemspec / Gemfile.lock set into dependencies."""

    def __init__(self, dependency_files: list[DependencyFile]):
        self.dependency_files = dependency_files

    def _file(self, *names: str) -> DependencyFile | None:
        return next((f for f in self.dependency_files if f.name in names), None)

    @property
    def gemfile(self) -> DependencyFile | None:
        return self._file("Gemfile", "gems.rb")

    @property
    def lockfile(self) -> DependencyFile | None:
        return self._file("Gemfile.lock", "gems.locked")

    @property
    def gemspecs(self) -> list[DependencyFile]:
        return [f for f in self.dependency_files if f.name.endswith(".gemspec") and "/" not in f.name]

    def parse(self) -> list[Dependency]:
        if self.lockfile and "DEPENDENCIES" not in self.lockfile.content:
            raise DependencyFileNotParseable(self.lockfile.name)

        dependencies: dict[str, Dependency] = {}
        for name, record in self._gemfile_records() + self._gemspec_records():
            dependency = dependencies.get(name)
            if dependency is None:
                dependency = dependencies[name] = Dependency(
                    name=name,
                    version=self._locked_version(name, record),
                    package_manager="bundler",
                )
            dependency.requirements.append(record)
        return list(dependencies.values())

    def _locked_version(self, name: str, record: RequirementRecord) -> str | None:
        if self.lockfile is None:
            return None
        if record.source_type == "git":
            revision = native_bundler.locked_revision(self.lockfile.content, name)
            if revision:
                return revision
        return native_bundler.locked_version(self.lockfile.content, name)

    def _gemfile_records(self) -> list[tuple[str, RequirementRecord]]:
        if self.gemfile is None:
            return []
        content = self.gemfile.content
        groups_by_line = _gemfile_groups(content)

        records = []
        for declaration in find_declarations(content, GEMFILE):
            line = content.count("\n", 0, declaration.span[0])
            groups = groups_by_line.get(line, ())
            option = _GROUP_OPTION.search(declaration.text)
            if option:
                groups += _symbols(option.group("value"))
            records.append((
                declaration.name,
                RequirementRecord(
                    file=self.gemfile.name,
                    requirement=_requirement(declaration),
                    groups=groups or ("default",),
                    source=_source(declaration.text),
                ),
            ))
        return records

    def _gemspec_records(self) -> list[tuple[str, RequirementRecord]]:
        records = []
        for gemspec in self.gemspecs:
            for declaration in find_declarations(gemspec.content, GEMSPEC):
                development = "add_development_dependency" in declaration.text
                records.append((
                    declaration.name,
                    RequirementRecord(
                        file=gemspec.name,
                        requirement=_requirement(declaration),
                        groups=("development",) if development else ("runtime",),
                    ),
                ))
        return records


def parse_bundler_files(files: list[DependencyFile]) -> list[Dependency]:
    """Parse Bundler dependency files into dependencies."""
    return BundlerParser(files).parse()
