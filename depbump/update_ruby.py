"""Applying a Bundler dependency update to Gemfile, gemspec and Gemfile.lock."""

import logging

from . import native_bundler
from .config import Settings, get_settings
from .credentials import normalize
from .editor import GEMFILE, GEMSPEC, Grammar, format_ruby_requirement, replace_declaration
from .errors import DependencyFileNotFound
from .models import Credential, Dependency, DependencyFile, RequirementRecord

logger = logging.getLogger(__name__)


class BundlerFileUpdater:
    """Rewrite the manifests for one updated gem and regenerate the lockfile."""

    def __init__(
        self,
        dependency: Dependency,
        dependency_files: list[DependencyFile],
        credentials: list[Credential | dict] = (),
        settings: Settings | None = None,
    ):
        self.dependency = dependency
        self.dependency_files = list(dependency_files)
        self.credentials = normalize(credentials)
        self.settings = settings or get_settings()
        self._check_required_files()

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
        return [f for f in self.dependency_files if f.name.endswith(".gemspec")]

    @property
    def ruby_version_file(self) -> DependencyFile | None:
        return self._file(".ruby-version")

    def _check_required_files(self) -> None:
        if self.lockfile and not self.gemfile:
            raise DependencyFileNotFound("Gemfile", "A Gemfile must be provided if a lockfile is")
        if not self.gemfile and not self.gemspecs:
            raise DependencyFileNotFound("Gemfile", "A gemspec or a Gemfile must be provided")

    def updated_dependency_files(self) -> list[DependencyFile]:
        """Only the files whose content actually changed."""
        updated = {}

        if self.gemfile:
            content = self._updated_manifest_content(self.gemfile, GEMFILE)
            if self._switched_away_from_git():
                content = native_bundler.remove_git_source(content, self.dependency.name)
            if content != self.gemfile.content:
                updated[self.gemfile.name] = self.gemfile.with_content(content)

        for gemspec in self.gemspecs:
            content = self._updated_manifest_content(gemspec, GEMSPEC)
            if content != gemspec.content:
                updated[gemspec.name] = gemspec.with_content(content)

        if self.lockfile:
            content = self._updated_lockfile_content(updated)
            if content != self.lockfile.content:
                updated[self.lockfile.name] = self.lockfile.with_content(content)

        return list(updated.values())

    def _previous_requirement(self, file_name: str) -> RequirementRecord | None:
        previous = self.dependency.previous_requirements or []
        return next((r for r in previous if r.file == file_name), None)

    def _updated_manifest_content(self, file: DependencyFile, grammar: Grammar) -> str:
        record = self.dependency.requirement_for(file.name)
        previous = self._previous_requirement(file.name)
        if record is None or record.requirement is None:
            return file.content
        if previous is not None and previous.requirement == record.requirement:
            return file.content

        content = replace_declaration(
            file.content,
            self.dependency.name,
            grammar,
            record.requirement,
            formatter=format_ruby_requirement,
        )
        if content is None:
            logger.debug("%s is not declared with a requirement in %s", self.dependency.name, file.name)
            return file.content
        return content

    def _switched_away_from_git(self) -> bool:
        previous = self.dependency.previous_requirements or []
        was_git = any(r.source_type == "git" for r in previous)
        return was_git and self.dependency.git_source is None

    def _updated_lockfile_content(self, updated: dict[str, DependencyFile]) -> str:
        gemfile = updated.get(self.gemfile.name, self.gemfile)
        files = {
            gemfile.name: native_bundler.https_with_token(gemfile.content, self.credentials),
            self.lockfile.name: native_bundler.https_with_token(self.lockfile.content, self.credentials),
        }
        for gemspec in self.gemspecs:
            gemspec = updated.get(gemspec.name, gemspec)
            files[gemspec.name] = native_bundler.sanitized_gemspec_content(
                gemspec.name, gemspec.content, self.lockfile.content
            )
        if self.ruby_version_file:
            files[self.ruby_version_file.name] = self.ruby_version_file.content

        lockfile_body = native_bundler.lock(
            files,
            self.dependency.name,
            self.credentials,
            self.settings,
            git_urls=tuple(
                r.source["url"] for r in self.dependency.requirements
                if r.source_type == "git" and r.source.get("url")
            ),
        )
        return native_bundler.post_process_lockfile(lockfile_body, self.lockfile.content, self.credentials)
