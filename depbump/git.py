"""Commit and tag lookups for git-sourced dependencies."""

import logging
import re
from functools import cached_property
from urllib.parse import urlsplit

import httpx

from .config import Settings, get_settings
from .credentials import authenticated_url, credential_for, sanitize_url
from .errors import GitDependenciesNotReachable, GitDependencyBranchNotFound, HelperSubprocessFailed
from .models import Credential, Dependency
from .sandbox import run_command

logger = logging.getLogger(__name__)

_GITHUB_REPO = re.compile(r"github\.com[:/](?P<repo>[^/\s]+/[^/\s]+?)(?:\.git)?/?$")
_SHA = re.compile(r"^[0-9a-f]{7,40}$")


class GitCommitChecker:
    """Answers questions about a dependency's git source via `git ls-remote`."""

    def __init__(
        self,
        dependency: Dependency,
        credentials: list[Credential] = (),
        settings: Settings | None = None,
        client: httpx.Client | None = None,
    ):
        self.dependency = dependency
        self.credentials = list(credentials)
        self.settings = settings or get_settings()
        self._client = client

    @property
    def source(self) -> dict | None:
        return self.dependency.git_source

    def git_dependency(self) -> bool:
        return self.source is not None

    def pinned(self) -> bool:
        if not self.git_dependency():
            raise ValueError(f"{self.dependency.name} is not a git dependency")
        ref = self.source.get("ref")
        return bool(ref) and ref != self.source.get("branch")

    @property
    def url(self) -> str:
        url = self.source["url"]
        if url.startswith("git@github.com:"):
            url = "https://github.com/" + url[len("git@github.com:"):]
        return url

    @cached_property
    def refs(self) -> dict[str, str]:
        """`{ref name: commit sha}` as advertised by the remote."""
        try:
            output = run_command(
                [*self.settings.git_command, "ls-remote", "--heads", "--tags",
                 authenticated_url(self.url, self.credentials)],
                env={"GIT_TERMINAL_PROMPT": "0"},
                timeout=self.settings.subprocess_timeout,
            )
        except HelperSubprocessFailed:
            raise GitDependenciesNotReachable([sanitize_url(self.url)]) from None

        refs = {}
        for line in output.splitlines():
            sha, _, name = line.partition("\t")
            if name.endswith("^{}"):
                # Peeled annotated tag: the commit it points at wins.
                refs[name[:-3]] = sha
            else:
                refs.setdefault(name, sha)
        return refs

    def head_commit_for_current_branch(self) -> str:
        branch = self.source.get("branch")
        if branch:
            sha = self.refs.get(f"refs/heads/{branch}")
            if sha is None:
                raise GitDependencyBranchNotFound(self.dependency.name, branch)
            return sha
        sha = self.refs.get("HEAD")
        if sha is None:
            heads = [s for n, s in self.refs.items() if n in ("refs/heads/main", "refs/heads/master")]
            if not heads:
                raise GitDependenciesNotReachable([sanitize_url(self.url)])
            sha = heads[0]
        return sha

    def head_commit_or_ref_in_release(self, version: str) -> bool:
        ref = self.source.get("ref") if self.pinned() else self.head_commit_for_current_branch()
        return self.ref_in_release(ref, version)

    def current_commit_in_release(self, version: str | None) -> bool:
        return self.ref_in_release(self.dependency.version, version)

    def ref_in_release(self, ref: str | None, version: str | None) -> bool:
        """Whether `ref` is, or is behind, the release tag for `version`."""
        if not ref or not version:
            return False
        tag = self._release_tag(version)
        if tag is None:
            return False
        tag_name = tag[len("refs/tags/"):]
        if ref in (tag_name, tag):
            return True
        tag_sha = self.refs[tag]
        if _SHA.match(ref) and tag_sha.startswith(ref):
            return True
        return self._github_ref_behind(tag_name, ref)

    def _release_tag(self, version: str) -> str | None:
        for candidate in (f"refs/tags/v{version}", f"refs/tags/{version}"):
            if candidate in self.refs:
                return candidate
        return None

    def _github_ref_behind(self, tag_name: str, ref: str) -> bool:
        match = _GITHUB_REPO.search(self.source["url"])
        if not match:
            return False
        headers = {"Accept": "application/vnd.github+json"}
        credential = credential_for("github.com", self.credentials)
        if credential:
            headers["Authorization"] = f"token {credential.password}"
        url = f"https://api.github.com/repos/{match.group('repo')}/compare/{tag_name}...{ref}"
        client = self._client or httpx.Client(timeout=self.settings.http_timeout)
        try:
            response = client.get(url, headers=headers)
        finally:
            if self._client is None:
                client.close()
        if response.status_code != 200:
            logger.debug("Compare %s...%s on %s returned %s", tag_name, ref,
                         urlsplit(url).path, response.status_code)
            return False
        return response.json().get("status") in ("behind", "identical")
