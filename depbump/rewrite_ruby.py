"""Rewriting Ruby requirement strings for a new target version.

Gemfiles are applications: when a resolvable version exists every constraint
is re-anchored at it, keeping the precision the author wrote. Gemspecs are
libraries: constraints that already admit the latest release are left alone,
the rest are widened into a permissive range (or bumped exactly for
development dependencies). Constraints that cannot admit the target are
reported as `UNFIXABLE`.
"""

import functools
import posixpath
import re

from .models import UNFIXABLE, RequirementRecord

# Operators a library constraint may not be widened past.
UNFIXABLE_LIBRARY_OPERATORS = ("!=", ">", ">=")
# Upper bounds that get bumped to just above the target.
BUMPABLE_UPPER_BOUND_OPERATORS = ("<", "<=")
# Operator an application's upper bound is turned into.
APPLICATION_RANGE_OPERATOR = "~>"

_REQUIREMENT = re.compile(r"^\s*(?:(?P<op>=|!=|>=|<=|~>|>|<)\s*)?(?P<version>[0-9]+(?:\.[0-9a-zA-Z]+)*(?:-[0-9A-Za-z.-]+)?)\s*$")
_VERSION_LITERAL = re.compile(r"[0-9]+(?:\.[a-zA-Z0-9]+)*")


@functools.total_ordering
class GemVersion:
    """A version compared the way RubyGems compares them."""

    def __init__(self, version):
        version = str(version).strip()
        if not re.match(r"^[0-9]+(?:\.[0-9a-zA-Z]+)*(?:-[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$", version):
            raise ValueError(f"Malformed version number string {version}")
        self.version = version
        self.segments = [
            int(s) if s.isdigit() else s
            for s in re.findall(r"[0-9]+|[A-Za-z]+", version)
        ]

    def __str__(self):
        return self.version

    def __repr__(self):
        return f"GemVersion({self.version!r})"

    @property
    def prerelease(self) -> bool:
        return any(isinstance(s, str) for s in self.segments)

    @property
    def release_segments(self) -> list[int]:
        release = []
        for segment in self.segments:
            if isinstance(segment, str):
                break
            release.append(segment)
        return release

    def release(self) -> "GemVersion":
        return GemVersion(".".join(str(s) for s in self.release_segments))

    def bump(self) -> "GemVersion":
        segments = self.release_segments
        if len(segments) > 1:
            segments = segments[:-1]
        segments[-1] += 1
        return GemVersion(".".join(str(s) for s in segments))

    def _canonical(self) -> tuple:
        release = self.release_segments
        rest = self.segments[len(release):]
        while release and release[-1] == 0:
            release.pop()
        while rest and rest[-1] == 0:
            rest.pop()
        return tuple(release + rest)

    def _compare(self, other: "GemVersion") -> int:
        lhs, rhs = self._canonical(), other._canonical()
        for i in range(max(len(lhs), len(rhs))):
            left = lhs[i] if i < len(lhs) else 0
            right = rhs[i] if i < len(rhs) else 0
            if left == right:
                continue
            if isinstance(left, str) and isinstance(right, int):
                return -1
            if isinstance(left, int) and isinstance(right, str):
                return 1
            return -1 if left < right else 1
        return 0

    def __eq__(self, other):
        if not isinstance(other, GemVersion):
            return NotImplemented
        return self._compare(other) == 0

    def __lt__(self, other):
        return self._compare(other) < 0

    def __hash__(self):
        return hash(self._canonical())


class GemRequirement:
    """A single `op version` clause, e.g. `~> 1.4.0`."""

    def __init__(self, requirement: str):
        match = _REQUIREMENT.match(requirement)
        if not match:
            raise ValueError(f"Illformed requirement {requirement!r}")
        self.op = match.group("op") or "="
        self.version = GemVersion(match.group("version"))

    @classmethod
    def build(cls, op: str, version) -> "GemRequirement":
        return cls(f"{op} {version}")

    def __str__(self):
        return f"{self.op} {self.version}"

    def __eq__(self, other):
        return isinstance(other, GemRequirement) and str(self) == str(other)

    def __hash__(self):
        return hash(str(self))

    def satisfied_by(self, version: GemVersion) -> bool:
        op, target = self.op, self.version
        if op == "=":
            return version == target
        if op == "!=":
            return version != target
        if op == ">":
            return version > target
        if op == "<":
            return version < target
        if op == ">=":
            return version >= target
        if op == "<=":
            return version <= target
        return target <= version and version.release() < target.bump()


def parse_requirements(requirement: str) -> list[GemRequirement]:
    return [GemRequirement(r) for r in requirement.split(",") if r.strip()]


class UnfixableRequirement(Exception):
    pass


def at_same_precision(new_version: str, old_version: str) -> str:
    """Truncate or zero-pad `new_version` to as many numeric segments as `old_version`."""
    precision = max(len([p for p in old_version.split(".") if p.isdigit()]), 1)
    release = GemVersion(new_version).release_segments + [0] * precision
    return ".".join(str(s) for s in release[:precision])


class RequirementsUpdater:
    """Updates every RequirementRecord of one Ruby dependency."""

    def __init__(
        self,
        requirements: list[RequirementRecord],
        existing_version: str | None = None,
        latest_version: str | None = None,
        latest_resolvable_version: str | None = None,
        remove_git_source: bool = False,
    ):
        self.requirements = requirements
        self.existing_version = existing_version
        self.remove_git_source = remove_git_source
        self.latest_version = GemVersion(latest_version) if latest_version else None
        self.latest_resolvable_version = (
            GemVersion(latest_resolvable_version) if latest_resolvable_version else None
        )

    def updated_requirements(self) -> list[RequirementRecord]:
        updated = []
        for req in self.requirements:
            if self.remove_git_source and req.source_type == "git":
                req = RequirementRecord(req.file, req.requirement, req.groups, None)
            file_name = posixpath.basename(req.file)
            if file_name in ("Gemfile", "gems.rb"):
                updated.append(self.updated_gemfile_requirement(req))
            elif file_name.endswith(".gemspec"):
                updated.append(self.updated_gemspec_requirement(req))
            else:
                updated.append(req)
        return updated

    # Application policy

    def updated_gemfile_requirement(self, req: RequirementRecord) -> RequirementRecord:
        if self.latest_resolvable_version is None or not req.requirement:
            return req

        original = parse_requirements(req.requirement)
        if self.existing_version is None and all(
            r.satisfied_by(self.latest_resolvable_version) for r in original
        ):
            return req

        try:
            new_requirement = ", ".join(
                self._updated_application_clause(clause.strip())
                for clause in req.requirement.split(",")
                if clause.strip()
            )
        except UnfixableRequirement:
            return req.with_requirement(UNFIXABLE)
        return req.with_requirement(new_requirement)

    def _updated_application_clause(self, clause: str) -> str:
        target = self.latest_resolvable_version
        requirement = GemRequirement(clause)
        if requirement.op == "!=":
            # Exclusions stay put; one that hits the target can't be rewritten.
            if not requirement.satisfied_by(target):
                raise UnfixableRequirement(clause)
            return clause
        if requirement.op == ">":
            if requirement.satisfied_by(target):
                return clause
            clause = clause.replace(">", ">=", 1)
        else:
            clause = re.sub(r"<=?", APPLICATION_RANGE_OPERATOR, clause)

        new_version = str(target)
        return _VERSION_LITERAL.sub(lambda m: at_same_precision(new_version, m.group(0)), clause, count=1)

    # Library policy

    def updated_gemspec_requirement(self, req: RequirementRecord) -> RequirementRecord:
        if self.latest_version is None or not req.requirement:
            return req

        requirements = parse_requirements(req.requirement)
        if all(r.satisfied_by(self.latest_version) for r in requirements):
            return req

        try:
            updated = []
            for r in requirements:
                if r.satisfied_by(self.latest_version):
                    updated.append(r)
                elif "development" in req.groups:
                    updated.extend(self._bumped_requirements(r))
                else:
                    updated.extend(self._widened_requirements(r))
        except UnfixableRequirement:
            return req.with_requirement(UNFIXABLE)

        return req.with_requirement(", ".join(self._binding_requirements(updated)))

    def _widened_requirements(self, r: GemRequirement) -> list[GemRequirement]:
        if r.op in UNFIXABLE_LIBRARY_OPERATORS:
            raise UnfixableRequirement(str(r))
        if r.op == "=":
            return [GemRequirement.build(">=", r.version)]
        if r.op in BUMPABLE_UPPER_BOUND_OPERATORS:
            return [self._updated_greatest_version(r)]
        if r.op == "~>":
            return self._updated_twiddle_requirements(r)
        raise ValueError(f"Unexpected requirement operator: {r.op}")

    def _bumped_requirements(self, r: GemRequirement) -> list[GemRequirement]:
        if r.op in UNFIXABLE_LIBRARY_OPERATORS:
            raise UnfixableRequirement(str(r))
        if r.op == "=":
            return [GemRequirement.build("=", self.latest_version)]
        if r.op == "~>":
            return [GemRequirement.build("~>", at_same_precision(str(self.latest_version), str(r.version)))]
        if r.op in BUMPABLE_UPPER_BOUND_OPERATORS:
            return [self._updated_greatest_version(r)]
        raise ValueError(f"Unexpected requirement operator: {r.op}")

    def _updated_twiddle_requirements(self, r: GemRequirement) -> list[GemRequirement]:
        lower = r.version.release_segments
        index_to_update = max(len(lower) - 2, 0)

        upper = list(self.latest_version.release_segments)
        while len(upper) <= index_to_update:
            upper.append(0)
        upper = upper[: index_to_update + 1]
        upper[index_to_update] += 1

        if not any(lower):
            return [GemRequirement.build("<", ".".join(map(str, upper)))]

        length = max(len(lower), len(upper))
        lower = lower + [0] * (length - len(lower))
        upper = upper + [0] * (length - len(upper))
        return [
            GemRequirement.build(">=", ".".join(map(str, lower))),
            GemRequirement.build("<", ".".join(map(str, upper))),
        ]

    def _updated_greatest_version(self, r: GemRequirement) -> GemRequirement:
        segments = r.version.release_segments
        latest = self.latest_version.release_segments
        index_to_update = max(i if s else 0 for i, s in enumerate(segments))

        new_segments = []
        for index in range(len(segments)):
            latest_segment = latest[index] if index < len(latest) else 0
            if index < index_to_update:
                new_segments.append(latest_segment)
            elif index == index_to_update:
                new_segments.append(latest_segment + 1)
            else:
                new_segments.append(0)
        return GemRequirement.build(r.op, ".".join(map(str, new_segments)))

    def _binding_requirements(self, requirements: list[GemRequirement]) -> list[str]:
        """Keep the tightest bound per direction, drop duplicates."""
        by_operator: dict[str, list[GemRequirement]] = {}
        for r in requirements:
            by_operator.setdefault(r.op, []).append(r)

        binding = []
        for op, reqs in by_operator.items():
            if op in ("<", "<="):
                binding.append(min(reqs, key=lambda r: r.version))
            elif op in (">", ">="):
                binding.append(max(reqs, key=lambda r: r.version))
            else:
                binding.extend(reqs)

        unique = list(dict.fromkeys(binding))
        if not unique:
            unique = [GemRequirement(">= 0")]
        return [str(r) for r in sorted(unique, key=lambda r: r.version)]


def update_requirement(
    requirement: str,
    existing_version: str | None = None,
    latest_version: str | None = None,
    latest_resolvable_version: str | None = None,
    groups: tuple[str, ...] = (),
) -> str:
    """Rewrite one requirement string.

    With a resolvable version the application policy applies, otherwise the
    library policy against `latest_version`. Returns `UNFIXABLE` when the
    constraint cannot admit the target.
    """
    updater = RequirementsUpdater(
        requirements=[],
        existing_version=existing_version,
        latest_version=latest_version,
        latest_resolvable_version=latest_resolvable_version,
    )
    record = RequirementRecord(file="", requirement=requirement, groups=tuple(groups))
    if latest_resolvable_version is not None:
        return updater.updated_gemfile_requirement(record).requirement
    return updater.updated_gemspec_requirement(record).requirement
