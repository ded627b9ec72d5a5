"""Rewriting PEP 440 requirement strings for a new target version."""

import re

from packaging.specifiers import InvalidSpecifier, Specifier
from packaging.version import InvalidVersion, Version

from .models import UNFIXABLE, RequirementRecord

# Operators whose version literal is re-anchored at the target.
PINNING_OPERATORS = ("==", "===", "~=", ">=")
# Upper bounds bumped to just above the target when they exclude it.
BUMPABLE_UPPER_BOUND_OPERATORS = ("<", "<=")
# Bounds that can never be relaxed to admit the target.
UNFIXABLE_OPERATORS = ("!=", ">")

_CLAUSE = re.compile(r"^(?P<lead>\s*)(?P<op>===|==|~=|!=|>=|<=|>|<)(?P<space>\s*)(?P<version>[^\s,]+)(?P<trail>\s*)$")


class UnfixableRequirement(Exception):
    pass


def release_precision(version: str) -> int:
    """Number of numeric release components written, ignoring `.*` and suffixes."""
    count = 0
    for part in version.split("."):
        if not part.isdigit():
            break
        count += 1
    return count


def at_same_precision(new_version: Version, old_version: str) -> str:
    precision = max(release_precision(old_version), 1)
    release = list(new_version.release) + [0] * precision
    return ".".join(str(s) for s in release[:precision])


def _bumped_upper_bound(old_version: str, target: Version) -> str:
    segments = [int(p) for p in old_version.split(".")[: release_precision(old_version)]] or [0]
    latest = list(target.release)
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
    return ".".join(map(str, new_segments))


def _updated_clause(clause: str, target: Version) -> str:
    match = _CLAUSE.match(clause)
    if not match:
        return clause
    op, version = match.group("op"), match.group("version")
    try:
        satisfied = Specifier(f"{op}{version}").contains(target, prereleases=True)
    except InvalidSpecifier:
        return clause

    if op in PINNING_OPERATORS:
        if version.endswith(".*"):
            if satisfied:
                return clause
            new_version = at_same_precision(target, version[:-2]) + ".*"
        else:
            new_version = at_same_precision(target, version)
            if op == "~=" and "." not in new_version:
                new_version += ".0"
    elif op in BUMPABLE_UPPER_BOUND_OPERATORS:
        if satisfied:
            return clause
        new_version = _bumped_upper_bound(version, target)
    elif op in UNFIXABLE_OPERATORS:
        if satisfied:
            return clause
        raise UnfixableRequirement(clause)
    else:
        return clause

    return (
        match.group("lead") + op + match.group("space") + new_version + match.group("trail")
    )


def update_requirement(requirement: str | None, latest_resolvable_version: str | None) -> str | None:
    """Rewrite a specifier string such as `==1.4.0` or `>=1.0, <2`.

    Returns the requirement unchanged when there is no target, and
    `UNFIXABLE` when an exclusion rules the target out.
    """
    if not requirement or not latest_resolvable_version:
        return requirement
    try:
        target = Version(latest_resolvable_version)
    except InvalidVersion:
        return requirement

    try:
        return ",".join(_updated_clause(c, target) for c in requirement.split(","))
    except UnfixableRequirement:
        return UNFIXABLE


def updated_requirements(
    requirements: list[RequirementRecord], latest_resolvable_version: str | None
) -> list[RequirementRecord]:
    return [
        r.with_requirement(update_requirement(r.requirement, latest_resolvable_version))
        for r in requirements
    ]
