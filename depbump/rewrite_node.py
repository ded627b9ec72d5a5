"""Rewriting npm semver ranges for a new target version."""

import re

from .models import RequirementRecord

_VERSION = re.compile(r"[0-9]+(?:\.[a-zA-Z0-9\-]+)*")
_WILDCARD = re.compile(r"^[xX*](?:\b|$)")


def update_requirement(requirement: str | None, latest_resolvable_version: str | None) -> str | None:
    """Re-anchor the first version in `requirement` at the new version.

    The range operator (`^`, `~`, `>=`, none) is kept, as are the number of
    components and any `x` wildcards; prerelease suffixes are dropped.
    """
    if not requirement or not latest_resolvable_version:
        return requirement

    new_parts = latest_resolvable_version.split("-")[0].split(".")

    def replace(match: re.Match) -> str:
        old_parts = match.group(0).split(".")
        return ".".join(
            "x" if _WILDCARD.match(old_parts[i]) else part
            for i, part in enumerate(new_parts[: len(old_parts)])
        )

    return _VERSION.sub(replace, requirement, count=1)


def updated_requirements(
    requirements: list[RequirementRecord], latest_resolvable_version: str | None
) -> list[RequirementRecord]:
    return [
        r.with_requirement(update_requirement(r.requirement, latest_resolvable_version))
        for r in requirements
    ]
