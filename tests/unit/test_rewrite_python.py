"""Tests for PEP 440 requirement rewriting."""

import pytest

from depbump.models import UNFIXABLE, RequirementRecord
from depbump.rewrite_python import release_precision, update_requirement, updated_requirements


class TestPythonRequirementRewriting:
    """Test rewriting pip specifiers."""

    def test_exact_pin_follows_target(self):
        """Should re-pin at the same precision."""
        assert update_requirement("==1.4.0", "1.5.0") == "==1.5.0"
        assert update_requirement("==1.4", "1.5.2") == "==1.5"

    def test_compatible_release(self):
        """Should keep the ~= operator."""
        assert update_requirement("~=1.4", "1.5.0") == "~=1.5"
        assert update_requirement("~=2.28.0", "2.31.0") == "~=2.31.0"

    def test_wildcard_pin(self):
        """Should move the wildcard to the target's series."""
        assert update_requirement("==1.4.*", "1.5.0") == "==1.5.*"
        assert update_requirement("==1.5.*", "1.5.3") == "==1.5.*"

    def test_range_keeps_spacing(self):
        """Lower bound re-anchored, upper bound bumped, spacing kept."""
        assert update_requirement(">=1.0, <2", "2.1.0") == ">=2.1, <3"

    def test_upper_bound_bumped(self):
        """Unsatisfied upper bounds move just above the target."""
        assert update_requirement("<=1.5", "1.8.0") == "<=1.9"
        assert update_requirement("<1.5", "1.4.0") == "<1.5"

    @pytest.mark.parametrize("requirement", ["!=1.5.0", ">1.5.0", ">=1.0,!=1.5.0"])
    def test_unfixable(self, requirement):
        """Exclusions that rule out the target are unfixable."""
        assert update_requirement(requirement, "1.5.0") == UNFIXABLE

    def test_satisfied_exclusion_kept(self):
        """Exclusions that do not hit the target are untouched."""
        assert update_requirement("!=1.4.0", "1.5.0") == "!=1.4.0"

    def test_prerelease_target_stripped(self):
        """Rewritten literals are release versions."""
        assert update_requirement("==1.4.0", "1.5.0rc1") == "==1.5.0"

    def test_no_requirement_or_target(self):
        """Nothing to rewrite leaves the input alone."""
        assert update_requirement(None, "1.5.0") is None
        assert update_requirement("==1.4.0", None) == "==1.4.0"

    def test_idempotent(self):
        """Rewriting twice yields the same result."""
        once = update_requirement("==1.4.0", "1.5.0")
        assert update_requirement(once, "1.5.0") == once

    def test_release_precision(self):
        """Counts numeric components only."""
        assert release_precision("1.4") == 2
        assert release_precision("1.4.*") == 2
        assert release_precision("2.0.0rc1") == 2

    def test_records_updated_independently(self):
        """Each file's record is rewritten from its own constraint."""
        records = [
            RequirementRecord(file="requirements.txt", requirement="==1.4.0"),
            RequirementRecord(file="requirements/dev.txt", requirement=None),
        ]
        assert [r.requirement for r in updated_requirements(records, "1.5.0")] == ["==1.5.0", None]
