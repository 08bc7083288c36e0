# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Tests for watch pattern matching."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from sysconfig_service import ValidationError, match_pattern, validate_pattern
from sysconfig_service.patterns import match_any

segments = st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789_-", min_size=1, max_size=8)
keys = st.lists(segments, min_size=1, max_size=6).map(".".join)


class TestMatchPattern:
    """Tests for dot-segmented matching."""

    @pytest.mark.parametrize(
        "pattern,key,expected",
        [
            ("app.*", "app.feature", True),
            ("app.*", "app.feature.x", False),
            ("app.**", "app.feature.x", True),
            ("app.**", "app", True),
            ("*.timeout", "db.timeout", True),
            ("*.timeout", "db.pool.timeout", False),
            ("app.feature", "app.feature", True),
            ("app.feature", "app.features", False),
            ("app.feature", "app", False),
            ("app.*.enabled", "app.search.enabled", True),
            ("app.*.enabled", "app.search.disabled", False),
            ("**", "anything.at.all", True),
            ("db.*", "db.timeout.extra", False),
            ("db.*", "dbx.timeout", False),
            ("api.*.timeout", "api.users.timeout", True),
            ("api.*.timeout", "api.timeout", False),
        ],
    )
    def test_examples(self, pattern, key, expected):
        """Known pattern/key pairs match as documented."""
        assert match_pattern(pattern, key) is expected

    def test_empty_key_never_matches(self):
        """An empty key matches nothing, not even ``**``."""
        assert match_pattern("**", "") is False
        assert match_pattern("*", "") is False

    def test_match_any(self):
        """match_any is true when one of the patterns matches."""
        assert match_any(["db.*", "app.**"], "app.x.y") is True
        assert match_any(["db.*", "cache.*"], "app.x") is False
        assert match_any([], "app.x") is False

    @given(keys)
    def test_key_matches_itself(self, key):
        """Every key is a literal pattern for itself."""
        assert match_pattern(key, key)

    @given(keys)
    def test_double_star_matches_everything(self, key):
        assert match_pattern("**", key)

    @given(keys)
    def test_single_stars_match_same_depth(self, key):
        """A pattern of only ``*`` segments matches keys of the same depth only."""
        depth = len(key.split("."))
        assert match_pattern(".".join(["*"] * depth), key)
        assert not match_pattern(".".join(["*"] * (depth + 1)), key)

    @given(keys, segments)
    def test_prefix_double_star(self, key, extra):
        """``prefix.**`` matches the prefix and anything below it."""
        assert match_pattern(f"{key}.**", key)
        assert match_pattern(f"{key}.**", f"{key}.{extra}")


class TestValidatePattern:
    """Tests for pattern validation."""

    @pytest.mark.parametrize("pattern", ["app.*", "app.**", "**", "*", "a.b.c"])
    def test_valid(self, pattern):
        assert validate_pattern(pattern) == pattern

    @pytest.mark.parametrize("pattern", ["", "app..x", ".app", "app.", "**.app", "a.**.b"])
    def test_invalid(self, pattern):
        """Empty patterns, empty segments and inner ``**`` are rejected."""
        with pytest.raises(ValidationError):
            validate_pattern(pattern)
