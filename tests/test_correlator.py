"""Tests for correlator module."""

from fim.correlator import RenameCorrelator, RenameSource, choose_candidate


class TestChooseCandidate:
    """Tests for the tie-break rule."""

    def test_unique_same_parent_wins(self):
        assert choose_candidate(["docs/a.txt"], ["other/a.txt"]) == "docs/a.txt"

    def test_ambiguous_same_parent_declines(self):
        assert choose_candidate(["docs/a.txt", "docs/b.txt"], ["other/a.txt"]) is None

    def test_unique_elsewhere_wins(self):
        assert choose_candidate([], ["other/a.txt"]) == "other/a.txt"

    def test_ambiguous_elsewhere_declines(self):
        assert choose_candidate([], ["x/a.txt", "y/a.txt"]) is None

    def test_no_candidates(self):
        assert choose_candidate([], []) is None


class TestRenameCorrelator:
    """Tests for RenameCorrelator class."""

    def test_add_returns_source(self):
        correlator = RenameCorrelator(window_ms=1000)
        source = correlator.add("docs/a.txt", "h1", 10.0)

        assert source == RenameSource("docs/a.txt", "h1", 10.0, "docs")
        assert "docs/a.txt" in correlator
        assert len(correlator) == 1

    def test_match_same_parent(self):
        correlator = RenameCorrelator(window_ms=1000)
        correlator.add("docs/a.txt", "h1", 10.0)

        assert correlator.match("h1", "docs", 10.5) == "docs/a.txt"

    def test_match_other_parent(self):
        correlator = RenameCorrelator(window_ms=1000)
        correlator.add("a.txt", "h1", 10.0)

        assert correlator.match("h1", "sub", 10.5) == "a.txt"
        assert correlator.match("h1", "sub", 10.5, same_parent_only=True) is None

    def test_requires_exact_fingerprint(self):
        correlator = RenameCorrelator(window_ms=1000)
        correlator.add("a.txt", "h1", 10.0)

        assert correlator.match("h2", "", 10.5) is None

    def test_expired_source_does_not_match(self):
        correlator = RenameCorrelator(window_ms=1000)
        correlator.add("a.txt", "h1", 10.0)

        assert correlator.match("h1", "", 11.0) == "a.txt"
        assert correlator.match("h1", "", 11.01) is None

    def test_exclude_self(self):
        correlator = RenameCorrelator(window_ms=1000)
        correlator.add("a.txt", "h1", 10.0)

        assert correlator.match("h1", "", 10.1, exclude="a.txt") is None

    def test_same_parent_preferred_over_elsewhere(self):
        correlator = RenameCorrelator(window_ms=1000)
        correlator.add("docs/a.txt", "h1", 10.0)
        correlator.add("other/a.txt", "h1", 10.0)

        same, other = correlator.candidates("h1", "docs", 10.2)

        assert same == ["docs/a.txt"]
        assert other == ["other/a.txt"]
        assert correlator.match("h1", "docs", 10.2) == "docs/a.txt"
        assert correlator.match("h1", "third", 10.2) is None

    def test_add_refreshes_existing(self):
        correlator = RenameCorrelator(window_ms=1000)
        correlator.add("a.txt", "h1", 10.0)
        correlator.add("a.txt", "h2", 12.0)

        assert len(correlator) == 1
        assert correlator.match("h1", "", 12.1) is None
        assert correlator.match("h2", "", 12.1) == "a.txt"

    def test_discard(self):
        correlator = RenameCorrelator(window_ms=1000)
        correlator.add("a.txt", "h1", 10.0)

        assert correlator.discard("a.txt").fingerprint == "h1"
        assert correlator.discard("a.txt") is None
        assert correlator.match("h1", "", 10.1) is None

    def test_is_live(self):
        correlator = RenameCorrelator(window_ms=500)
        correlator.add("a.txt", "h1", 10.0)

        assert correlator.is_live("a.txt", 10.5) is True
        assert correlator.is_live("a.txt", 10.6) is False
        assert correlator.is_live("b.txt", 10.0) is False

    def test_expire(self):
        correlator = RenameCorrelator(window_ms=1000)
        correlator.add("b.txt", "h1", 10.0)
        correlator.add("a.txt", "h2", 10.0)
        correlator.add("c.txt", "h3", 10.8)

        expired = correlator.expire(11.5)

        assert [s.path for s in expired] == ["a.txt", "b.txt"]
        assert correlator.paths() == ["c.txt"]

    def test_clear(self):
        correlator = RenameCorrelator()
        correlator.add("a.txt", "h1", 10.0)
        correlator.clear()

        assert len(correlator) == 0
        assert correlator.match("h1", "", 10.0) is None
