"""Tests for event deduplication logic."""

from datetime import datetime, timedelta, timezone

import pytest

from servers.happening_now.dedup import (
    FUZZY_DISTANCE_MILES,
    canonical_key,
    deduplicate,
    deduplicate_events,
    format_audit_summary,
    geo_bucket,
    match_fuzzy,
    merge_events,
    normalize_title,
    paraphrase_similarity,
    time_bucket,
    title_similarity,
)

START = datetime(2025, 3, 1, 20, 0, tzinfo=timezone.utc)


class TestNormalization:
    """Tests for title normalization."""

    def test_lowercases_and_strips_punctuation(self):
        assert normalize_title("Jazz Night!!") == "jazz night"

    def test_collapses_whitespace(self):
        result = normalize_title("  Multiple   Spaces  ")
        assert result == "multiple spaces"

    def test_drops_non_ascii_letters(self):
        assert normalize_title("Café Tour") == "caf tour"

    def test_keeps_digits(self):
        assert normalize_title("Top 40 Hits @ 9PM") == "top 40 hits 9pm"

    def test_empty_string(self):
        assert normalize_title("") == ""

    def test_none_handling(self):
        assert normalize_title(None) == ""


class TestBuckets:
    """Tests for the time and geo buckets of the canonical key."""

    def test_time_bucket_floors_to_half_hour(self):
        value = datetime(2025, 3, 1, 19, 29, 59, 999000, tzinfo=timezone.utc)
        assert time_bucket(value) == "2025-03-01T19:00:00+00:00"

    def test_time_bucket_second_half(self):
        value = datetime(2025, 3, 1, 19, 45, 10, tzinfo=timezone.utc)
        assert time_bucket(value) == "2025-03-01T19:30:00+00:00"

    def test_geo_bucket_three_decimals(self):
        assert geo_bucket(25.78123, -80.18849) == "25.781,-80.188"

    def test_geo_bucket_unknown_without_coordinates(self):
        assert geo_bucket(None, -80.1) == "unknown"
        assert geo_bucket(25.7, None) == "unknown"

    def test_geo_bucket_zero_is_a_coordinate(self):
        assert geo_bucket(0.0, 0.0) == "0.000,0.000"

    def test_canonical_key_ignores_case_and_punctuation(self, make_event):
        e1 = make_event(title="Jazz Night", start_time=START)
        e2 = make_event(title="JAZZ NIGHT!", start_time=START + timedelta(minutes=10))
        assert canonical_key(e1) == canonical_key(e2)


class TestTitleSimilarity:
    """Tests for Jaccard title similarity."""

    def test_identical_after_normalization(self):
        assert title_similarity("Jazz Night", "jazz night!!") == 1.0

    def test_partial_overlap(self):
        # {miami, heat, vs, lakers} vs {heat, vs, lakers, game}
        assert title_similarity("Miami Heat vs Lakers", "Heat vs. Lakers Game") == pytest.approx(0.6)

    def test_no_overlap(self):
        assert title_similarity("Jazz Night", "Comedy Show") == 0.0


class TestFuzzyMatch:
    """Tests for the fuzzy duplicate criteria."""

    def test_matches_within_window(self, make_event):
        e1 = make_event(title="Jazz Night", start_time=START, lat=25.7810, lng=-80.1880)
        e2 = make_event(
            title="jazz night!!",
            start_time=START + timedelta(minutes=29),
            lat=25.7810 + 0.0013,  # ~0.09 miles north
            lng=-80.1880,
        )
        match = match_fuzzy(e2, e1)
        assert match is not None
        assert match.distance_miles < FUZZY_DISTANCE_MILES
        assert match.time_delta_minutes == pytest.approx(29)

    def test_rejects_outside_time_window(self, make_event):
        e1 = make_event(title="Jazz Night", start_time=START)
        e2 = make_event(title="Jazz Night", start_time=START + timedelta(minutes=31))
        assert match_fuzzy(e2, e1) is None

    def test_rejects_distant_venues(self, make_event):
        e1 = make_event(title="Jazz Night", start_time=START, lat=25.781, lng=-80.188)
        e2 = make_event(title="Jazz Night", start_time=START, lat=25.79, lng=-80.188)
        assert match_fuzzy(e2, e1) is None

    def test_rejects_different_titles(self, make_event):
        e1 = make_event(title="Jazz Night", start_time=START)
        e2 = make_event(title="Comedy Show", start_time=START)
        assert match_fuzzy(e2, e1) is None

    def test_one_side_without_coordinates_never_matches(self, make_event):
        e1 = make_event(title="Jazz Night", start_time=START)
        e2 = make_event(title="Jazz Night", start_time=START + timedelta(minutes=5), lat=None, lng=None)
        assert match_fuzzy(e2, e1) is None

    def test_both_without_coordinates_match_on_title_and_time(self, make_event):
        e1 = make_event(title="Jazz Night", start_time=START, lat=None, lng=None)
        e2 = make_event(title="Jazz Night!", start_time=START + timedelta(minutes=35), lat=None, lng=None)
        assert match_fuzzy(e2, e1) is None

        e3 = make_event(title="Jazz Night!", start_time=START + timedelta(minutes=20), lat=None, lng=None)
        match = match_fuzzy(e3, e1)
        assert match is not None
        assert match.distance_miles is None

    def test_paraphrased_title_matches(self, heat_lakers_tm, heat_lakers_phq):
        match = match_fuzzy(heat_lakers_phq, heat_lakers_tm)
        assert match is not None
        assert match.title_similarity > 0.7

    def test_single_shared_word_is_not_a_paraphrase(self, make_event):
        e1 = make_event(title="Set 1", start_time=START)
        e2 = make_event(title="Set 2", start_time=START)
        assert paraphrase_similarity("Set 1", "Set 2") == 0.0
        assert match_fuzzy(e2, e1) is None

    def test_superset_title_is_a_different_event(self, make_event):
        """A longer billing at the same venue is a separate happening."""
        e1 = make_event(title="Jazz Night", start_time=START)
        e2 = make_event(title="Jazz Night Late Show", start_time=START + timedelta(minutes=25))

        assert title_similarity(e1.title, e2.title) == 0.5
        assert paraphrase_similarity(e1.title, e2.title) == 0.0
        assert match_fuzzy(e2, e1) is None
        assert len(deduplicate([e1, e2]).events) == 2


class TestMergeEvents:
    """Tests for priority replace and field merge."""

    def test_higher_popularity_wins_and_inherits_missing_fields(self, make_event):
        strong = make_event(
            title="Jazz Night",
            popularity=100,
            url="https://tm.example/jazz",
            description=None,
            image_url=None,
        )
        weak = make_event(
            title="Jazz Night",
            popularity=40,
            url="https://community.example/jazz",
            description="Quartet in the courtyard",
            image_url="https://img.example/jazz.jpg",
            price_min=10.0,
        )

        for existing, incoming in ((strong, weak), (weak, strong)):
            merged, loser = merge_events(existing, incoming)
            assert merged.id == strong.id
            assert loser.id == weak.id
            assert merged.url == "https://tm.example/jazz"
            assert merged.description == "Quartet in the courtyard"
            assert merged.image_url == "https://img.example/jazz.jpg"
            assert merged.price_min == 10.0

    def test_tie_keeps_first_seen(self, make_event):
        first = make_event(title="Jazz Night", popularity=70)
        second = make_event(title="Jazz Night", popularity=70)
        merged, loser = merge_events(first, second)
        assert merged.id == first.id
        assert loser.id == second.id

    def test_merge_produces_new_record(self, make_event):
        winner = make_event(popularity=100, image_url=None)
        loser = make_event(popularity=40, image_url="https://img.example/a.jpg")
        merged, _ = merge_events(winner, loser)
        assert merged is not winner
        assert winner.image_url is None

    def test_zero_price_is_not_empty(self, make_event):
        winner = make_event(popularity=100, price_min=0.0)
        loser = make_event(popularity=40, price_min=25.0)
        merged, _ = merge_events(winner, loser)
        assert merged.price_min == 0.0


class TestDeduplication:
    """Tests for the deduplicate pass."""

    def test_hard_match_collapses(self, make_event):
        e1 = make_event(source="predicthq", title="Jazz Night", start_time=START, popularity=70)
        e2 = make_event(source="ticketmaster", title="JAZZ NIGHT", start_time=START, popularity=100)

        result = deduplicate([e1, e2])

        assert len(result.events) == 1
        assert result.events[0].source == "ticketmaster"
        assert result.duplicates_removed == 1
        assert result.audit_trail[0].match_type == "hard"

    def test_fuzzy_boundary(self, make_event):
        """29 minutes / 0.09 miles merges, 31 minutes does not."""
        base = make_event(title="Jazz Night", start_time=START, lat=25.7810, lng=-80.1880)
        near = make_event(
            title="jazz night!!",
            start_time=START + timedelta(minutes=29),
            lat=25.7823,
            lng=-80.1880,
        )
        late = make_event(title="Jazz Night", start_time=START + timedelta(minutes=31))

        assert len(deduplicate([base, near]).events) == 1
        assert len(deduplicate([base, late]).events) == 2

    def test_fuzzy_merge_keeps_existing_key(self, make_event):
        e1 = make_event(title="Jazz Night", start_time=START, popularity=40, source="community")
        e2 = make_event(title="Jazz Night", start_time=START + timedelta(minutes=40))
        e3 = make_event(
            title="Jazz Night",
            start_time=START + timedelta(minutes=20),
            lat=25.7818,  # different geo bucket, ~0.05 miles away
            popularity=100,
            url="https://tm.example/jazz",
        )

        result = deduplicate([e1, e2, e3])

        # e3 fuzzy-matches e1 (20 min apart) and replaces it under e1's key
        assert len(result.events) == 2
        assert result.events[0].id == e3.id
        assert result.events[1].id == e2.id
        assert result.audit_trail[0].match_type == "fuzzy"

    def test_missing_coordinates_can_hard_match(self, make_event):
        e1 = make_event(title="Jazz Night", start_time=START, lat=None, lng=None, popularity=40)
        e2 = make_event(title="Jazz Night", start_time=START, lat=None, lng=None, popularity=80)
        result = deduplicate([e1, e2])
        assert [e.id for e in result.events] == [e2.id]

    def test_distinct_events_survive(self, make_event):
        events = [
            make_event(title="Jazz Night", start_time=START),
            make_event(title="Comedy Show", start_time=START),
            make_event(title="Jazz Night", start_time=START + timedelta(days=1)),
        ]
        assert len(deduplicate_events(events)) == 3

    def test_idempotent(self, make_event, heat_lakers_tm, heat_lakers_phq):
        events = [
            heat_lakers_tm,
            heat_lakers_phq,
            make_event(title="Jazz Night", start_time=START),
            make_event(title="JAZZ NIGHT", start_time=START, popularity=10),
            make_event(title="Art Walk", start_time=START, lat=None, lng=None),
        ]

        once = deduplicate_events(events)
        twice = deduplicate_events(once)

        assert twice == once

    def test_empty_list(self):
        result = deduplicate([])
        assert result.events == []
        assert result.duplicates_removed == 0
        assert result.dedup_rate == 0.0

    def test_accepts_generators(self, make_event):
        result = deduplicate(make_event(title=f"Event {i}") for i in range(3))
        assert result.original_count == 3
        assert len(result.events) == 3


class TestAuditSummary:
    """Tests for the human-readable audit summary."""

    def test_no_duplicates(self, make_event):
        assert format_audit_summary(deduplicate([make_event()])) == "No duplicates found."

    def test_lists_merges(self, heat_lakers_tm, heat_lakers_phq):
        summary = format_audit_summary(deduplicate([heat_lakers_tm, heat_lakers_phq]))
        assert "Duplicates removed: 1" in summary
        assert "[fuzzy]" in summary
        assert "Heat vs. Lakers Game" in summary
