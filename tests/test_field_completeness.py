from __future__ import annotations

from datetime import UTC, datetime

from travel_docs.modules.documents.models import DocumentCategory
from travel_docs.modules.extraction.completeness import annotate, needs_review
from travel_docs.modules.extraction.normalizer import ExtractionCandidate, normalize


def _candidate(when: datetime, owner: str | None) -> ExtractionCandidate:
    return ExtractionCandidate(
        title="Doc", occurred_at=when, category=DocumentCategory.OTHER, owner=owner
    )


def test_midnight_utc_is_flagged_as_missing_time():
    c = annotate(_candidate(datetime(2024, 3, 1, tzinfo=UTC), owner="Arvind P"))

    assert c.missing_fields == ("time",)


def test_non_midnight_time_is_not_flagged():
    c = annotate(_candidate(datetime(2024, 3, 1, 0, 0, 1, tzinfo=UTC), owner="Arvind P"))

    assert "time" not in c.missing_fields


def test_missing_owner_is_flagged():
    c = annotate(_candidate(datetime(2024, 3, 1, 10, 30, tzinfo=UTC), owner=None))

    assert c.missing_fields == ("owner",)
    assert needs_review([c])


def test_complete_candidate_needs_no_review():
    c = annotate(_candidate(datetime(2024, 3, 1, 10, 30, tzinfo=UTC), owner="A"))

    assert c.missing_fields == ()
    assert not needs_review([c])


def test_flight_to_delhi_scenario():
    raw = '{"title":"Flight to Delhi","date":"2024-03-01","type":"Flight","owner":null}'

    (c,) = [annotate(x) for x in normalize(raw)]

    assert c.title == "Flight to Delhi"
    assert c.occurred_at_iso == "2024-03-01T00:00:00.000Z"
    assert c.category == DocumentCategory.TRANSPORT
    assert c.sub_category == "Flight"
    assert c.owner is None
    assert c.missing_fields == ("time", "owner")
