from __future__ import annotations

import dataclasses

from travel_docs.core.dates import is_midnight_utc
from travel_docs.modules.extraction.normalizer import ExtractionCandidate

MISSING_TIME = "time"
MISSING_OWNER = "owner"


def missing_fields(candidate: ExtractionCandidate) -> tuple[str, ...]:
    out: list[str] = []
    # A date with no time lands on midnight UTC. Genuine midnight events are flagged too.
    if is_midnight_utc(candidate.occurred_at):
        out.append(MISSING_TIME)
    if not (candidate.owner or "").strip():
        out.append(MISSING_OWNER)
    return tuple(out)


def annotate(candidate: ExtractionCandidate) -> ExtractionCandidate:
    return dataclasses.replace(candidate, missing_fields=missing_fields(candidate))


def annotate_all(candidates: list[ExtractionCandidate]) -> list[ExtractionCandidate]:
    return [annotate(c) for c in candidates]


def needs_review(candidates: list[ExtractionCandidate]) -> bool:
    return any(c.missing_fields for c in candidates)
