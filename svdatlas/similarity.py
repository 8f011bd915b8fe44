"""Pairwise similarity of stored register trees within a group."""

import difflib
import logging
from dataclasses import dataclass
from itertools import combinations

from .corpus import ContentStore

logger = logging.getLogger("svdatlas.similarity")


class MissingPayloadError(FileNotFoundError):
    """A digest referenced by a group has no stored payload."""


@dataclass
class PairScore:
    """Similarity of two stored entries, as a percentage."""
    ratio: float
    first: str
    second: str

    def to_line(self) -> str:
        return format_report_line(self.ratio, self.first, self.second)

    def to_dict(self) -> dict:
        return {"ratio": round(self.ratio, 1), "first": self.first, "second": self.second}


def similarity_ratio(a: str, b: str) -> float:
    """Percentage of matched content between two payloads, in [0, 100].

    Payloads are aligned line by line; matched lines count with their full
    length, against the combined length of both payloads.
    """
    total = len(a) + len(b)
    if total == 0:
        return 100.0
    la = a.splitlines(keepends=True)
    lb = b.splitlines(keepends=True)
    matcher = difflib.SequenceMatcher(None, la, lb, autojunk=False)
    matched = 0
    for block in matcher.get_matching_blocks():
        matched += sum(len(line) for line in la[block.a:block.a + block.size])
    return min(100.0, 2.0 * matched / total * 100.0)


def format_report_line(ratio: float, first: str, second: str) -> str:
    # width 5 keeps " 9.5" < "10.0" < "99.9" in plain string order
    return f"{ratio:5.1f}% {first} {second}"


class SimilarityScorer:
    """Scores every pair of distinct entries referenced by a group."""

    def __init__(self, store: ContentStore):
        self.store = store

    def compare_group(self, group: str, digest_ids) -> list[PairScore]:
        ids = sorted(set(digest_ids))
        payloads = {d: self._load(group, d) for d in ids}
        scores = []
        for d1, d2 in combinations(ids, 2):
            ratio = similarity_ratio(payloads[d1], payloads[d2])
            scores.append(PairScore(ratio=ratio, first=d1, second=d2))
        logger.debug("Compared %d pairs in %s", len(scores), group)
        return scores

    def _load(self, group: str, digest_id: str) -> str:
        try:
            return self.store.get(group, digest_id)
        except FileNotFoundError as e:
            path = self.store.path_for(group, digest_id)
            raise MissingPayloadError(f"no stored payload for {digest_id}: {path}") from e


def report_lines(scores: list[PairScore]) -> list[str]:
    """Formatted report lines, sorted (ratio first, then ids)."""
    return sorted(s.to_line() for s in scores)
