"""
Weighted merge of vector and chat search results.

Both strategies score candidates on their own scale, so the merge combines
them linearly: combined = score_vector * VECTOR_WEIGHT + score_chat * CHAT_WEIGHT,
with a missing side contributing zero. Candidates are matched by id.
"""

import math
from dataclasses import dataclass

from .schemas import SearchMatch

VECTOR_WEIGHT = 0.6
CHAT_WEIGHT = 0.4

# Share of top_k requested from each strategy during a hybrid search
VECTOR_SHARE = 0.7
CHAT_SHARE = 0.5


@dataclass(frozen=True)
class HybridPolicy:
    vector_weight: float = VECTOR_WEIGHT
    chat_weight: float = CHAT_WEIGHT
    vector_share: float = VECTOR_SHARE
    chat_share: float = CHAT_SHARE

    def vector_top_k(self, top_k: int) -> int:
        return math.ceil(top_k * self.vector_share)

    def chat_top_k(self, top_k: int) -> int:
        return math.ceil(top_k * self.chat_share)


@dataclass
class RankedMatch:
    match: SearchMatch
    combined_score: float


def combine_and_rank(
    vector_matches: list[SearchMatch],
    chat_matches: list[SearchMatch],
    top_k: int,
    policy: HybridPolicy | None = None,
) -> list[RankedMatch]:
    """Merge two result lists by id, best combined score first, at most top_k.

    When a candidate appears in both lists the vector match's fields are kept.
    Ties keep insertion order, so vector entries win over chat-only entries.
    """
    if policy is None:
        policy = HybridPolicy()

    merged: dict[str, RankedMatch] = {}
    for m in vector_matches:
        merged[m.id] = RankedMatch(match=m, combined_score=m.score * policy.vector_weight)

    for m in chat_matches:
        existing = merged.get(m.id)
        if existing is not None:
            existing.combined_score += m.score * policy.chat_weight
        else:
            merged[m.id] = RankedMatch(match=m, combined_score=m.score * policy.chat_weight)

    ranked = sorted(merged.values(), key=lambda r: r.combined_score, reverse=True)
    return ranked[:max(top_k, 0)]
