# profile merger — folds newly extracted facts into the core memory set
# exact-string union, no normalization and no semantic similarity

from typing import Iterable


def merge_facts(existing: Iterable[str], new_facts: Iterable[str]) -> list[str]:
    """union of existing and new facts by exact string equality.

    keeps existing facts in their stored order and appends unseen new facts
    in first-seen order. order carries no meaning, uniqueness is guaranteed.
    case-sensitive: "Likes tea" and "likes tea" are two facts.
    """
    merged = dict.fromkeys(existing)
    for fact in new_facts:
        if fact not in merged:
            merged[fact] = None
    return list(merged)
