"""
Weakness Test Assembler.

Builds a practice test biased toward the learner's lowest-accuracy chapters.
Pure function of (attempt map, MCQ pool, test size): no I/O, and
deterministic apart from the final shuffle (pass `rng` to seed it).

Algorithm:
  1. group attempted MCQs by chapter, accuracy = correct / total
  2. rank chapters weakest first
  3. pool every MCQ of each chapter in that order until the pool holds 3×K ids
  4. pool still under K → top up with never-attempted MCQs
  5. de-duplicate, shuffle, take K
"""

import random
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Sequence

OVERSAMPLE_FACTOR = 3


class ChapterStats(NamedTuple):
    chapter: str
    correct: int
    total: int

    @property
    def accuracy(self) -> float:
        return self.correct / self.total if self.total else 0.0


def _field(item: Any, name: str, default=None):
    if isinstance(item, Mapping):
        return item.get(name, default)
    return getattr(item, name, default)


def chapter_accuracy(attempted: Mapping[str, Any], mcqs: Sequence[Any]) -> List[ChapterStats]:
    """Per-chapter stats for attempted MCQs, weakest first (ties keep first-seen order)."""
    chapter_by_id = {_field(m, "id"): _field(m, "chapter") for m in mcqs}
    correct: Dict[str, int] = {}
    total: Dict[str, int] = {}
    for mcq_id, attempt in attempted.items():
        chapter = chapter_by_id.get(mcq_id)
        if not chapter:
            continue
        total[chapter] = total.get(chapter, 0) + 1
        if _field(attempt, "is_correct", False):
            correct[chapter] = correct.get(chapter, 0) + 1

    stats = [ChapterStats(chapter, correct.get(chapter, 0), count) for chapter, count in total.items()]
    return sorted(stats, key=lambda s: s.accuracy)


def build_candidate_pool(attempted: Mapping[str, Any], mcqs: Sequence[Any], test_size: int) -> List[str]:
    """Candidate ids before shuffling: weakest chapters first, then unattempted top-up."""
    pool: List[str] = []
    for stats in chapter_accuracy(attempted, mcqs):
        pool.extend(_field(m, "id") for m in mcqs if _field(m, "chapter") == stats.chapter)
        if len(pool) >= test_size * OVERSAMPLE_FACTOR:
            break

    if len(pool) < test_size:
        pool.extend(_field(m, "id") for m in mcqs if _field(m, "id") not in attempted)

    return list(dict.fromkeys(pool))


def assemble_weakness_test(
    attempted: Mapping[str, Any],
    mcqs: Sequence[Any],
    test_size: int,
    rng: Optional[random.Random] = None,
) -> List[str]:
    """
    Select min(test_size, available) unique MCQ ids.

    Args:
        attempted: MCQ id → attempt (mapping or object with `is_correct`)
        mcqs:      full pool (mappings or objects with `id` and `chapter`)
        test_size: K
        rng:       random source for the shuffle
    """
    if test_size < 1:
        return []
    pool = build_candidate_pool(attempted, mcqs, test_size)
    (rng or random).shuffle(pool)
    return pool[:test_size]
