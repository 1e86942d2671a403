import random

from pediaquiz.generation.weakness import assemble_weakness_test, build_candidate_pool, chapter_accuracy


def _mcqs(chapter, count, start=0):
    return [{"id": f"{chapter}-{i}", "chapter": chapter} for i in range(start, start + count)]


def test_chapter_accuracy_weakest_first():
    mcqs = _mcqs("A", 2) + _mcqs("B", 2)
    attempted = {
        "A-0": {"is_correct": False},
        "A-1": {"is_correct": False},
        "B-0": {"is_correct": True},
        "B-1": {"is_correct": False},
    }
    stats = chapter_accuracy(attempted, mcqs)
    assert [s.chapter for s in stats] == ["A", "B"]
    assert stats[0].accuracy == 0.0
    assert stats[1].accuracy == 0.5


def test_pool_walks_weakest_chapter_first():
    # A: 0/2 correct, B: 1/2 correct, each chapter has 5 MCQs; K=3 → stop at 3K=9
    mcqs = _mcqs("A", 5) + _mcqs("B", 5)
    attempted = {
        "A-0": {"is_correct": False},
        "A-1": {"is_correct": False},
        "B-0": {"is_correct": True},
        "B-1": {"is_correct": False},
    }
    pool = build_candidate_pool(attempted, mcqs, test_size=3)
    assert pool[:5] == [f"A-{i}" for i in range(5)]
    assert pool[5:] == [f"B-{i}" for i in range(5)]


def test_pool_stops_at_three_times_k():
    mcqs = _mcqs("A", 10) + _mcqs("B", 10)
    attempted = {"A-0": {"is_correct": False}, "B-0": {"is_correct": True}}
    pool = build_candidate_pool(attempted, mcqs, test_size=2)
    assert pool == [f"A-{i}" for i in range(10)]


def test_empty_attempts_give_random_test_from_unattempted():
    mcqs = _mcqs("A", 25) + _mcqs("B", 25)
    result = assemble_weakness_test({}, mcqs, 10, rng=random.Random(7))
    assert len(result) == 10
    assert len(set(result)) == 10
    assert set(result) <= {m["id"] for m in mcqs}


def test_small_pool_is_topped_up_with_unattempted():
    mcqs = _mcqs("A", 2) + _mcqs("B", 3)
    attempted = {"A-0": {"is_correct": False}}
    pool = build_candidate_pool(attempted, mcqs, test_size=4)
    assert pool == ["A-0", "A-1", "B-0", "B-1", "B-2"]


def test_result_is_unique_and_capped_by_availability():
    mcqs = _mcqs("A", 3)
    attempted = {"A-0": {"is_correct": False}}
    result = assemble_weakness_test(attempted, mcqs, 20, rng=random.Random(1))
    assert sorted(result) == ["A-0", "A-1", "A-2"]


def test_accepts_attempt_objects():
    class Attempt:
        def __init__(self, is_correct):
            self.is_correct = is_correct

    mcqs = _mcqs("A", 2) + _mcqs("B", 2)
    stats = chapter_accuracy({"A-0": Attempt(True), "B-0": Attempt(False)}, mcqs)
    assert [s.chapter for s in stats] == ["B", "A"]


def test_zero_size_returns_nothing():
    assert assemble_weakness_test({}, _mcqs("A", 3), 0) == []
