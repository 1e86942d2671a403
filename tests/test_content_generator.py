import asyncio

import pytest

from conftest import FakeAI, SAMPLE_TEXT, flashcard_payload, mcq_payload
from pediaquiz.errors import GenerationFailed
from pediaquiz.generation.content_generator import generate_content
from pediaquiz.generation.gpt_client import AIBackendError


def _generate(ai, mcqs, flashcards, citation=None):
    return asyncio.run(generate_content(
        ai, SAMPLE_TEXT, topic="Cardiology", chapter="Vasculitis",
        mcq_count=mcqs, flashcard_count=flashcards, source_citation=citation,
    ))


def test_exact_counts():
    staged = _generate(FakeAI(mcq_payload(7), flashcard_payload(3)), 7, 3)
    assert len(staged.mcqs) == 7
    assert len(staged.flashcards) == 3
    assert all(m.answer in "ABCD" and len(m.options) == 4 for m in staged.mcqs)


def test_large_requests_are_batched():
    ai = FakeAI(mcq_payload(20), mcq_payload(5, prefix="R"), flashcard_payload(2))
    staged = _generate(ai, 25, 2)
    assert len(staged.mcqs) == 25
    assert len(ai.prompts) == 3
    assert "EXACTLY 20" in ai.prompts[0]
    assert "EXACTLY 5" in ai.prompts[1]
    # second batch is told what was already written
    assert "Q1: Which finding is diagnostic?" in ai.prompts[1]


def test_zero_flashcards_makes_no_flashcard_call():
    ai = FakeAI(mcq_payload(2))
    staged = _generate(ai, 2, 0)
    assert staged.flashcards == []
    assert len(ai.prompts) == 1


def test_citation_appended_to_explanations():
    staged = _generate(FakeAI(mcq_payload(2)), 2, 0, citation="Nelson Ch. 3")
    assert [m.explanation for m in staged.mcqs] == [
        "Explanation 1 (Source: Nelson Ch. 3)",
        "Explanation 2 (Source: Nelson Ch. 3)",
    ]


def test_wrong_count_fails():
    with pytest.raises(GenerationFailed) as exc:
        _generate(FakeAI(mcq_payload(6)), 7, 0)
    assert "expected exactly 7" in exc.value.message


def test_missing_answer_fails():
    payload = mcq_payload(2)
    del payload["mcqs"][1]["answer"]
    with pytest.raises(GenerationFailed) as exc:
        _generate(FakeAI(payload), 2, 0)
    assert "answer" in exc.value.message


@pytest.mark.parametrize("field, value", [
    ("answer", "E"),
    ("options", ["only", "three", "options"]),
    ("question", "   "),
    ("explanation", ""),
])
def test_malformed_mcq_fails(field, value):
    payload = mcq_payload(1)
    payload["mcqs"][0][field] = value
    with pytest.raises(GenerationFailed):
        _generate(FakeAI(payload), 1, 0)


def test_labelled_options_are_accepted():
    payload = mcq_payload(1)
    payload["mcqs"][0]["options"] = [
        {"label": "B", "text": "Rash"}, {"label": "A", "text": "Fever"},
        {"label": "D", "text": "Limp"}, {"label": "C", "text": "Cough"},
    ]
    staged = _generate(FakeAI(payload), 1, 0)
    assert staged.mcqs[0].options == ["Fever", "Rash", "Cough", "Limp"]


def test_empty_flashcard_back_fails():
    payload = flashcard_payload(1)
    payload["flashcards"][0]["back"] = ""
    with pytest.raises(GenerationFailed):
        _generate(FakeAI(payload), 0, 1)


def test_backend_error_fails():
    with pytest.raises(GenerationFailed):
        _generate(FakeAI(AIBackendError("rate limited")), 1, 0)
