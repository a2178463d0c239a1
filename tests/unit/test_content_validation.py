"""
Unit tests for authoring checks.
"""
from celpip_prep.schemas.practice_set import PracticeSet
from celpip_prep.utils.content_validation import error_issues, validate_practice_set, warning_issues


def make(sections):
    return PracticeSet.model_validate({"id": "s", "title": "T", "sections": sections})


def reading(questions, content=""):
    return {"id": "sec", "type": "READING", "parts": [{"id": "p", "contentText": content, "questions": questions}]}


class TestValidatePracticeSet:
    def test_clean_set(self, full_set):
        assert validate_practice_set(full_set) == []

    def test_duplicate_ids_are_errors(self):
        ps = make([reading([
            {"id": "q", "type": "MCQ", "options": ["a"]},
            {"id": "q", "type": "MCQ", "options": ["a"]},
        ])])
        issues = validate_practice_set(ps)
        assert len(error_issues(issues)) == 1
        assert "duplicate" in error_issues(issues)[0].message

    def test_unmatched_placeholder(self):
        ps = make([reading([], content="A [[7]] blank")])
        msgs = [i.message for i in warning_issues(validate_practice_set(ps))]
        assert msgs == ["[[7]] has no CLOZE question"]

    def test_unreferenced_cloze(self):
        ps = make([reading([{"id": "c", "type": "CLOZE", "text": "1", "options": ["a"]}])])
        msgs = [i.message for i in validate_practice_set(ps)]
        assert any("never referenced" in m for m in msgs)

    def test_cloze_referenced_from_passage(self):
        ps = make([reading([
            {"id": "p1", "type": "PASSAGE", "text": "Its [[1]]."},
            {"id": "c", "type": "CLOZE", "text": "1", "options": ["a"], "correctAnswer": "a"},
        ])])
        assert validate_practice_set(ps) == []

    def test_answer_key_not_an_option(self):
        ps = make([reading([{"id": "q", "type": "MCQ", "options": ["a", "b"], "correctAnswer": "c"}])])
        msgs = [i.message for i in validate_practice_set(ps)]
        assert msgs == ["correct answer is not one of the options"]

    def test_missing_options(self):
        ps = make([reading([{"id": "q", "type": "MCQ", "text": "?"}])])
        assert [i.message for i in validate_practice_set(ps)] == ["no options"]

    def test_segment_part_without_segments(self):
        ps = make([{"id": "l", "type": "LISTENING", "parts": [{"id": "lp"}]}])
        issues = validate_practice_set(ps)
        assert [(i.location, i.message) for i in issues] == [("part lp", "no segments")]

    def test_question_timer_outside_listening(self):
        ps = make([reading([{"id": "q", "type": "MCQ", "options": ["a"], "timerSeconds": 30}])])
        msgs = [i.message for i in validate_practice_set(ps)]
        assert msgs == ["per-question timer is ignored in READING"]
