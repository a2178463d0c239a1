"""
Unit tests for inline-blank rendering.
"""
from celpip_prep.delivery.cloze import (
    BrokenPlaceholder,
    ClozeSlot,
    TextChunk,
    find_placeholders,
    render_cloze,
    render_cloze_html,
    slot_ids,
)
from celpip_prep.schemas.practice_set import Question

QUESTIONS = [
    Question(id="c1", type="CLOZE", text="1", options=["strength", "fear"], correct_answer="strength"),
    Question(id="c2", type="CLOZE", text="2", options=["fearless", "<lazy>"]),
    Question(id="m1", type="MCQ", text="3", options=["a"]),
]


class TestRenderCloze:
    def test_slots_in_reading_order(self):
        fragments = render_cloze("Known for its [[1]] and [[ 2 ]].", QUESTIONS)
        assert slot_ids(fragments) == ["1", "2"]
        assert fragments[0] == TextChunk("Known for its ")
        assert fragments[1] == ClozeSlot("1", "c1", ["strength", "fear"])
        assert fragments[-1] == TextChunk(".")

    def test_unmatched_token_is_broken_not_fatal(self):
        fragments = render_cloze("Missing [[9]] here", QUESTIONS)
        assert BrokenPlaceholder("9") in fragments
        assert slot_ids(fragments) == []

    def test_only_cloze_questions_bind(self):
        # m1's text is "3" but it is an MCQ
        fragments = render_cloze("[[3]]", QUESTIONS)
        assert fragments == [BrokenPlaceholder("3")]

    def test_plain_text(self):
        assert render_cloze("No blanks.", QUESTIONS) == [TextChunk("No blanks.")]
        assert render_cloze("", QUESTIONS) == []

    def test_find_placeholders(self):
        assert find_placeholders("[[a]] x [[b]] [[a]]") == ["a", "b", "a"]


class TestRenderClozeHtml:
    def test_select_with_selection(self):
        html = str(render_cloze_html("<p>Its [[1]].</p>", QUESTIONS, {"c1": "fear"}))
        assert html.startswith("<p>Its <select")
        assert 'name="c1"' in html
        assert '<option value="fear" selected>' in html

    def test_option_labels_escaped(self):
        html = str(render_cloze_html("[[2]]", QUESTIONS))
        assert "&lt;lazy&gt;" in html
        assert "<lazy>" not in html

    def test_broken_marker(self):
        html = str(render_cloze_html("[[x]]", QUESTIONS))
        assert 'class="cloze-missing"' in html
        assert "[[x?]]" in html
