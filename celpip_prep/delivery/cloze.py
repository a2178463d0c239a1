from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Union

from jinja2 import Environment
from markupsafe import Markup

from celpip_prep.schemas.practice_set import Question, QuestionType

# [[1]], [[ q7 ]] ...
CLOZE_TOKEN = re.compile(r"\[\[\s*(\w+)\s*\]\]")


@dataclass(frozen=True)
class TextChunk:
    text: str


@dataclass(frozen=True)
class ClozeSlot:
    placeholder: str
    question_id: str
    options: List[str]


@dataclass(frozen=True)
class BrokenPlaceholder:
    placeholder: str


Fragment = Union[TextChunk, ClozeSlot, BrokenPlaceholder]


def find_placeholders(text: str) -> List[str]:
    return [m.group(1) for m in CLOZE_TOKEN.finditer(text or "")]


def cloze_question(placeholder: str, questions: Iterable[Question]) -> Optional[Question]:
    return next(
        (q for q in questions if q.type == QuestionType.CLOZE and q.text.strip() == placeholder),
        None,
    )


def render_cloze(text: str, questions: Iterable[Question]) -> List[Fragment]:
    """
    Splits authored text on [[id]] tokens. Each token binds to the CLOZE
    question whose text equals the id; tokens without one come back as
    BrokenPlaceholder so the screen can flag them instead of failing.
    """
    questions = list(questions)
    fragments: List[Fragment] = []
    pos = 0
    for match in CLOZE_TOKEN.finditer(text or ""):
        if match.start() > pos:
            fragments.append(TextChunk(text[pos:match.start()]))
        placeholder = match.group(1)
        question = cloze_question(placeholder, questions)
        if question is None:
            fragments.append(BrokenPlaceholder(placeholder))
        else:
            fragments.append(ClozeSlot(placeholder, question.id, list(question.options)))
        pos = match.end()
    if text and pos < len(text):
        fragments.append(TextChunk(text[pos:]))
    return fragments


def slot_ids(fragments: Iterable[Fragment]) -> List[str]:
    """Placeholder ids of the interactive slots, left to right."""
    return [f.placeholder for f in fragments if isinstance(f, ClozeSlot)]


_env = Environment(autoescape=True)

_SLOT_TEMPLATE = _env.from_string(
    '<select class="cloze-slot" name="{{ slot.question_id }}" data-placeholder="{{ slot.placeholder }}">'
    '<option value="">[{{ slot.placeholder }}]</option>'
    '{% for opt in slot.options %}'
    '<option value="{{ opt }}"{% if opt == selected %} selected{% endif %}>{{ opt }}</option>'
    '{% endfor %}</select>'
)

_BROKEN_TEMPLATE = _env.from_string(
    '<span class="cloze-missing" title="Missing Question Definition">[[{{ placeholder }}?]]</span>'
)


def render_cloze_html(text: str, questions: Iterable[Question], answers=None) -> Markup:
    """HTML for a passage with its blanks turned into dropdowns.

    Authored markup passes through untouched; only option labels and ids
    are escaped.
    """
    answers = answers or {}
    out: List[str] = []
    for fragment in render_cloze(text, questions):
        if isinstance(fragment, TextChunk):
            out.append(fragment.text)
        elif isinstance(fragment, ClozeSlot):
            out.append(_SLOT_TEMPLATE.render(slot=fragment, selected=answers.get(fragment.question_id, "")))
        else:
            out.append(_BROKEN_TEMPLATE.render(placeholder=fragment.placeholder))
    return Markup("".join(out))
