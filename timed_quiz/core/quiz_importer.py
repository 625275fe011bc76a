"""Utilities for importing questions from pasted or file-based plain text.

Format (blocks separated by blank lines):

    Q1. What is $2 + 2$?
    A) 3
    B) 4
    C) 5
    D) 22
    Answer: B
    TIMELIMIT: 30

    Q2. Explain photosynthesis.
    Plants convert light into chemical energy.
    MARKS: 10

The first line of a block is the prompt (markdown). Lines starting with a
letter A-D are options; ``Answer:`` gives the key as a letter or as the option
text (defaults to the first option). Blocks with all four options become
multiple-choice questions; any other block becomes a theory question whose
remaining lines (or the answer) form the model answer. ``TIMELIMIT:`` sets a
per-question budget in seconds and ``MARKS:`` the worth of a theory question.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import re

from timed_quiz.constants.quiz_constants import DEFAULT_THEORY_MARKS, MCQ_MARKS, MCQ_OPTION_COUNT
from timed_quiz.core.markdown_renderer import renderer
from timed_quiz.core.models import QuestionType, QuizQuestion


class QuizImportError(Exception):
    """Raised when question text cannot be parsed."""


@dataclass(slots=True)
class ImportedQuestions:
    """Container for imported questions and where they came from."""

    source_path: Path | None
    questions: list[QuizQuestion]


_BLOCK_SPLIT = re.compile(r"\n\s*\n")
_PROMPT_PREFIX = re.compile(r"^q\d*[).\s:-]+", re.IGNORECASE)
_OPTION_LINE = re.compile(r"^([A-Da-d])\s*[)\].:-]\s*(.+)$")
_ANSWER_LINE = re.compile(r"^answer[\s:-]+(.+)$", re.IGNORECASE)
_SETTING_LINE = re.compile(r"^(TIMELIMIT|MARKS)\s*:\s*(.*)$", re.IGNORECASE)
_OPTION_LETTERS = "ABCD"


def load_questions_from_file(file_path: Path) -> ImportedQuestions:
    text = file_path.read_text(encoding="utf-8")
    questions = parse_pasted_questions(text)
    if not questions:
        raise QuizImportError("Quiz file did not contain any questions.")
    return ImportedQuestions(source_path=file_path, questions=questions)


def parse_pasted_questions(raw_text: str) -> list[QuizQuestion]:
    blocks = [b.strip() for b in _BLOCK_SPLIT.split(raw_text.replace("\r\n", "\n"))]
    questions: list[QuizQuestion] = []
    for block in blocks:
        if not block:
            continue
        question = _parse_block(block)
        if question is not None:
            questions.append(question)
    return questions


def _parse_block(block: str) -> QuizQuestion | None:
    lines = [line.strip() for line in block.splitlines() if line.strip()]
    prompt = _PROMPT_PREFIX.sub("", lines[0]).strip()
    if not prompt:
        return None

    options = [""] * MCQ_OPTION_COUNT
    answer_raw = ""
    theory_parts: list[str] = []
    time_limit = 0
    marks: int | None = None

    for line in lines[1:]:
        setting = _SETTING_LINE.match(line)
        if setting:
            value = _parse_positive_int(setting.group(1).upper(), setting.group(2))
            if setting.group(1).upper() == "TIMELIMIT":
                time_limit = value
            else:
                marks = value
            continue
        option = _OPTION_LINE.match(line)
        if option:
            options[_OPTION_LETTERS.index(option.group(1).upper())] = option.group(2).strip()
            continue
        answer = _ANSWER_LINE.match(line)
        if answer:
            answer_raw = answer.group(1).strip()
            continue
        theory_parts.append(line)

    prompt_html = renderer.render_fragment(prompt)
    if all(options):
        return QuizQuestion(
            question_type=QuestionType.MCQ,
            prompt_html=prompt_html,
            options=options,
            correct_index=_resolve_answer_key(answer_raw, options),
            max_marks=MCQ_MARKS,
            question_time_sec=time_limit,
        )
    return QuizQuestion(
        question_type=QuestionType.THEORY,
        prompt_html=prompt_html,
        max_marks=marks or DEFAULT_THEORY_MARKS,
        question_time_sec=time_limit,
        model_answer=" ".join(theory_parts) or answer_raw,
    )


def _resolve_answer_key(answer_raw: str, options: list[str]) -> int:
    if len(answer_raw) == 1 and answer_raw.upper() in _OPTION_LETTERS:
        return _OPTION_LETTERS.index(answer_raw.upper()) + 1
    if answer_raw in options:
        return options.index(answer_raw) + 1
    return 1


def _parse_positive_int(name: str, raw_value: str) -> int:
    try:
        value = int(raw_value.strip())
    except ValueError as exc:
        raise QuizImportError(f"{name} must be an integer.") from exc
    if value <= 0:
        raise QuizImportError(f"{name} must be a positive integer.")
    return value
