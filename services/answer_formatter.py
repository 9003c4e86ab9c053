"""
Answer formatting for prompt inclusion
Turns {questionId: answer} maps into readable **Label**: value blocks
"""
from typing import Any, List, Mapping, Optional, Union
import re

# Closed set of answer value types accepted from worksheets
AnswerValue = Union[str, int, float, bool, List[str]]

NO_ANSWERS = "No answers provided."

# Pillar-number infixes such as "p1", "p12" carry no meaning for the reader
_PILLAR_INFIX = re.compile(r"p\d+")


def question_label(key: str) -> str:
    """'p3-biggest-challenge' -> '  biggest challenge' -> capitalised"""
    label = key.replace("-", " ")
    label = _PILLAR_INFIX.sub("", label)
    return label[:1].upper() + label[1:]


def format_value(value: AnswerValue) -> str:
    """Render one answer value; bool is checked before int since bool is an int subclass"""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value)
    return str(value)


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def format_answers(answers: Optional[Mapping[str, Any]]) -> str:
    """
    Format answers as Markdown-like blocks separated by blank lines.

    Returns:
        NO_ANSWERS when nothing survives filtering. Callers treat it as the
        empty sentinel, not as an error.
    """
    if not answers:
        return NO_ANSWERS

    blocks = []
    for key, value in answers.items():
        if is_blank(value):
            continue
        blocks.append(f"**{question_label(key)}**: {format_value(value)}")

    return "\n\n".join(blocks) if blocks else NO_ANSWERS
