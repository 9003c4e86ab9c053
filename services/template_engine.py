"""
Minimal {{placeholder}} substitution for prompt templates
"""
from typing import Mapping
import re

PLACEHOLDER_PATTERN = re.compile(r"\{\{([^}]+)\}\}")


def render(template: str, context: Mapping[str, str]) -> str:
    """
    Substitute every {{key}} found in context and blank out the rest, so raw
    template syntax never reaches the model or stored text. Unknown keys are
    not an error.
    """
    def _lookup(match: "re.Match") -> str:
        value = context.get(match.group(1))
        return "" if value is None else str(value)

    rendered = PLACEHOLDER_PATTERN.sub(_lookup, template)

    # Substituted values may carry braces of their own (user answers are free text)
    while PLACEHOLDER_PATTERN.search(rendered):
        rendered = PLACEHOLDER_PATTERN.sub("", rendered)
    return rendered
