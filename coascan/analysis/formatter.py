"""Cosmetic normalisation of analysis text before markdown rendering.

The analysis service is inconsistent about blank lines around headings,
which renders as broken markdown.  :func:`normalize` fixes the whitespace
only; it is not a markdown parser.
"""

from __future__ import annotations

import re

_LINE_ENDINGS = re.compile(r"\r\n?")

# A markdown heading ("# " … "###### ") or a bold label line ("**Label:**",
# "**Label**:"), followed by one or more blank lines.
_HEADING_THEN_BLANKS = re.compile(
    r"^((?:#{1,6} |\*\*[^*\n]+?(?::\*\*|\*\*:)).*)\n(?:[ \t]*\n)+",
    re.MULTILINE,
)

_BLANK_RUN = re.compile(r"\n(?:[ \t]*\n){2,}")


def normalize(raw: str) -> str:
    """Return *raw* with normalised line endings and blank lines.

    Applying it twice gives the same result as applying it once.
    """
    # Trimmed up front as well, so a heading on the first line is seen as one.
    text = _LINE_ENDINGS.sub("\n", raw).strip()
    text = _HEADING_THEN_BLANKS.sub(r"\1\n", text)
    text = _BLANK_RUN.sub("\n\n", text)
    return text.strip()


def render(text: str, structured: bool = True) -> str:
    """Return *text* for display: normalised markdown, or untouched plain text."""
    return normalize(text) if structured else text
