"""
Inline decoration conversion: bold, italic, strikethrough, superscript, subscript.

Jira and Markdown share delimiter characters, so every candidate span is
checked against a rejection rule before it is rewritten. Resolution works line
by line: find the first acceptable candidate scanning left to right, rewrite
it, scan the line again, and stop once nothing changes.
"""

import logging
import re
from typing import Callable, Optional, Pattern

from .placeholder_vault import PlaceholderVault

BOLD_PATTERN = re.compile(r'\*([^*\n]+?)\*')
ITALIC_PATTERN = re.compile(r'_([^_\n]+?)_')
STRIKETHROUGH_PATTERN = re.compile(r'-([^- \n]+?)-')
SUPERSCRIPT_PATTERN = re.compile(r'\^([^^\n]+)\^')
SUBSCRIPT_PATTERN = re.compile(r'~([^~\n]+?)~')
STRIKE_SPAN_PATTERN = re.compile(r'~~[^~]*~~')

# Characters that make a hyphen part of a word, date or URL
STRIKE_BOUNDARY_SYMBOLS = frozenset('-/:;')

Acceptor = Callable[[str, re.Match], bool]


def _is_ascii_alnum(char: str) -> bool:
    return char.isascii() and char.isalnum()


def _not_doubled(delimiter: str) -> Acceptor:
    """Accept a candidate unless the delimiter touches another copy of itself."""
    def accept(line: str, match: re.Match) -> bool:
        start, end = match.span()
        if start > 0 and line[start - 1] == delimiter:
            return False
        if end < len(line) and line[end] == delimiter:
            return False
        return True
    return accept


def _accept_strikethrough(line: str, match: re.Match) -> bool:
    start, end = match.span()
    content = match.group(1)

    if not content.strip():
        return False
    # "- item" at the start of a line is a list marker
    if start == 0 and content.startswith(' '):
        return False

    if start > 0:
        before = line[start - 1]
        if _is_ascii_alnum(before) or before in STRIKE_BOUNDARY_SYMBOLS:
            return False
    if end < len(line):
        after = line[end]
        if _is_ascii_alnum(after) or after in STRIKE_BOUNDARY_SYMBOLS:
            return False

    if line[max(0, start - 2):start] == '~~' or line[end:end + 2] == '~~':
        return False
    return True


def _first_acceptable(line: str, pattern: Pattern[str], accept: Acceptor) -> Optional[re.Match]:
    # Every start position is tried, so a rejected candidate never hides an
    # acceptable one that overlaps it.
    for pos in range(len(line)):
        match = pattern.match(line, pos)
        if match and accept(line, match):
            return match
    return None


def _rewrite_lines(text: str, pattern: Pattern[str], accept: Acceptor, wrap: str) -> str:
    lines = []
    for line in text.split('\n'):
        while True:
            match = _first_acceptable(line, pattern, accept)
            if match is None:
                break
            line = line[:match.start()] + wrap + match.group(1) + wrap + line[match.end():]
        lines.append(line)
    return '\n'.join(lines)


def convert_bold(text: str) -> str:
    """``*text*`` -> ``**text**``; spans touching another ``*`` are left alone."""
    return _rewrite_lines(text, BOLD_PATTERN, _not_doubled('*'), '**')


def convert_italic(text: str) -> str:
    """``_text_`` -> ``*text*``; spans touching another ``_`` are left alone."""
    return _rewrite_lines(text, ITALIC_PATTERN, _not_doubled('_'), '*')


def convert_strikethrough(text: str) -> str:
    """
    ``-text-`` -> ``~~text~~``.

    Hyphens next to ASCII letters, digits or ``-/:;`` are treated as part of a
    word, date or URL and left untouched.
    """
    return _rewrite_lines(text, STRIKETHROUGH_PATTERN, _accept_strikethrough, '~~')


def convert_superscript(text: str) -> str:
    return SUPERSCRIPT_PATTERN.sub(r'<sup>\1</sup>', text)


def convert_subscript(text: str, logger: Optional[logging.Logger] = None) -> str:
    """``~text~`` -> ``<sub>text</sub>`` without touching ``~~strike~~`` spans."""
    vault = PlaceholderVault('STRIKE', logger=logger)
    text = vault.protect(text, STRIKE_SPAN_PATTERN)
    text = SUBSCRIPT_PATTERN.sub(r'<sub>\1</sub>', text)
    return vault.restore(text)


class InlineConverter:
    """Applies all inline decorations in their fixed order."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('jira_markdown_migrator.converters.inline_converter')

    def convert(self, text: str) -> str:
        text = convert_bold(text)
        text = convert_italic(text)
        text = convert_strikethrough(text)
        text = convert_superscript(text)
        return convert_subscript(text, logger=self.logger)


__all__ = [
    'InlineConverter',
    'convert_bold',
    'convert_italic',
    'convert_strikethrough',
    'convert_superscript',
    'convert_subscript',
]
