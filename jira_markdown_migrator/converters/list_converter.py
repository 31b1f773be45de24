"""Heading and nested list conversion for Jira wiki markup."""

import logging
import re
from typing import Optional

from .placeholder_vault import PlaceholderVault

BULLET_LIST_PATTERN = re.compile(r'^\s*(\*{1,6})\s+(.+)$')
NUMBERED_LIST_PATTERN = re.compile(r'^\s*(#{1,6})\s+(.+)$')

# Line-anchored variants for scanning a whole document; leading and
# separating whitespace may not cross a line break.
HEADING_LINE_PATTERN = re.compile(r'^h([1-6])\.[^\S\n]+(.+)$', re.MULTILINE)
LIST_LINE_PATTERN = re.compile(r'^[^\S\n]*(?:\*{1,6}|#{1,6})[^\S\n]+.+$', re.MULTILINE)

INDENT_UNIT = '    '


def _render_heading(match: re.Match) -> str:
    return '#' * int(match.group(1)) + ' ' + match.group(2)


class ListConverter:
    """
    Converts ``h1.``..``h6.`` headings and ``*``/``#`` lists to Markdown.

    Each extra marker character adds one indent unit of four spaces. Numbered
    items are always rendered as ``1.`` and left for the Markdown renderer to
    number.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('jira_markdown_migrator.converters.list_converter')

    def protect_headings(self, text: str, vault: PlaceholderVault) -> str:
        """Convert heading lines and park the results in the vault."""
        return vault.protect(text, HEADING_LINE_PATTERN, _render_heading)

    def convert_lists(self, text: str) -> str:
        """
        Convert bullet and numbered list lines.

        Args:
            text: Wiki markup, headings already protected

        Returns:
            Text with list markers rewritten as Markdown
        """
        lines = []
        for line in text.split('\n'):
            match = BULLET_LIST_PATTERN.match(line)
            if match:
                indent = INDENT_UNIT * (len(match.group(1)) - 1)
                lines.append(f"{indent}- {match.group(2)}")
                continue

            match = NUMBERED_LIST_PATTERN.match(line)
            if match:
                indent = INDENT_UNIT * (len(match.group(1)) - 1)
                lines.append(f"{indent}1. {match.group(2)}")
                continue

            lines.append(line)
        return '\n'.join(lines)

    def protect_list_lines(self, text: str, vault: PlaceholderVault) -> str:
        """
        Park every line that still starts with a raw list marker.

        Restored ``#`` headings match the numbered marker too, so they are
        shielded from inline decoration as well.
        """
        return vault.protect(text, LIST_LINE_PATTERN)


__all__ = ['ListConverter', 'INDENT_UNIT']
