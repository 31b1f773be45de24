"""Jira pipe-table extraction and Markdown table rendering."""

import logging
import re
from typing import List, Optional, Tuple

from .placeholder_vault import PlaceholderVault

SEPARATOR_CELL = '------'
MARKDOWN_SEPARATOR_PATTERN = re.compile(r'^\|(?:\s*:?-{3,}:?\s*\|)+$')


def is_header_line(line: str) -> bool:
    return line.startswith('||') and line.endswith('||')


def is_data_line(line: str) -> bool:
    return line.startswith('|') and not line.startswith('||')


def is_markdown_table_start(lines: List[str], i: int) -> bool:
    """True when ``lines[i]`` is a pipe row directly followed by a Markdown separator row."""
    return (
        lines[i].startswith('|')
        and i + 1 < len(lines)
        and MARKDOWN_SEPARATOR_PATTERN.match(lines[i + 1]) is not None
    )


def _render_row(cells: List[str]) -> str:
    return '| ' + ' | '.join(cells) + ' |'


def _split_cells(row: str, delimiter: str) -> List[str]:
    return [cell.replace('\n', '<br>') for cell in row.strip('|').split(delimiter)]


class TableConverter:
    """
    Finds headered (``||h||``) and headerless (``|d|``) Jira tables and
    renders them as Markdown tables.

    Rows may span several physical lines: a row that does not yet end in
    ``|`` keeps absorbing following lines, and the embedded line breaks come
    out as ``<br>``.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('jira_markdown_migrator.converters.table_converter')

    def convert(self, text: str) -> str:
        """Replace every table in the text with its Markdown rendering."""
        vault = PlaceholderVault('TABLE', logger=self.logger)
        text, tables = self.extract_tables(text, vault)
        if tables:
            self.logger.debug(f"Converting {len(tables)} table(s)")
        return vault.restore(text)

    def extract_tables(self, text: str, vault: PlaceholderVault) -> Tuple[str, List[str]]:
        """
        Cut tables out of the text.

        Each table is replaced by one placeholder line whose vault value is the
        rendered Markdown table. Markdown tables already in the text (a pipe
        row followed by a dash separator row) are left as they are.

        Args:
            text: Wiki markup
            vault: Vault receiving the rendered tables

        Returns:
            Tuple of (text with placeholders, raw tables in order)
        """
        lines = text.split('\n')
        result: List[str] = []
        tables: List[str] = []

        i = 0
        while i < len(lines):
            line = lines[i]

            if is_markdown_table_start(lines, i):
                while i < len(lines) and lines[i].startswith('|'):
                    result.append(lines[i])
                    i += 1
                continue

            if is_header_line(line):
                table_lines, i = self._collect_headered(lines, i)
            elif is_data_line(line):
                table_lines, i = self._collect_headerless(lines, i)
                if not table_lines:
                    continue
            else:
                result.append(line)
                i += 1
                continue

            table = '\n'.join(table_lines)
            tables.append(table)
            result.append(vault.stash(self.convert_table(table), avoid=text))

        return '\n'.join(result), tables

    def _collect_headered(self, lines: List[str], i: int) -> Tuple[List[str], int]:
        table_lines = [lines[i]]
        i += 1

        while i < len(lines):
            data_line = lines[i]
            if not is_data_line(data_line):
                # a new header, a blank line or plain text ends the table
                break

            complete = data_line
            i += 1
            while not complete.endswith('|') and i < len(lines):
                next_line = lines[i]
                if is_header_line(next_line):
                    break
                complete += '\n' + next_line
                i += 1

            if complete.endswith('|'):
                table_lines.append(complete)

        return table_lines, i

    def _collect_headerless(self, lines: List[str], i: int) -> Tuple[List[str], int]:
        table_lines: List[str] = []

        while i < len(lines):
            data_line = lines[i]
            if not is_data_line(data_line):
                break

            complete = data_line
            i += 1
            while not complete.endswith('|') and i < len(lines):
                next_line = lines[i]
                if next_line.startswith('|') or next_line == '':
                    break
                complete += '\n' + next_line
                i += 1

            if complete.endswith('|'):
                table_lines.append(complete)

        return table_lines, i

    def convert_table(self, table: str) -> str:
        """
        Render one extracted Jira table as a Markdown table.

        Args:
            table: Raw table lines (rows may contain embedded newlines)

        Returns:
            Markdown table
        """
        lines = table.split('\n')
        result: List[str] = []

        if lines and is_data_line(lines[0]):
            first_row = self._join_until(lines, 0, '|')[0]
            if first_row.endswith('|'):
                cell_count = len(first_row.strip('|').split('|'))
                result.append(_render_row([' '] * cell_count))
                result.append(_render_row([SEPARATOR_CELL] * cell_count))

        i = 0
        while i < len(lines):
            line = lines[i]

            if line.startswith('||'):
                complete, i = self._join_until(lines, i, '||')
                if complete.endswith('||'):
                    cells = _split_cells(complete, '||')
                    result.append(_render_row(cells))
                    result.append(_render_row([SEPARATOR_CELL] * len(cells)))
            elif line.startswith('|'):
                complete, i = self._join_until(lines, i, '|')
                if complete.endswith('|'):
                    result.append(_render_row(_split_cells(complete, '|')))
            else:
                i += 1

        return '\n'.join(result)

    @staticmethod
    def _join_until(lines: List[str], i: int, suffix: str) -> Tuple[str, int]:
        complete = lines[i]
        i += 1
        while not complete.endswith(suffix) and i < len(lines):
            complete += '\n' + lines[i]
            i += 1
        return complete, i


__all__ = ['TableConverter', 'is_header_line', 'is_data_line', 'is_markdown_table_start']
