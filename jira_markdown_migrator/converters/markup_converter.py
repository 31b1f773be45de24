"""
Jira wiki markup to Markdown conversion pipeline.

The conversion is a fixed sequence of regex passes. Passes that share
delimiter characters are kept apart with placeholder vaults: code is parked
before anything else runs, headings are parked while lists are rewritten, and
list lines and attachment references are parked while inline decorations
are resolved.
"""

import logging
import re
from typing import Any, Dict, Mapping, Optional

from .code_protector import CodeProtector
from .inline_converter import InlineConverter
from .link_processor import IMAGE_SPAN_PATTERN, LinkProcessor
from .list_converter import ListConverter
from .macro_converter import MacroConverter
from .placeholder_vault import PlaceholderVault
from .table_converter import TableConverter

LINE_BREAK_PATTERN = re.compile(r'(.+)\n')


class MarkupConverter:
    """Converts Jira wiki markup to Markdown."""

    def __init__(
        self,
        user_mapping: Optional[Mapping[str, str]] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize markup converter.

        Args:
            user_mapping: Account ID to display name mapping used for mentions
            logger: Optional logger instance
        """
        self.logger = logger or logging.getLogger('jira_markdown_migrator.converters.markup_converter')

        self.code_protector = CodeProtector(logger=self.logger)
        self.macro_converter = MacroConverter(logger=self.logger)
        self.table_converter = TableConverter(logger=self.logger)
        self.link_processor = LinkProcessor(user_mapping=user_mapping, logger=self.logger)
        self.list_converter = ListConverter(logger=self.logger)
        self.inline_converter = InlineConverter(logger=self.logger)

        self.last_stats: Dict[str, Any] = {}

    def convert(self, text: str) -> str:
        """
        Convert Jira wiki markup to Markdown.

        Malformed markup never raises; unmatched delimiters stay literal.

        Args:
            text: Jira wiki markup

        Returns:
            Markdown text
        """
        if not text:
            return text

        text, code_blocks, inline_code = self.code_protector.protect(text)

        text, macro_stats = self.macro_converter.convert(text)

        table_vault = PlaceholderVault('TABLE', logger=self.logger)
        text, tables = self.table_converter.extract_tables(text, table_vault)
        text = table_vault.restore(text)

        text = self.link_processor.convert_mentions(text)
        text = self.link_processor.convert_links(text)

        heading_vault = PlaceholderVault('HEADING', logger=self.logger)
        text = self.list_converter.protect_headings(text, heading_vault)
        text = self.list_converter.convert_lists(text)
        text = heading_vault.restore(text)

        list_vault = PlaceholderVault('LISTLINE', logger=self.logger)
        text = self.list_converter.protect_list_lines(text, list_vault)
        image_vault = PlaceholderVault('IMAGE', logger=self.logger)
        text = image_vault.protect(text, IMAGE_SPAN_PATTERN)
        text = self.inline_converter.convert(text)
        text = image_vault.restore(text)
        text = list_vault.restore(text)

        text = self.code_protector.restore(text, code_blocks, inline_code)

        text = LINE_BREAK_PATTERN.sub(r'\1  \n', text)

        self.last_stats = {
            'code_blocks': len(code_blocks),
            'inline_code': len(inline_code),
            'tables': len(tables),
            'headings': len(heading_vault),
            'images': len(image_vault),
            'macros': macro_stats,
        }
        self.logger.debug(f"Markup conversion stats: {self.last_stats}")
        return text


def convert_markup(text: str, user_mapping: Optional[Mapping[str, str]] = None) -> str:
    """Convenience wrapper converting one piece of markup with a fresh converter."""
    return MarkupConverter(user_mapping=user_mapping).convert(text)


__all__ = ['MarkupConverter', 'convert_markup']
