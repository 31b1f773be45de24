"""Converters package for Jira wiki markup to Markdown conversion."""

from .code_protector import CodeProtector
from .inline_converter import InlineConverter
from .link_processor import LinkProcessor, is_image_file
from .list_converter import ListConverter
from .macro_converter import MacroConverter
from .markup_converter import MarkupConverter, convert_markup
from .placeholder_vault import PlaceholderVault
from .table_converter import TableConverter

__all__ = [
    'convert_markup',
    'MarkupConverter',
    'PlaceholderVault',
    'CodeProtector',
    'MacroConverter',
    'TableConverter',
    'ListConverter',
    'InlineConverter',
    'LinkProcessor',
    'is_image_file',
]
