"""Exporters writing issue pages, JSON caches and attachments to disk."""

from .attachment_manager import (
    AttachmentDownloader,
    AttachmentDownloadError,
    build_attachment_map,
    expected_attachment_files,
    sanitize_filename,
)
from .json_saver import JsonSaver
from .markdown_writer import MarkdownWriter, convert_project_description, get_issue_type_icon

__all__ = [
    'AttachmentDownloader',
    'AttachmentDownloadError',
    'build_attachment_map',
    'expected_attachment_files',
    'sanitize_filename',
    'JsonSaver',
    'MarkdownWriter',
    'convert_project_description',
    'get_issue_type_icon',
]
