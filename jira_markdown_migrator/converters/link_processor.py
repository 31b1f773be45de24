"""Link processor for Jira mentions, piped links and attachment image references."""

import logging
import os
import re
from typing import Dict, Mapping, Optional
from urllib.parse import quote

logger = logging.getLogger('jira_markdown_migrator.converters.link_processor')

MENTION_PATTERN = re.compile(r'\[~accountid:([^\]]+)\]')
LINK_PATTERN = re.compile(r'\[([^\]|]+)\|([^\]]+)\]')
IMAGE_REFERENCE_PATTERN = re.compile(r'!([^!|]+(?:\.[a-zA-Z0-9]+))(?:\|[^!]*)?!')
# Single-line form used to park references while inline decorations run.
IMAGE_SPAN_PATTERN = re.compile(r'!(?=\S)[^!|\n]+\.[a-zA-Z0-9]+(?:\|[^!\n]*)?!')

IMAGE_EXTENSIONS = frozenset({'.png', '.jpg', '.jpeg', '.gif', '.svg', '.webp', '.bmp', '.ico'})

ATTACHMENT_URL_PREFIX = '/attachments/'


def is_image_file(filename: str) -> bool:
    """Check whether a filename has one of the supported image extensions."""
    return os.path.splitext(filename)[1].lower() in IMAGE_EXTENSIONS


class LinkProcessor:
    """Rewrites account mentions, ``[text|url]`` links and ``!file!`` references."""

    def __init__(
        self,
        user_mapping: Optional[Mapping[str, str]] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize link processor.

        Args:
            user_mapping: Read-only account ID to display name mapping
            logger: Optional logger instance
        """
        self.user_mapping = user_mapping if user_mapping is not None else {}
        self.logger = logger or logging.getLogger('jira_markdown_migrator.converters.link_processor')

    def convert_mentions(self, text: str) -> str:
        """``[~accountid:ID]`` -> mention span with the display name, or the ID when unknown."""
        def _replace(match: re.Match) -> str:
            account_id = match.group(1)
            name = self.user_mapping.get(account_id)
            if not name:
                self.logger.debug(f"No display name for account {account_id}, using the ID")
                name = account_id
            return f'<span class="mention">@{name}</span>'

        return MENTION_PATTERN.sub(_replace, text)

    def convert_links(self, text: str) -> str:
        """``[text|url]`` -> ``[text](url)``."""
        return LINK_PATTERN.sub(r'[\1](\2)', text)

    def replace_image_references(self, text: str, attachment_map: Mapping[str, str]) -> str:
        """
        Rewrite ``!file.ext!`` and ``!file.ext|attrs!`` against downloaded attachments.

        References whose file is not in the attachment map are left as they
        are, so the map must be built before this runs.

        Args:
            text: Converted Markdown
            attachment_map: Original filename to stored filename

        Returns:
            Text with known references turned into Markdown images or links
        """
        def _replace(match: re.Match) -> str:
            original = match.group(1)
            stored = attachment_map.get(original)
            if stored is None:
                return match.group(0)

            url = ATTACHMENT_URL_PREFIX + quote(stored)
            if is_image_file(original):
                return f'![{original}]({url})'
            return f'[{original}]({url})'

        return IMAGE_REFERENCE_PATTERN.sub(_replace, text)


def build_attachment_map(original_names, stored_files) -> Dict[str, str]:
    """
    Pair attachment filenames with their stored names, position by position.

    Args:
        original_names: Filenames in issue order
        stored_files: Stored filenames for the attachments that were saved

    Returns:
        Mapping from original filename to stored filename
    """
    return dict(zip(original_names, stored_files))


__all__ = ['LinkProcessor', 'is_image_file', 'build_attachment_map', 'IMAGE_EXTENSIONS']
