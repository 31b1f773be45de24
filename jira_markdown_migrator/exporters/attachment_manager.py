"""Attachment downloader storing issue attachments under unique, sanitized names."""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..converters.link_processor import build_attachment_map as _pair_attachments
from ..converters.link_processor import is_image_file
from ..jira_client import JiraClientError
from ..models import JiraIssue

UNSAFE_FILENAME_PARTS = ('/', '\\', '..', ':')


class AttachmentDownloadError(Exception):
    """Raised when an attachment cannot be downloaded or saved."""

    def __init__(self, message: str, filename: str = '', downloaded: Optional[List[str]] = None):
        super().__init__(message)
        self.filename = filename
        self.downloaded = downloaded or []


def sanitize_filename(filename: str) -> str:
    """Replace path separators, ``..`` and ``:`` with ``_``."""
    for part in UNSAFE_FILENAME_PARTS:
        filename = filename.replace(part, '_')
    return filename


def stored_filename(issue_key: str, filename: str) -> str:
    """Name an attachment is stored under: ``{KEY}_{sanitized filename}``."""
    return f"{issue_key}_{sanitize_filename(filename)}"


def expected_attachment_files(issue: JiraIssue) -> List[str]:
    """Stored names the issue's attachments would have, for offline conversion."""
    return [stored_filename(issue.key, attachment.filename) for attachment in issue.attachments]


def build_attachment_map(issue: JiraIssue, stored_files: List[str]) -> Dict[str, str]:
    """
    Map each attachment's original filename to its stored filename.

    Pairing is by position, so ``stored_files`` must be in issue order; extra
    attachments beyond the stored list are left unmapped.
    """
    return _pair_attachments([attachment.filename for attachment in issue.attachments], stored_files)


class AttachmentDownloader:
    """
    Downloads every attachment of an issue into one flat directory.

    Files are named ``{KEY}_{sanitized filename}`` so attachments of different
    issues never collide. A file that already exists is not downloaded again.
    """

    def __init__(
        self,
        attachments_dir: Union[str, Path],
        client,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the attachment downloader.

        Args:
            attachments_dir: Directory receiving attachment files
            client: JiraClient used for authenticated downloads
            logger: Logger instance
        """
        self.attachments_dir = Path(attachments_dir)
        self.client = client
        self.logger = logger or logging.getLogger('jira_markdown_migrator.exporters.attachment_manager')

        self.stats = {
            'downloaded': 0,
            'skipped_existing': 0,
            'failed': 0,
        }

    def download_attachments(self, issue: JiraIssue) -> List[str]:
        """
        Download all attachments of an issue.

        Args:
            issue: Issue whose attachments should be saved

        Returns:
            Stored filenames in issue order

        Raises:
            AttachmentDownloadError: On the first attachment that fails; the
                names stored so far are available on the exception
        """
        if not issue.attachments:
            return []

        try:
            self.attachments_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise AttachmentDownloadError(
                f"Failed to create attachments directory {self.attachments_dir}: {e}"
            ) from e

        downloaded: List[str] = []
        for attachment in issue.attachments:
            filename = stored_filename(issue.key, attachment.filename)
            target = self.attachments_dir / filename

            if target.exists():
                self.logger.debug(f"Attachment already present, skipping: {filename}")
                self.stats['skipped_existing'] += 1
                downloaded.append(filename)
                continue

            try:
                self.client.download(attachment.content_url, str(target))
            except (JiraClientError, OSError) as e:
                self.stats['failed'] += 1
                # Never leave a truncated file behind, it would be skipped next run
                if target.exists():
                    target.unlink()
                raise AttachmentDownloadError(
                    f"Failed to download attachment {attachment.filename} of {issue.key}: {e}",
                    filename=attachment.filename,
                    downloaded=downloaded
                ) from e

            self.stats['downloaded'] += 1
            self.logger.info(f"Downloaded attachment {attachment.filename} -> {filename}")
            downloaded.append(filename)

        return downloaded


__all__ = [
    'AttachmentDownloader',
    'AttachmentDownloadError',
    'sanitize_filename',
    'stored_filename',
    'expected_attachment_files',
    'build_attachment_map',
    'is_image_file',
]
