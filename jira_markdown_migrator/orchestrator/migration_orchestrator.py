"""
Migration orchestrator for coordinating the export pipeline.

This module sequences the phases of an export: Fetch → Enrich (dev-status,
parent, children, remote links) → Download attachments → Save JSON → Write
Markdown. It also drives the offline JSON → Markdown conversion.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Union

from tqdm import tqdm

from ..config_loader import get_nested
from ..custom_fields import FieldNameCache, build_user_mapping_from_issue
from ..exporters import (
    AttachmentDownloader,
    AttachmentDownloadError,
    JsonSaver,
    MarkdownWriter,
    expected_attachment_files,
)
from ..jira_client import JiraClient, JiraClientError
from ..logger import ProgressTracker, log_section
from ..models import (
    ChildIssueInfo,
    DevStatusDetail,
    IssueData,
    JiraIssue,
    ParentIssueInfo,
    RemoteLink,
)
from .migration_report import MigrationReport

CHILD_SEARCH_LIMIT = 100


def sort_child_issues(children: List[ChildIssueInfo]) -> List[ChildIssueInfo]:
    """Order children by rank; children without a rank go last."""
    return sorted(children, key=lambda child: (child.rank == '', child.rank))


class MigrationOrchestrator:
    """Central coordinator for single-issue export, JQL batch export and offline conversion."""

    def __init__(
        self,
        config: Dict[str, Any],
        client: Optional[JiraClient] = None,
        logger: Optional[logging.Logger] = None,
        show_progress: bool = True
    ):
        """
        Initialize migration orchestrator.

        Args:
            config: Loaded configuration dictionary
            client: Jira client; created from config on first use when omitted
            logger: Optional logger instance
            show_progress: Show a tqdm progress bar for batches
        """
        self.config = config
        self._client = client
        self.logger = logger or logging.getLogger('jira_markdown_migrator.orchestrator')
        self.show_progress = show_progress

        self.markdown_dir = get_nested(config, 'output.markdown_dir', 'output/markdown')
        self.attachments_dir = get_nested(config, 'output.attachments_dir', 'output/attachments')
        self.json_dir = get_nested(config, 'output.json_dir', '')
        self.rank_field_id = get_nested(config, 'display.rank_field_id', 'customfield_10019')

        # Batch caches
        self._parent_cache: Dict[str, ParentIssueInfo] = {}
        self._children_cache: Dict[str, List[ChildIssueInfo]] = {}

    @property
    def client(self) -> JiraClient:
        if self._client is None:
            self._client = JiraClient.from_config(self.config)
        return self._client

    # ------------------------------------------------------------------
    # Online export
    # ------------------------------------------------------------------

    def export_issue(self, issue_key: str) -> MigrationReport:
        """
        Export one issue, its project index and (optionally) its JSON cache.

        Args:
            issue_key: Issue key such as ``PROJ-123``

        Returns:
            MigrationReport with the written Markdown path

        Raises:
            JiraClientError: If the issue cannot be fetched
            AttachmentDownloadError: If an attachment cannot be downloaded
            OSError: If the Markdown file cannot be written
        """
        log_section(f"Exporting issue {issue_key}")
        report = MigrationReport('issue', logger=self.logger)

        fields = self.load_fields()
        field_names = FieldNameCache.from_fields(fields)

        issue = self.client.get_issue(issue_key)
        self.logger.info(f"Fetched {issue.key}: {issue.summary}")

        dev_status = self.fetch_dev_status(issue)
        attachment_files = AttachmentDownloader(
            self.attachments_dir, self.client, logger=self.logger
        ).download_attachments(issue)
        if attachment_files:
            self.logger.info(f"Downloaded {len(attachment_files)} attachment(s)")

        user_mapping: Dict[str, str] = {}
        build_user_mapping_from_issue(issue, user_mapping)

        parent_info = self.resolve_parent_info(issue, use_cache=False)
        child_issues = self.collect_child_issues(issue.key, use_cache=False)
        remote_links = self.fetch_remote_links(issue)

        writer = MarkdownWriter(self.markdown_dir, user_mapping=user_mapping, config=self.config)
        self.write_project_index(writer, issue.project_key, report)

        self.save_json(IssueData(
            issue=issue,
            dev_status=dev_status,
            parent_info=parent_info,
            child_issues=child_issues,
            fields=fields
        ), report)

        output_path = writer.write_issue(
            issue,
            attachment_files=attachment_files,
            field_names=field_names,
            dev_status=dev_status,
            parent_info=parent_info,
            child_issues=child_issues,
            remote_links=remote_links
        )
        report.record_success(issue.key, output_path)
        return report.finish()

    def export_search(self, jql: str, max_results: int = 100) -> MigrationReport:
        """
        Export every issue matched by a JQL query.

        Failures of individual issues are logged and recorded; the batch
        continues with the next issue.

        Args:
            jql: JQL query
            max_results: Maximum number of issues to export

        Returns:
            MigrationReport for the batch

        Raises:
            ValueError: If the query is empty
            JiraClientError: If the search itself fails
        """
        if not jql:
            raise ValueError("No JQL query given and search.default_jql is not set")

        log_section("Exporting search results")
        report = MigrationReport('search', logger=self.logger)

        fields = self.load_fields()
        field_names = FieldNameCache.from_fields(fields)

        self.logger.info(f"Searching with JQL: {jql}")
        issue_keys = self.client.get_issues_by_jql(jql, max_results)
        self.logger.info(f"Found {len(issue_keys)} issue(s)")

        # Shared by the writer, so mentions resolve against every issue seen so far
        user_mapping: Dict[str, str] = {}
        writer = MarkdownWriter(self.markdown_dir, user_mapping=user_mapping, config=self.config)
        downloader = AttachmentDownloader(self.attachments_dir, self.client, logger=self.logger)
        indexed_projects: Set[str] = set()

        with ProgressTracker(total_items=len(issue_keys), item_type='issues') as tracker:
            for issue_key in tqdm(issue_keys, desc='Exporting issues', unit='issue',
                                  disable=not self.show_progress):
                try:
                    output_path = self._export_batch_issue(
                        issue_key, writer, downloader, user_mapping, fields, field_names, report
                    )
                except Exception as e:
                    self.logger.error(f"Failed to export {issue_key}: {e}",
                                      exc_info=self.logger.isEnabledFor(logging.DEBUG))
                    report.record_failure(issue_key, e)
                    tracker.advance(issue_key, success=False)
                    continue

                project_key = output_path.parent.name
                if project_key not in indexed_projects:
                    indexed_projects.add(project_key)
                    self.write_project_index(writer, project_key, report)

                report.record_success(issue_key, output_path)
                tracker.advance(issue_key)

        return report.finish()

    def _export_batch_issue(
        self,
        issue_key: str,
        writer: MarkdownWriter,
        downloader: AttachmentDownloader,
        user_mapping: Dict[str, str],
        fields: List[Dict[str, Any]],
        field_names: FieldNameCache,
        report: MigrationReport
    ) -> Path:
        issue = self.client.get_issue(issue_key)
        self.logger.debug(f"Fetched {issue.key}: {issue.summary}")
        build_user_mapping_from_issue(issue, user_mapping)

        try:
            attachment_files = downloader.download_attachments(issue)
        except AttachmentDownloadError as e:
            self.logger.warning(f"Attachments of {issue.key} skipped: {e}")
            report.record_warning(f"{issue.key}: {e}")
            attachment_files = []

        dev_status = self.fetch_dev_status(issue)
        parent_info = self.resolve_parent_info(issue)
        child_issues = self.collect_child_issues(issue.key)
        remote_links = self.fetch_remote_links(issue)

        self.save_json(IssueData(
            issue=issue,
            dev_status=dev_status,
            parent_info=parent_info,
            child_issues=child_issues,
            fields=fields
        ), report)

        return writer.write_issue(
            issue,
            attachment_files=attachment_files,
            field_names=field_names,
            dev_status=dev_status,
            parent_info=parent_info,
            child_issues=child_issues,
            remote_links=remote_links
        )

    # ------------------------------------------------------------------
    # Offline conversion
    # ------------------------------------------------------------------

    def convert_from_json(
        self,
        input_path: Union[str, Path],
        output_dir: Optional[Union[str, Path]] = None
    ) -> MigrationReport:
        """
        Regenerate Markdown from saved issue JSON without contacting Jira.

        Attachments are assumed to be downloaded already under their stored
        names.

        Args:
            input_path: JSON file or directory searched recursively
            output_dir: Markdown output directory (defaults to output.markdown_dir)

        Returns:
            MigrationReport for the conversion

        Raises:
            FileNotFoundError: If the input path does not exist
            ValueError: If no JSON files are found
        """
        json_files = JsonSaver.find_json_files(input_path)
        if not json_files:
            raise ValueError(f"No JSON files found in {input_path}")

        output_dir = output_dir or self.markdown_dir
        log_section("Converting JSON to Markdown")
        self.logger.info(f"Converting {len(json_files)} JSON file(s) into {output_dir}")

        report = MigrationReport('convert', logger=self.logger)
        loader = JsonSaver(self.json_dir or '.', logger=self.logger)

        with ProgressTracker(total_items=len(json_files), item_type='files') as tracker:
            for json_file in tqdm(json_files, desc='Converting', unit='file',
                                  disable=not self.show_progress):
                try:
                    data = loader.load_issue(json_file)

                    user_mapping: Dict[str, str] = {}
                    build_user_mapping_from_issue(data.issue, user_mapping)
                    writer = MarkdownWriter(output_dir, user_mapping=user_mapping, config=self.config)

                    output_path = writer.write_issue(
                        data.issue,
                        attachment_files=expected_attachment_files(data.issue),
                        field_names=FieldNameCache.from_fields(data.fields),
                        dev_status=data.dev_status,
                        parent_info=data.parent_info,
                        child_issues=data.child_issues
                    )
                except Exception as e:
                    self.logger.error(f"Failed to convert {json_file}: {e}",
                                      exc_info=self.logger.isEnabledFor(logging.DEBUG))
                    report.record_failure(str(json_file), e)
                    tracker.advance(json_file.name, success=False)
                    continue

                report.record_success(data.issue.key, output_path)
                tracker.advance(data.issue.key)

        return report.finish()

    # ------------------------------------------------------------------
    # Enrichment helpers
    # ------------------------------------------------------------------

    def load_fields(self) -> List[Dict[str, Any]]:
        """Field definitions for custom field names; [] when they cannot be fetched."""
        try:
            return self.client.get_field_list()
        except JiraClientError as e:
            self.logger.warning(f"Failed to fetch field list, custom fields use generic names: {e}")
            return []

    def fetch_dev_status(self, issue: JiraIssue) -> Optional[DevStatusDetail]:
        """Development information when enabled in config; None when disabled or unavailable."""
        if not get_nested(self.config, 'development.enabled', False) or not issue.id:
            return None
        try:
            return self.client.get_dev_status(issue.id, self.config)
        except JiraClientError as e:
            self.logger.warning(f"Failed to fetch development information for {issue.key}, skipping: {e}")
            return None

    def resolve_parent_info(self, issue: JiraIssue, use_cache: bool = True) -> Optional[ParentIssueInfo]:
        """
        Look up the parent's key and type.

        Args:
            issue: Issue whose parent is resolved
            use_cache: Reuse parents resolved earlier in this run

        Returns:
            ParentIssueInfo, or None if the issue has no parent or it cannot be fetched
        """
        parent_key = issue.parent_key
        if not parent_key:
            return None
        if use_cache and parent_key in self._parent_cache:
            return self._parent_cache[parent_key]

        try:
            parent = self.client.get_issue(parent_key)
        except JiraClientError as e:
            self.logger.warning(f"Failed to fetch parent issue {parent_key}: {e}")
            return None

        info = ParentIssueInfo(key=parent.key, type=parent.issue_type)
        if use_cache:
            self._parent_cache[parent_key] = info
        return info

    def collect_child_issues(self, issue_key: str, use_cache: bool = True) -> List[ChildIssueInfo]:
        """
        Child issues of an issue, sub-tasks excluded, sorted by rank.

        Args:
            issue_key: Parent issue key
            use_cache: Reuse children collected earlier in this run

        Returns:
            Sorted list of ChildIssueInfo
        """
        if use_cache and issue_key in self._children_cache:
            return self._children_cache[issue_key]

        children: List[ChildIssueInfo] = []
        for child_key in self.client.get_child_issues(issue_key, CHILD_SEARCH_LIMIT):
            try:
                child = self.client.get_issue(child_key)
            except JiraClientError as e:
                self.logger.warning(f"Failed to fetch child issue {child_key}: {e}")
                continue

            if child.is_subtask:
                continue

            rank = child.raw_fields.get(self.rank_field_id)
            children.append(ChildIssueInfo(
                key=child.key,
                summary=child.summary,
                status=child.status,
                type=child.issue_type,
                rank=rank if isinstance(rank, str) else ''
            ))

        children = sort_child_issues(children)
        if use_cache:
            self._children_cache[issue_key] = children
        return children

    def fetch_remote_links(self, issue: JiraIssue) -> List[RemoteLink]:
        try:
            return self.client.get_remote_links(issue.key)
        except JiraClientError as e:
            self.logger.warning(f"Failed to fetch remote links for {issue.key}: {e}")
            return []

    def write_project_index(self, writer: MarkdownWriter, project_key: str, report: MigrationReport) -> None:
        """Write the project's ``_index.md``; failures only produce a warning."""
        try:
            project = self.client.get_project(project_key)
            writer.write_project_index(project)
        except (JiraClientError, OSError) as e:
            self.logger.warning(f"Failed to write project index for {project_key}: {e}")
            report.record_warning(f"{project_key}: {e}")

    def save_json(self, data: IssueData, report: MigrationReport) -> Optional[Path]:
        """Save issue JSON when ``output.json_dir`` is set; failures only produce a warning."""
        if not self.json_dir:
            return None
        try:
            path = JsonSaver(self.json_dir, logger=self.logger).save_issue(data)
        except OSError as e:
            self.logger.warning(f"Failed to save JSON for {data.issue.key}: {e}")
            report.record_warning(f"{data.issue.key}: {e}")
            return None
        self.logger.info(f"Saved JSON: {path}")
        return path


__all__ = ['MigrationOrchestrator', 'sort_child_issues']
