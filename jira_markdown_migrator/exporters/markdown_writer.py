"""Markdown writer producing Hugo pages for Jira issues and projects."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote

import tomli_w
from bs4 import BeautifulSoup
from markdownify import MarkdownConverter as MarkdownifyConverter

from ..config_loader import get_nested
from ..converters import MarkupConverter
from ..custom_fields import (
    KIND_DEVELOPMENT,
    NOT_SET,
    CustomFieldValue,
    FieldNameCache,
    format_development_field_with_details,
    get_all_custom_fields,
    get_sorted_custom_field_keys,
)
from ..models import (
    ChildIssueInfo,
    DevStatusDetail,
    JiraIssue,
    JiraProject,
    JiraUser,
    ParentIssueInfo,
    RemoteLink,
    parse_timestamp,
)
from .attachment_manager import build_attachment_map

PROJECT_ICON = '📦'
DEFAULT_ISSUE_ICON = '📄'
ISSUE_TYPE_ICONS = {
    'Epic': '🟣',
    'エピック': '🟣',
    'Story': '📗',
    'ストーリー': '📗',
    'Task': '☑️',
    'タスク': '☑️',
    'Sub-task': '➡️',
    'Subtask': '➡️',
    'サブタスク': '➡️',
    'Bug': '🐞',
    'バグ': '🐞',
}

START_DATE_FIELD = 'customfield_10015'
DEFAULT_RANK_FIELD = 'customfield_10019'
PAGE_RIGHT_START = '<!-- PAGE_RIGHT_START -->'
PAGE_RIGHT_END = '<!-- PAGE_RIGHT_END -->'

DATETIME_FORMAT = '%Y-%m-%d %H:%M:%S'
COMMENT_DATE_FORMAT = '%Y-%m-%d %H:%M'
DATE_FORMAT = '%Y-%m-%d'

# Values that mean "nothing to show" for a formatted custom field
EMPTY_FIELD_RENDERINGS = ('', '{}', 'map[]')


def get_issue_type_icon(issue_type: str) -> str:
    """Icon shown before an issue key in breadcrumbs and child lists."""
    return ISSUE_TYPE_ICONS.get(issue_type, DEFAULT_ISSUE_ICON)


def format_hours(seconds: int) -> str:
    """``5400`` -> ``1.50h``; zero gives ''."""
    if not seconds:
        return ''
    return f"{seconds / 3600.0:.2f}h"


def _single_line(value: str) -> str:
    return value.replace('\r', '').replace('\n', ' ')


def _as_rfc3339(value: str) -> Optional[datetime]:
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    return parsed.replace(microsecond=0)


def _format_timestamp(value: str, fmt: str) -> str:
    """Format a Jira or RFC 3339 timestamp, keeping the raw text when unparseable."""
    parsed = parse_timestamp(value)
    if parsed is None:
        return value
    return parsed.strftime(fmt)


def _format_date(value: str) -> str:
    """Due dates come as ``YYYY-MM-DD`` or a full timestamp."""
    if not value:
        return ''
    try:
        return datetime.strptime(value[:10], DATE_FORMAT).strftime(DATE_FORMAT)
    except ValueError:
        return value


class ProjectDescriptionConverter(MarkdownifyConverter):
    """HTML to Markdown for project descriptions shown on the project index page."""

    def __init__(self, **kwargs):
        options = {
            'heading_style': 'ATX',
            'bullets': '-',
            'escape_asterisks': False,
            'escape_underscores': False,
        }
        options.update(kwargs)
        super().__init__(**options)


def convert_project_description(description: str) -> str:
    """
    Convert a project description to Markdown.

    Jira returns project descriptions either as plain text or as HTML. Plain
    text is kept as is; HTML goes through markdownify.
    """
    if not description:
        return ''
    if BeautifulSoup(description, 'html.parser').find() is None:
        return description.strip()
    soup = BeautifulSoup(description, 'lxml')
    return ProjectDescriptionConverter().convert(str(soup)).strip()


class MarkdownWriter:
    """
    Renders issues as Hugo content pages.

    Each issue becomes ``{output_dir}/{PROJECT}/{KEY}.md``:
    1. TOML front matter between ``+++`` lines
    2. Breadcrumb and title
    3. Right-hand column with basic and development information
    4. Description, child issues, Confluence pages and comments
    5. Subtasks, issue links, attachments and change history
    """

    def __init__(
        self,
        output_dir: Union[str, Path],
        user_mapping: Optional[Dict[str, str]] = None,
        config: Optional[Dict[str, Any]] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the Markdown writer.

        Args:
            output_dir: Root directory for Markdown output
            user_mapping: Account ID to display name mapping for mentions
            config: Loaded configuration (display and deletedUsers sections are used)
            logger: Logger instance
        """
        self.output_dir = Path(output_dir)
        self.user_mapping = user_mapping if user_mapping is not None else {}
        self.config = config or {}
        self.logger = logger or logging.getLogger('jira_markdown_migrator.exporters.markdown_writer')

        self.converter = MarkupConverter(user_mapping=self.user_mapping, logger=self.logger)
        self.hidden_custom_fields = set(get_nested(self.config, 'display.hidden_custom_fields', []) or [])
        self.rank_field_id = get_nested(self.config, 'display.rank_field_id', DEFAULT_RANK_FIELD)
        self.deleted_users = self.config.get('deletedUsers') or {}

    def write_issue(
        self,
        issue: JiraIssue,
        attachment_files: Optional[List[str]] = None,
        field_names: Optional[FieldNameCache] = None,
        dev_status: Optional[DevStatusDetail] = None,
        parent_info: Optional[ParentIssueInfo] = None,
        child_issues: Optional[List[ChildIssueInfo]] = None,
        remote_links: Optional[List[RemoteLink]] = None
    ) -> Path:
        """
        Write one issue page.

        Returns:
            Path of the written Markdown file

        Raises:
            OSError: If the project directory or file cannot be written
        """
        project_dir = self.output_dir / issue.project_key
        project_dir.mkdir(parents=True, exist_ok=True)

        content = self.generate_markdown(
            issue,
            attachment_files=attachment_files,
            field_names=field_names,
            dev_status=dev_status,
            parent_info=parent_info,
            child_issues=child_issues,
            remote_links=remote_links
        )

        output_path = project_dir / f"{issue.key}.md"
        output_path.write_text(content, encoding='utf-8')
        self.logger.info(f"Wrote {output_path}")
        return output_path

    def write_project_index(self, project: JiraProject) -> Path:
        """
        Write ``{output_dir}/{PROJECT}/_index.md`` for a project.

        Raises:
            OSError: If the project directory or file cannot be written
        """
        project_dir = self.output_dir / project.key
        project_dir.mkdir(parents=True, exist_ok=True)

        front_matter = {
            'title': f"{PROJECT_ICON}{_single_line(project.name)}",
            'project_key': project.key,
            'project_name': _single_line(project.name),
            'type': 'project',
        }

        parts = [self._render_front_matter(front_matter), f"# {project.name}\n\n"]
        description = convert_project_description(project.description)
        if description:
            parts.append(description + "\n\n")

        index_path = project_dir / '_index.md'
        index_path.write_text(''.join(parts), encoding='utf-8')
        self.logger.info(f"Wrote project index {index_path}")
        return index_path

    def generate_markdown(
        self,
        issue: JiraIssue,
        attachment_files: Optional[List[str]] = None,
        field_names: Optional[FieldNameCache] = None,
        dev_status: Optional[DevStatusDetail] = None,
        parent_info: Optional[ParentIssueInfo] = None,
        child_issues: Optional[List[ChildIssueInfo]] = None,
        remote_links: Optional[List[RemoteLink]] = None
    ) -> str:
        """
        Render the complete page for an issue.

        Args:
            issue: Issue to render
            attachment_files: Stored attachment filenames in issue order
            field_names: Field ID to name cache for custom field labels
            dev_status: Branches and pull requests, if fetched
            parent_info: Parent key and type for breadcrumb and front matter
            child_issues: Child issues, already sorted by rank
            remote_links: Remote links of the issue

        Returns:
            Markdown page content
        """
        attachment_files = attachment_files or []
        field_names = field_names if field_names is not None else FieldNameCache()
        attachment_map = build_attachment_map(issue, attachment_files)

        sections = [
            self._generate_front_matter(issue, parent_info),
            self._generate_title(issue, parent_info),
            f"{PAGE_RIGHT_START}\n\n",
            self._generate_basic_info(issue, field_names, dev_status),
            self._generate_development_info(dev_status),
            f"{PAGE_RIGHT_END}\n\n",
            self._generate_description(issue, attachment_map),
            self._generate_child_issues(child_issues or []),
            self._generate_confluence_links(remote_links or []),
            self._generate_comments(issue, attachment_map),
            self._generate_subtasks(issue),
            self._generate_issue_links(issue),
            self._generate_attachments(attachment_files),
            self._generate_change_history(issue),
        ]
        return ''.join(sections)

    def get_user(self, user: Optional[JiraUser]) -> str:
        """Display name of a user; deleted accounts resolve through ``deletedUsers``."""
        if user is None:
            return NOT_SET
        if user.account_type == 'unknown' and user.account_id:
            mapped = self.deleted_users.get(user.account_id)
            if mapped:
                return mapped
        return user.display_name

    def convert_markup(self, text: str, attachment_map: Dict[str, str]) -> str:
        """Convert wiki markup and point image references at stored attachments."""
        markdown = self.converter.convert(text)
        return self.converter.link_processor.replace_image_references(markdown, attachment_map)

    @staticmethod
    def _render_front_matter(data: Dict[str, Any]) -> str:
        return f"+++\n{tomli_w.dumps(data)}+++\n\n"

    def _generate_front_matter(self, issue: JiraIssue, parent_info: Optional[ParentIssueInfo]) -> str:
        custom_fields = get_all_custom_fields(issue)

        data: Dict[str, Any] = {'title': _single_line(issue.summary)}

        created = _as_rfc3339(issue.created)
        if created is not None:
            data['date'] = created
        updated = _as_rfc3339(issue.updated)
        if updated is not None:
            data['lastmod'] = updated

        data.update({
            'project': issue.project_key,
            'issue_key': issue.key,
            'type': 'page',
            'issue_type': issue.issue_type,
        })

        if parent_info is not None and parent_info.key:
            data['parent'] = parent_info.key
            data['parent_issue_type'] = parent_info.type

        rank = self._front_matter_value(custom_fields.get(self.rank_field_id))
        if rank:
            data['rank'] = _single_line(rank)

        if issue.labels:
            data['tags'] = [_single_line(label) for label in issue.labels]

        data['status'] = issue.status
        data['assignee'] = self.get_user(issue.assignee)

        start_date = self._front_matter_value(custom_fields.get(START_DATE_FIELD))
        if start_date:
            data['startdate'] = start_date

        if issue.duedate:
            data['duedate'] = _format_date(issue.duedate)

        if issue.fix_versions:
            data['fix_versions'] = [_single_line(v) for v in issue.fix_versions]
        if issue.affected_versions:
            data['affected_versions'] = [_single_line(v) for v in issue.affected_versions]

        return self._render_front_matter(data)

    @staticmethod
    def _front_matter_value(raw: Any) -> str:
        value = CustomFieldValue.decode(raw)
        if value.is_empty():
            return ''
        return value.format()

    def _generate_title(self, issue: JiraIssue, parent_info: Optional[ParentIssueInfo]) -> str:
        project_link = f"[{PROJECT_ICON} {issue.project_name}](../)"
        issue_link = f"[{get_issue_type_icon(issue.issue_type)} {issue.key}](../{issue.key}/)"

        if parent_info is not None and parent_info.key:
            parent_link = (
                f"[{get_issue_type_icon(parent_info.type)} {parent_info.key}](../{parent_info.key}/)"
            )
            breadcrumb = f"{project_link} / {parent_link} / {issue_link}"
        else:
            breadcrumb = f"{project_link} / {issue_link}"

        return f"{breadcrumb}\n\n# {issue.summary}\n\n"

    def _generate_basic_info(
        self,
        issue: JiraIssue,
        field_names: FieldNameCache,
        dev_status: Optional[DevStatusDetail]
    ) -> str:
        lines = [
            "## Basic Information\n",
            f"- **Key**: {issue.key}",
            f"- **Type**: {issue.issue_type}",
            f"- **Status**: {issue.status}",
            f"- **Priority**: {issue.priority or NOT_SET}",
            f"- **Assignee**: {self.get_user(issue.assignee)}",
            f"- **Reporter**: {self.get_user(issue.reporter)}",
            f"- **Created**: {_format_timestamp(issue.created, DATETIME_FORMAT)}",
            f"- **Updated**: {_format_timestamp(issue.updated, DATETIME_FORMAT)}",
        ]

        custom_fields = get_all_custom_fields(issue)

        start_date = self._front_matter_value(custom_fields.get(START_DATE_FIELD))
        if start_date:
            lines.append(f"- **{field_names.get_field_name(START_DATE_FIELD)}**: {start_date}")

        if issue.duedate:
            lines.append(f"- **Due Date**: {_format_date(issue.duedate)}")
        if issue.labels:
            lines.append(f"- **Labels**: {', '.join(issue.labels)}")
        if issue.fix_versions:
            lines.append(f"- **Fix Versions**: {', '.join(issue.fix_versions)}")
        if issue.affected_versions:
            lines.append(f"- **Affected Versions**: {', '.join(issue.affected_versions)}")
        if issue.parent_key:
            lines.append(f"- **Parent**: [{issue.parent_key}](../{issue.parent_key}/)")

        time_tracking = (
            ('Original Estimate', issue.original_estimate_seconds),
            ('Remaining Estimate', issue.remaining_estimate_seconds),
            ('Time Spent', issue.time_spent_seconds),
            ('Σ Original Estimate', issue.aggregate_original_estimate_seconds),
            ('Σ Remaining Estimate', issue.aggregate_remaining_estimate_seconds),
            ('Σ Time Spent', issue.aggregate_time_spent_seconds),
        )
        for label, seconds in time_tracking:
            if seconds and seconds > 0:
                lines.append(f"- **{label}**: {format_hours(seconds)}")

        if issue.resolution:
            lines.append(f"- **Resolution**: {issue.resolution}")

        for key in get_sorted_custom_field_keys(custom_fields):
            if key in self.hidden_custom_fields:
                continue

            value = CustomFieldValue.decode(custom_fields[key])
            if value.is_empty():
                continue

            if value.kind == KIND_DEVELOPMENT:
                rendered = format_development_field_with_details(value.value, dev_status)
            else:
                rendered = value.format()

            if rendered in EMPTY_FIELD_RENDERINGS:
                continue
            lines.append(f"- **{field_names.get_field_name(key)}**: {rendered}")

        return '\n'.join(lines) + "\n\n"

    @staticmethod
    def _generate_development_info(dev_status: Optional[DevStatusDetail]) -> str:
        if dev_status is None or not dev_status.has_details:
            return ''

        parts = ["## Development\n\n"]
        for item in dev_status.detail:
            if item.branches:
                parts.append("### Branches\n\n")
                for branch in item.branches:
                    parts.append(f"- [`{branch.name}`]({branch.url})\n")
                    commit = branch.last_commit
                    if commit is not None and commit.display_id:
                        line = f"  - Last commit: [`{commit.display_id}`]({commit.url})"
                        committed_at = parse_timestamp(commit.timestamp)
                        if committed_at is not None:
                            line += f" ({committed_at.strftime(DATETIME_FORMAT)})"
                        parts.append(line + "\n")
                parts.append("\n")

            if item.pull_requests:
                parts.append("### Pull Requests\n\n")
                for pull_request in item.pull_requests:
                    parts.append(f"- [{pull_request.name}]({pull_request.url})\n")
                    if pull_request.author:
                        parts.append(f"  - Author: {pull_request.author}\n")
                    if pull_request.source_branch:
                        parts.append(f"  - Branch: `{pull_request.source_branch}`\n")
                    if pull_request.status:
                        parts.append(f"  - Status: {pull_request.status}\n")
                parts.append("\n")

        return ''.join(parts)

    def _generate_description(self, issue: JiraIssue, attachment_map: Dict[str, str]) -> str:
        if not issue.description:
            return ''
        return f"## Description\n\n{self.convert_markup(issue.description, attachment_map)}\n\n"

    @staticmethod
    def _generate_child_issues(child_issues: List[ChildIssueInfo]) -> str:
        if not child_issues:
            return ''

        parts = ["## Child Issues\n\n"]
        for child in child_issues:
            line = f"- {get_issue_type_icon(child.type)} **[{child.key}](../{child.key}/)**: {child.summary}"
            if child.status:
                line += f" [{child.status}]"
            parts.append(line + "\n")
        parts.append("\n")
        return ''.join(parts)

    @staticmethod
    def _generate_confluence_links(remote_links: List[RemoteLink]) -> str:
        confluence_links = [link for link in remote_links if link.is_confluence]
        if not confluence_links:
            return ''

        parts = ["## Confluence Content\n\n"]
        for link in confluence_links:
            if link.has_object:
                parts.append(f"- [{link.title or 'Confluence Page'}]({link.url})\n")
        parts.append("\n")
        return ''.join(parts)

    def _generate_comments(self, issue: JiraIssue, attachment_map: Dict[str, str]) -> str:
        if not issue.comments:
            return ''

        parts = ["## Comments\n\n"]
        # Oldest first, as returned by the API
        for comment in issue.comments:
            header = f"{self.get_user(comment.author)} {_format_timestamp(comment.created, COMMENT_DATE_FORMAT)}"
            if comment.is_reply:
                header = f"↩️ {header}"
            parts.append(f"{header}\n\n---\n\n")
            parts.append(self.convert_markup(comment.body, attachment_map))
            parts.append("\n\n")
        return ''.join(parts)

    @staticmethod
    def _generate_subtasks(issue: JiraIssue) -> str:
        if not issue.subtasks:
            return ''

        parts = ["## Subtasks\n\n"]
        for subtask in issue.subtasks:
            line = f"- **[{subtask.key}](../{subtask.key}/)**: {subtask.summary}"
            if subtask.status:
                line += f" [{subtask.status}]"
            parts.append(line + "\n")
        parts.append("\n")
        return ''.join(parts)

    @staticmethod
    def _generate_issue_links(issue: JiraIssue) -> str:
        if not issue.issue_links:
            return ''

        def describe(label, target) -> str:
            line = f"- **{label}**: [{target.key}](../{target.key}/)"
            if target.has_fields:
                line += f" - {target.summary}"
                if target.status:
                    line += f" [{target.status}]"
            return line + "\n"

        parts = ["## Issue Links\n\n"]
        for link in issue.issue_links:
            if link.outward_issue is not None:
                parts.append(describe(link.outward, link.outward_issue))
            if link.inward_issue is not None:
                parts.append(describe(link.inward, link.inward_issue))
        parts.append("\n")
        return ''.join(parts)

    @staticmethod
    def _generate_attachments(attachment_files: List[str]) -> str:
        if not attachment_files:
            return ''

        parts = ["## Attachments\n\n"]
        for filename in attachment_files:
            # Pages live two levels below the site root, next to attachments/
            parts.append(f"- [{filename}](../../attachments/{quote(filename)})\n")
        parts.append("\n")
        return ''.join(parts)

    def _generate_change_history(self, issue: JiraIssue) -> str:
        if not issue.changelog:
            return ''

        parts = ["## Change History\n\n"]
        for number, history in enumerate(issue.changelog, start=1):
            parts.append(f"### Change {number}\n\n")
            parts.append(f"- **Changed by**: {self.get_user(history.author)}\n")
            parts.append(f"- **Date**: {_format_timestamp(history.created, DATETIME_FORMAT)}\n\n")
            for item in history.items:
                parts.append(f"- **{item.field}**: `{item.from_string}` → `{item.to_string}`\n")
            parts.append("\n")
        return ''.join(parts)


__all__ = [
    'MarkdownWriter',
    'ProjectDescriptionConverter',
    'convert_project_description',
    'get_issue_type_icon',
    'format_hours',
]
