"""Data models for Jira to Markdown migration pipeline."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

logger = logging.getLogger('jira_markdown_migrator')

JIRA_TIMESTAMP_FORMAT = '%Y-%m-%dT%H:%M:%S.%f%z'

SUBTASK_TYPE_NAMES = frozenset({'Sub-task', 'Subtask', 'サブタスク'})


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a Jira timestamp.

    Accepts the Jira form ``2025-01-02T10:00:00.000+0900`` and RFC 3339
    (``2025-01-02T10:00:00Z``, ``2025-01-02T10:00:00+09:00``).

    Args:
        value: Timestamp string

    Returns:
        Timezone-aware datetime, or None if the value is empty or unparseable
    """
    if not value:
        return None
    try:
        return datetime.strptime(value, JIRA_TIMESTAMP_FORMAT)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        logger.debug(f"Unparseable timestamp: {value}")
        return None


def _name_of(data: Optional[Dict[str, Any]]) -> str:
    return (data or {}).get('name') or ''


@dataclass
class JiraUser:
    """Represents a Jira user reference."""

    account_id: str
    display_name: str
    email_address: str = ''
    account_type: str = ''

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['JiraUser']:
        if not data:
            return None
        return cls(
            account_id=data.get('accountId', ''),
            display_name=data.get('displayName', ''),
            email_address=data.get('emailAddress', ''),
            account_type=data.get('accountType', '')
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize user to Jira JSON shape."""
        return {
            'accountId': self.account_id,
            'displayName': self.display_name,
            'emailAddress': self.email_address,
            'accountType': self.account_type
        }


@dataclass
class JiraAttachment:
    """Represents an issue attachment."""

    id: str
    filename: str
    content_url: str
    mime_type: str = ''
    size: int = 0
    created: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'JiraAttachment':
        return cls(
            id=str(data.get('id', '')),
            filename=data.get('filename', ''),
            content_url=data.get('content', ''),
            mime_type=data.get('mimeType', ''),
            size=data.get('size', 0) or 0,
            created=data.get('created', '')
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'filename': self.filename,
            'content': self.content_url,
            'mimeType': self.mime_type,
            'size': self.size,
            'created': self.created
        }


@dataclass
class JiraComment:
    """Represents an issue comment with its wiki markup body."""

    id: str
    body: str
    author: Optional[JiraUser] = None
    created: str = ''
    updated: str = ''

    @property
    def is_reply(self) -> bool:
        """Replies start with a mention of the account being answered."""
        return self.body.startswith('[~accountid:')

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'JiraComment':
        return cls(
            id=str(data.get('id', '')),
            body=data.get('body') or '',
            author=JiraUser.from_dict(data.get('author')),
            created=data.get('created', ''),
            updated=data.get('updated', '')
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'body': self.body,
            'author': self.author.to_dict() if self.author else None,
            'created': self.created,
            'updated': self.updated
        }


@dataclass
class ChangelogItem:
    """A single field change inside a changelog history entry."""

    field: str
    from_string: str = ''
    to_string: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ChangelogItem':
        return cls(
            field=data.get('field', ''),
            from_string=data.get('fromString') or '',
            to_string=data.get('toString') or ''
        )

    def to_dict(self) -> Dict[str, Any]:
        return {'field': self.field, 'fromString': self.from_string, 'toString': self.to_string}


@dataclass
class ChangelogHistory:
    """A changelog entry: who changed what, and when."""

    id: str
    author: Optional[JiraUser]
    created: str
    items: List[ChangelogItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ChangelogHistory':
        return cls(
            id=str(data.get('id', '')),
            author=JiraUser.from_dict(data.get('author')),
            created=data.get('created', ''),
            items=[ChangelogItem.from_dict(item) for item in data.get('items') or []]
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'author': self.author.to_dict() if self.author else None,
            'created': self.created,
            'items': [item.to_dict() for item in self.items]
        }


@dataclass
class IssueLinkTarget:
    """Minimal reference to another issue (key, summary, status)."""

    key: str
    summary: str = ''
    status: str = ''
    has_fields: bool = True

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]):
        if not data:
            return None
        fields = data.get('fields')
        return cls(
            key=data.get('key', ''),
            summary=(fields or {}).get('summary', ''),
            status=_name_of((fields or {}).get('status')),
            has_fields=fields is not None
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {'key': self.key}
        if self.has_fields:
            result['fields'] = {'summary': self.summary}
            if self.status:
                result['fields']['status'] = {'name': self.status}
        return result


class Subtask(IssueLinkTarget):
    """Subtask reference listed on its parent issue."""


@dataclass
class IssueLink:
    """Typed link between two issues; exactly one side is usually set."""

    type_name: str
    inward: str
    outward: str
    inward_issue: Optional[IssueLinkTarget] = None
    outward_issue: Optional[IssueLinkTarget] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'IssueLink':
        link_type = data.get('type') or {}
        return cls(
            type_name=link_type.get('name', ''),
            inward=link_type.get('inward', ''),
            outward=link_type.get('outward', ''),
            inward_issue=IssueLinkTarget.from_dict(data.get('inwardIssue')),
            outward_issue=IssueLinkTarget.from_dict(data.get('outwardIssue'))
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            'type': {'name': self.type_name, 'inward': self.inward, 'outward': self.outward}
        }
        if self.inward_issue:
            result['inwardIssue'] = self.inward_issue.to_dict()
        if self.outward_issue:
            result['outwardIssue'] = self.outward_issue.to_dict()
        return result


@dataclass
class JiraProject:
    """Represents a Jira project."""

    key: str
    name: str
    id: str = ''
    description: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'JiraProject':
        return cls(
            key=data.get('key', ''),
            name=data.get('name', ''),
            id=str(data.get('id', '')),
            description=data.get('description') or ''
        )

    def to_dict(self) -> Dict[str, Any]:
        return {'key': self.key, 'name': self.name, 'id': self.id, 'description': self.description}


@dataclass
class JiraIssue:
    """
    Represents a Jira issue with its standard fields.

    ``raw_fields`` keeps the complete ``fields`` object returned by the API so
    custom fields (``customfield_*``) survive decoding and JSON round trips.
    """

    id: str
    key: str
    summary: str
    description: str = ''
    issue_type: str = ''
    status: str = ''
    priority: str = ''
    project_key: str = ''
    project_name: str = ''
    assignee: Optional[JiraUser] = None
    reporter: Optional[JiraUser] = None
    created: str = ''
    updated: str = ''
    duedate: str = ''
    resolution: str = ''
    labels: List[str] = field(default_factory=list)
    fix_versions: List[str] = field(default_factory=list)
    affected_versions: List[str] = field(default_factory=list)
    parent_key: str = ''
    parent_type: str = ''
    original_estimate_seconds: int = 0
    remaining_estimate_seconds: int = 0
    time_spent_seconds: int = 0
    aggregate_original_estimate_seconds: int = 0
    aggregate_remaining_estimate_seconds: int = 0
    aggregate_time_spent_seconds: int = 0
    attachments: List[JiraAttachment] = field(default_factory=list)
    comments: List[JiraComment] = field(default_factory=list)
    subtasks: List[Subtask] = field(default_factory=list)
    issue_links: List[IssueLink] = field(default_factory=list)
    changelog: List[ChangelogHistory] = field(default_factory=list)
    raw_fields: Dict[str, Any] = field(default_factory=dict)

    @property
    def created_at(self) -> Optional[datetime]:
        return parse_timestamp(self.created)

    @property
    def updated_at(self) -> Optional[datetime]:
        return parse_timestamp(self.updated)

    @property
    def is_subtask(self) -> bool:
        return self.issue_type in SUBTASK_TYPE_NAMES

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'JiraIssue':
        """
        Build an issue from a Jira REST API issue payload.

        Args:
            data: Issue JSON (``id``, ``key``, ``fields``, optional ``changelog``)

        Returns:
            JiraIssue instance
        """
        fields = data.get('fields') or {}
        project = fields.get('project') or {}
        parent = fields.get('parent') or {}
        timetracking = fields.get('timetracking') or {}
        comment_block = fields.get('comment') or {}
        changelog = data.get('changelog') or {}

        return cls(
            id=str(data.get('id', '')),
            key=data.get('key', ''),
            summary=fields.get('summary') or '',
            description=fields.get('description') or '',
            issue_type=_name_of(fields.get('issuetype')),
            status=_name_of(fields.get('status')),
            priority=_name_of(fields.get('priority')),
            project_key=project.get('key', ''),
            project_name=project.get('name', ''),
            assignee=JiraUser.from_dict(fields.get('assignee')),
            reporter=JiraUser.from_dict(fields.get('reporter')),
            created=fields.get('created') or '',
            updated=fields.get('updated') or '',
            duedate=fields.get('duedate') or '',
            resolution=_name_of(fields.get('resolution')),
            labels=list(fields.get('labels') or []),
            fix_versions=[_name_of(v) for v in fields.get('fixVersions') or []],
            affected_versions=[_name_of(v) for v in fields.get('versions') or []],
            parent_key=parent.get('key', ''),
            parent_type=_name_of((parent.get('fields') or {}).get('issuetype')),
            original_estimate_seconds=timetracking.get('originalEstimateSeconds') or 0,
            remaining_estimate_seconds=timetracking.get('remainingEstimateSeconds') or 0,
            time_spent_seconds=timetracking.get('timeSpentSeconds') or 0,
            aggregate_original_estimate_seconds=fields.get('aggregatetimeoriginalestimate') or 0,
            aggregate_remaining_estimate_seconds=fields.get('aggregatetimeestimate') or 0,
            aggregate_time_spent_seconds=fields.get('aggregatetimespent') or 0,
            attachments=[JiraAttachment.from_dict(a) for a in fields.get('attachment') or []],
            comments=[JiraComment.from_dict(c) for c in comment_block.get('comments') or []],
            subtasks=[Subtask.from_dict(s) for s in fields.get('subtasks') or []],
            issue_links=[IssueLink.from_dict(link) for link in fields.get('issuelinks') or []],
            changelog=[ChangelogHistory.from_dict(h) for h in changelog.get('histories') or []],
            raw_fields=dict(fields)
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize issue back to the Jira REST API payload shape."""
        fields: Dict[str, Any] = dict(self.raw_fields)
        fields.update({
            'summary': self.summary,
            'description': self.description or None,
            'issuetype': {'name': self.issue_type},
            'status': {'name': self.status},
            'priority': {'name': self.priority} if self.priority else None,
            'project': {'key': self.project_key, 'name': self.project_name},
            'assignee': self.assignee.to_dict() if self.assignee else None,
            'reporter': self.reporter.to_dict() if self.reporter else None,
            'created': self.created,
            'updated': self.updated,
            'duedate': self.duedate or None,
            'resolution': {'name': self.resolution} if self.resolution else None,
            'labels': list(self.labels),
            'fixVersions': [{'name': v} for v in self.fix_versions],
            'versions': [{'name': v} for v in self.affected_versions],
            'timetracking': {
                'originalEstimateSeconds': self.original_estimate_seconds,
                'remainingEstimateSeconds': self.remaining_estimate_seconds,
                'timeSpentSeconds': self.time_spent_seconds
            },
            'aggregatetimeoriginalestimate': self.aggregate_original_estimate_seconds or None,
            'aggregatetimeestimate': self.aggregate_remaining_estimate_seconds or None,
            'aggregatetimespent': self.aggregate_time_spent_seconds or None,
            'attachment': [a.to_dict() for a in self.attachments],
            'comment': {'comments': [c.to_dict() for c in self.comments]},
            'subtasks': [s.to_dict() for s in self.subtasks],
            'issuelinks': [link.to_dict() for link in self.issue_links]
        })
        if self.parent_key:
            fields['parent'] = {
                'key': self.parent_key,
                'fields': {'issuetype': {'name': self.parent_type}}
            }

        return {
            'id': self.id,
            'key': self.key,
            'fields': fields,
            'changelog': {'histories': [h.to_dict() for h in self.changelog]}
        }


@dataclass
class ParentIssueInfo:
    """Key and type of an issue's parent, used for breadcrumbs and front matter."""

    key: str
    type: str = ''

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['ParentIssueInfo']:
        if not data:
            return None
        return cls(key=data.get('Key', ''), type=data.get('Type', ''))

    def to_dict(self) -> Dict[str, Any]:
        return {'Key': self.key, 'Type': self.type}


@dataclass
class ChildIssueInfo:
    """Child issue summary listed under its parent."""

    key: str
    summary: str = ''
    status: str = ''
    type: str = ''
    rank: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ChildIssueInfo':
        return cls(
            key=data.get('Key', ''),
            summary=data.get('Summary', ''),
            status=data.get('Status', ''),
            type=data.get('Type', ''),
            rank=data.get('Rank', '')
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'Key': self.key,
            'Summary': self.summary,
            'Status': self.status,
            'Type': self.type,
            'Rank': self.rank
        }


@dataclass
class DevCommit:
    """Last commit on a branch."""

    display_id: str
    timestamp: str = ''
    url: str = ''

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['DevCommit']:
        if not data:
            return None
        return cls(
            display_id=data.get('displayId', ''),
            timestamp=data.get('timestamp') or '',
            url=data.get('url') or ''
        )

    def to_dict(self) -> Dict[str, Any]:
        return {'displayId': self.display_id, 'timestamp': self.timestamp, 'url': self.url}


@dataclass
class DevBranch:
    """Repository branch linked to an issue."""

    name: str
    url: str = ''
    last_commit: Optional[DevCommit] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DevBranch':
        return cls(
            name=data.get('name', ''),
            url=data.get('url') or '',
            last_commit=DevCommit.from_dict(data.get('lastCommit'))
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {'name': self.name, 'url': self.url}
        if self.last_commit:
            result['lastCommit'] = self.last_commit.to_dict()
        return result


@dataclass
class DevPullRequest:
    """Pull request linked to an issue."""

    id: str
    name: str
    author: str = ''
    status: str = ''
    source_branch: str = ''
    source_url: str = ''
    url: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DevPullRequest':
        source = data.get('source') or {}
        return cls(
            id=str(data.get('id', '')),
            name=data.get('name', ''),
            author=(data.get('author') or {}).get('name', ''),
            status=data.get('status') or '',
            source_branch=source.get('branch') or '',
            source_url=source.get('url') or '',
            url=data.get('url') or ''
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'author': {'name': self.author},
            'status': self.status,
            'source': {'branch': self.source_branch, 'url': self.source_url},
            'url': self.url
        }


@dataclass
class DevStatusDetailItem:
    """Branches and pull requests reported by one development tool instance."""

    branches: List[DevBranch] = field(default_factory=list)
    pull_requests: List[DevPullRequest] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DevStatusDetailItem':
        return cls(
            branches=[DevBranch.from_dict(b) for b in data.get('branches') or []],
            pull_requests=[DevPullRequest.from_dict(pr) for pr in data.get('pullRequests') or []]
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'branches': [b.to_dict() for b in self.branches],
            'pullRequests': [pr.to_dict() for pr in self.pull_requests]
        }


@dataclass
class DevStatusDetail:
    """Development information (branches, pull requests) for one issue."""

    detail: List[DevStatusDetailItem] = field(default_factory=list)

    @property
    def has_details(self) -> bool:
        return bool(self.detail)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['DevStatusDetail']:
        if data is None:
            return None
        return cls(detail=[DevStatusDetailItem.from_dict(d) for d in data.get('detail') or []])

    def to_dict(self) -> Dict[str, Any]:
        return {'detail': [d.to_dict() for d in self.detail]}


@dataclass
class RemoteLink:
    """Remote (web) link attached to an issue, e.g. a Confluence page."""

    id: str
    url: str = ''
    title: str = ''
    application_type: str = ''
    application_name: str = ''
    has_object: bool = True

    @property
    def is_confluence(self) -> bool:
        return self.application_type.lower() == 'confluence'

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RemoteLink':
        obj = data.get('object')
        application = data.get('application') or {}
        return cls(
            id=str(data.get('id', '')),
            url=(obj or {}).get('url', ''),
            title=(obj or {}).get('title', ''),
            application_type=application.get('type', ''),
            application_name=application.get('name', ''),
            has_object=obj is not None
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            'id': self.id,
            'application': {'type': self.application_type, 'name': self.application_name}
        }
        if self.has_object:
            result['object'] = {'url': self.url, 'title': self.title}
        return result


@dataclass
class IssueData:
    """Everything needed to render one issue offline, as cached on disk."""

    issue: JiraIssue
    dev_status: Optional[DevStatusDetail] = None
    parent_info: Optional[ParentIssueInfo] = None
    child_issues: List[ChildIssueInfo] = field(default_factory=list)
    fields: List[Dict[str, Any]] = field(default_factory=list)
    saved_at: Optional[str] = None

    def __post_init__(self) -> None:
        """Set timestamp if not provided."""
        if self.saved_at is None:
            self.saved_at = datetime.now().astimezone().isoformat(timespec='seconds')

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'IssueData':
        if not data.get('issue'):
            raise ValueError("Issue data has no 'issue' entry")
        return cls(
            issue=JiraIssue.from_dict(data['issue']),
            dev_status=DevStatusDetail.from_dict(data.get('devStatus')),
            parent_info=ParentIssueInfo.from_dict(data.get('parentInfo')),
            child_issues=[ChildIssueInfo.from_dict(c) for c in data.get('childIssues') or []],
            fields=list(data.get('fields') or []),
            saved_at=data.get('savedAt', '')
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the on-disk JSON shape; empty optional parts are omitted."""
        result: Dict[str, Any] = {'issue': self.issue.to_dict()}
        if self.dev_status is not None:
            result['devStatus'] = self.dev_status.to_dict()
        if self.parent_info is not None:
            result['parentInfo'] = self.parent_info.to_dict()
        if self.child_issues:
            result['childIssues'] = [c.to_dict() for c in self.child_issues]
        if self.fields:
            result['fields'] = self.fields
        result['savedAt'] = self.saved_at
        return result


__all__ = [
    'JiraUser',
    'JiraAttachment',
    'JiraComment',
    'ChangelogItem',
    'ChangelogHistory',
    'IssueLinkTarget',
    'IssueLink',
    'Subtask',
    'JiraProject',
    'JiraIssue',
    'ParentIssueInfo',
    'ChildIssueInfo',
    'DevCommit',
    'DevBranch',
    'DevPullRequest',
    'DevStatusDetailItem',
    'DevStatusDetail',
    'RemoteLink',
    'IssueData',
    'parse_timestamp',
    'SUBTASK_TYPE_NAMES',
]
