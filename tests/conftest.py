"""Shared fixtures: Jira issue payloads and a fake Jira client."""

import copy
import sys
from pathlib import Path

import pytest

from jira_markdown_migrator.jira_client import JiraClientError
from jira_markdown_migrator.models import JiraIssue, JiraProject

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


ISSUE_PAYLOAD = {
    'id': '10001',
    'key': 'PROJ-1',
    'fields': {
        'summary': 'Fix login bug',
        'description': 'h2. Steps\n# Open the page\n# Click *Login*\n\n!screen.png!',
        'issuetype': {'name': 'Story'},
        'status': {'name': 'In Progress'},
        'priority': {'name': 'High'},
        'project': {'key': 'PROJ', 'name': 'Project'},
        'assignee': {
            'accountId': 'acc-1',
            'displayName': 'Taro Yamada',
            'accountType': 'atlassian',
        },
        'reporter': {
            'accountId': 'acc-2',
            'displayName': 'Hanako Suzuki',
            'accountType': 'atlassian',
        },
        'created': '2025-01-02T10:00:00.000+0900',
        'updated': '2025-01-05T18:30:00.000+0900',
        'duedate': '2025-02-01',
        'labels': ['backend', 'auth'],
        'fixVersions': [{'name': '1.2.0'}],
        'versions': [],
        'timetracking': {'originalEstimateSeconds': 7200, 'timeSpentSeconds': 5400},
        'attachment': [
            {
                'id': '900',
                'filename': 'screen.png',
                'content': 'https://example.atlassian.net/secure/attachment/900/screen.png',
                'mimeType': 'image/png',
                'size': 1024,
            },
            {
                'id': '901',
                'filename': 'spec sheet.pdf',
                'content': 'https://example.atlassian.net/secure/attachment/901/spec.pdf',
                'mimeType': 'application/pdf',
                'size': 2048,
            },
        ],
        'comment': {
            'comments': [
                {
                    'id': '1',
                    'body': 'Looks good to me',
                    'author': {'accountId': 'acc-2', 'displayName': 'Hanako Suzuki'},
                    'created': '2025-01-03T09:30:00.000+0900',
                },
                {
                    'id': '2',
                    'body': '[~accountid:acc-2] thanks, fixed in -old- new build',
                    'author': {'accountId': 'acc-1', 'displayName': 'Taro Yamada'},
                    'created': '2025-01-04T11:15:00.000+0900',
                },
            ]
        },
        'subtasks': [
            {'key': 'PROJ-5', 'fields': {'summary': 'Write tests', 'status': {'name': 'To Do'}}},
        ],
        'issuelinks': [
            {
                'type': {'name': 'Blocks', 'inward': 'is blocked by', 'outward': 'blocks'},
                'outwardIssue': {
                    'key': 'PROJ-7',
                    'fields': {'summary': 'Release', 'status': {'name': 'Open'}},
                },
            },
        ],
        'customfield_10001': 5.0,
        'customfield_10019': '0|i0001:',
        'customfield_10050': None,
    },
    'changelog': {
        'histories': [
            {
                'id': '100',
                'author': {'accountId': 'acc-1', 'displayName': 'Taro Yamada'},
                'created': '2025-01-05T18:30:00.000+0900',
                'items': [{'field': 'status', 'fromString': 'To Do', 'toString': 'In Progress'}],
            },
        ]
    },
}

FIELD_LIST = [
    {'id': 'summary', 'name': 'Summary'},
    {'id': 'customfield_10001', 'name': 'Story Points'},
    {'id': 'customfield_10019', 'name': 'Rank'},
]


@pytest.fixture
def issue_payload():
    """Full Jira REST issue payload."""
    return copy.deepcopy(ISSUE_PAYLOAD)


@pytest.fixture
def issue(issue_payload):
    return JiraIssue.from_dict(issue_payload)


@pytest.fixture
def field_list():
    return copy.deepcopy(FIELD_LIST)


def make_issue_payload(key, summary, issue_type='Task', parent_key=None, rank=None, **extra_fields):
    """Minimal issue payload for orchestration tests."""
    fields = {
        'summary': summary,
        'issuetype': {'name': issue_type},
        'status': {'name': 'Open'},
        'project': {'key': key.split('-')[0], 'name': 'Project'},
        'created': '2025-01-02T10:00:00.000+0900',
        'updated': '2025-01-02T10:00:00.000+0900',
    }
    if parent_key:
        fields['parent'] = {'key': parent_key, 'fields': {'issuetype': {'name': 'Epic'}}}
    if rank is not None:
        fields['customfield_10019'] = rank
    fields.update(extra_fields)
    return {'id': str(10000 + int(key.split('-')[1])), 'key': key, 'fields': fields}


class FakeJiraClient:
    """In-memory stand-in for JiraClient."""

    def __init__(self, issues=None, search_results=None, children=None, projects=None,
                 failing_keys=(), attachment_bytes=b'data'):
        self.issues = {payload['key']: payload for payload in issues or []}
        self.search_results = list(search_results or [])
        self.children = dict(children or {})
        self.projects = dict(projects or {})
        self.failing_keys = set(failing_keys)
        self.attachment_bytes = attachment_bytes
        self.downloads = []
        self.fetched = []

    def get_field_list(self):
        return copy.deepcopy(FIELD_LIST)

    def get_issue(self, issue_key):
        self.fetched.append(issue_key)
        if issue_key in self.failing_keys or issue_key not in self.issues:
            raise JiraClientError(f"HTTP 404 for GET /rest/api/2/issue/{issue_key}", status_code=404)
        return JiraIssue.from_dict(copy.deepcopy(self.issues[issue_key]))

    def get_issues_by_jql(self, jql, max_results=100):
        return list(self.search_results)

    def get_child_issues(self, parent_key, max_results=100):
        return list(self.children.get(parent_key, []))

    def get_project(self, project_key):
        return self.projects.get(project_key) or JiraProject(key=project_key, name='Project')

    def get_remote_links(self, issue_key):
        return []

    def get_dev_status(self, issue_id, config):
        raise JiraClientError("dev-status unavailable")

    def download(self, url, destination, chunk_size=8192):
        self.downloads.append(url)
        Path(destination).write_bytes(self.attachment_bytes)
        return len(self.attachment_bytes)


@pytest.fixture
def fake_client_factory():
    return FakeJiraClient


def split_front_matter(markdown):
    """Return (parsed TOML front matter, body) of a generated page."""
    assert markdown.startswith('+++\n')
    end = markdown.index('+++\n\n', 4)
    return tomllib.loads(markdown[4:end]), markdown[end + 5:]
