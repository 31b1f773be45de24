"""Tests for export orchestration against an in-memory Jira."""

import json

import pytest
from conftest import FakeJiraClient, make_issue_payload

from jira_markdown_migrator.models import ChildIssueInfo, JiraProject
from jira_markdown_migrator.orchestrator import MigrationOrchestrator, MigrationReport, sort_child_issues


@pytest.fixture
def config(tmp_path):
    return {
        'output': {
            'markdown_dir': str(tmp_path / 'markdown'),
            'attachments_dir': str(tmp_path / 'attachments'),
            'json_dir': str(tmp_path / 'json'),
        },
        'display': {'rank_field_id': 'customfield_10019', 'hidden_custom_fields': []},
        'development': {'enabled': False},
    }


def make_orchestrator(config, client):
    return MigrationOrchestrator(config, client=client, show_progress=False)


class TestSortChildIssues:
    def test_rank_order_with_unranked_last(self):
        children = [
            ChildIssueInfo(key='P-3', rank=''),
            ChildIssueInfo(key='P-2', rank='0|b'),
            ChildIssueInfo(key='P-1', rank='0|a'),
        ]

        assert [c.key for c in sort_child_issues(children)] == ['P-1', 'P-2', 'P-3']


class TestExportIssue:
    def test_writes_page_index_and_json(self, tmp_path, config, issue_payload):
        client = FakeJiraClient(
            issues=[issue_payload],
            projects={'PROJ': JiraProject(key='PROJ', name='Project', description='About')}
        )

        report = make_orchestrator(config, client).export_issue('PROJ-1')

        page = tmp_path / 'markdown' / 'PROJ' / 'PROJ-1.md'
        assert report.succeeded == 1
        assert report.output_paths == [str(page)]
        assert page.exists()
        assert 'About' in (tmp_path / 'markdown' / 'PROJ' / '_index.md').read_text(encoding='utf-8')
        assert (tmp_path / 'attachments' / 'PROJ-1_screen.png').exists()
        saved = json.loads((tmp_path / 'json' / 'PROJ' / 'PROJ-1.json').read_text(encoding='utf-8'))
        assert saved['issue']['key'] == 'PROJ-1'
        assert saved['fields'][1]['name'] == 'Story Points'

    def test_page_uses_field_names_and_attachments(self, tmp_path, config, issue_payload):
        client = FakeJiraClient(issues=[issue_payload])

        make_orchestrator(config, client).export_issue('PROJ-1')

        page = (tmp_path / 'markdown' / 'PROJ' / 'PROJ-1.md').read_text(encoding='utf-8')
        assert '- **Story Points**: 5.00' in page
        assert '![screen.png](/attachments/PROJ-1_screen.png)' in page

    def test_json_is_optional(self, tmp_path, config, issue_payload):
        config['output']['json_dir'] = ''

        make_orchestrator(config, FakeJiraClient(issues=[issue_payload])).export_issue('PROJ-1')

        assert not (tmp_path / 'json').exists()

    def test_missing_issue_raises(self, config):
        from jira_markdown_migrator.jira_client import JiraClientError

        with pytest.raises(JiraClientError):
            make_orchestrator(config, FakeJiraClient()).export_issue('PROJ-404')

    def test_parent_and_children(self, tmp_path, config):
        client = FakeJiraClient(
            issues=[
                make_issue_payload('PROJ-10', 'Epic', issue_type='Epic'),
                make_issue_payload('PROJ-11', 'Story', issue_type='Story', parent_key='PROJ-10'),
                make_issue_payload('PROJ-12', 'Second child', parent_key='PROJ-11', rank='0|b'),
                make_issue_payload('PROJ-13', 'First child', parent_key='PROJ-11', rank='0|a'),
                make_issue_payload('PROJ-14', 'A subtask', issue_type='Sub-task', parent_key='PROJ-11'),
            ],
            children={'PROJ-11': ['PROJ-12', 'PROJ-13', 'PROJ-14']}
        )

        make_orchestrator(config, client).export_issue('PROJ-11')

        page = (tmp_path / 'markdown' / 'PROJ' / 'PROJ-11.md').read_text(encoding='utf-8')
        assert 'parent = "PROJ-10"' in page
        assert '[🟣 PROJ-10](../PROJ-10/)' in page
        assert page.index('PROJ-13') < page.index('PROJ-12')
        assert 'PROJ-14' not in page


class TestExportSearch:
    def test_failures_do_not_stop_the_batch(self, tmp_path, config, issue_payload):
        client = FakeJiraClient(
            issues=[issue_payload, make_issue_payload('PROJ-2', 'Second')],
            search_results=['PROJ-1', 'PROJ-404', 'PROJ-2']
        )

        report = make_orchestrator(config, client).export_search('project = PROJ', 50)

        assert report.processed == 3
        assert report.succeeded == 2
        assert report.failed == 1
        assert report.errors[0]['item'] == 'PROJ-404'
        assert (tmp_path / 'markdown' / 'PROJ' / 'PROJ-2.md').exists()
        assert (tmp_path / 'markdown' / 'PROJ' / '_index.md').exists()

    def test_mentions_resolve_across_issues(self, tmp_path, config):
        first = make_issue_payload('PROJ-1', 'First', reporter={'accountId': 'acc-9', 'displayName': 'Jiro'})
        second = make_issue_payload('PROJ-2', 'Second', description='ping [~accountid:acc-9]')
        client = FakeJiraClient(issues=[first, second], search_results=['PROJ-1', 'PROJ-2'])

        make_orchestrator(config, client).export_search('project = PROJ')

        page = (tmp_path / 'markdown' / 'PROJ' / 'PROJ-2.md').read_text(encoding='utf-8')
        assert '<span class="mention">@Jiro</span>' in page

    def test_attachment_failure_is_a_warning(self, tmp_path, config, issue_payload):
        class FailingDownloads(FakeJiraClient):
            def download(self, url, destination, chunk_size=8192):
                from jira_markdown_migrator.jira_client import JiraClientError
                raise JiraClientError('HTTP 403')

        client = FailingDownloads(issues=[issue_payload], search_results=['PROJ-1'])

        report = make_orchestrator(config, client).export_search('key = PROJ-1')

        assert report.succeeded == 1
        assert any('PROJ-1' in warning for warning in report.warnings)
        page = (tmp_path / 'markdown' / 'PROJ' / 'PROJ-1.md').read_text(encoding='utf-8')
        assert '!screen.png!' in page
        assert '## Attachments' not in page

    @pytest.mark.parametrize('bad_fields', [
        {'assignee': 'bob'},
        {'comment': {'comments': [None]}},
        {'duedate': 12},
    ])
    def test_malformed_issue_does_not_stop_the_batch(self, tmp_path, config, bad_fields):
        client = FakeJiraClient(
            issues=[make_issue_payload('PROJ-1', 'Broken', **bad_fields), make_issue_payload('PROJ-2', 'Fine')],
            search_results=['PROJ-1', 'PROJ-2']
        )

        report = make_orchestrator(config, client).export_search('project = PROJ')

        assert report.failed == 1
        assert report.errors[0]['item'] == 'PROJ-1'
        assert report.succeeded == 1
        assert (tmp_path / 'markdown' / 'PROJ' / 'PROJ-2.md').exists()

    def test_empty_query_is_rejected(self, config):
        with pytest.raises(ValueError):
            make_orchestrator(config, FakeJiraClient()).export_search('')

    def test_parents_are_cached(self, config):
        client = FakeJiraClient(
            issues=[
                make_issue_payload('PROJ-10', 'Epic', issue_type='Epic'),
                make_issue_payload('PROJ-11', 'One', parent_key='PROJ-10'),
                make_issue_payload('PROJ-12', 'Two', parent_key='PROJ-10'),
            ],
            search_results=['PROJ-11', 'PROJ-12']
        )

        make_orchestrator(config, client).export_search('parent = PROJ-10')

        assert client.fetched.count('PROJ-10') == 1


class TestConvertFromJson:
    def test_regenerates_pages_offline(self, tmp_path, config, issue_payload):
        make_orchestrator(config, FakeJiraClient(issues=[issue_payload])).export_issue('PROJ-1')
        output_dir = tmp_path / 'site'

        offline = MigrationOrchestrator(config, client=None, show_progress=False)
        report = offline.convert_from_json(tmp_path / 'json', output_dir)

        page = (output_dir / 'PROJ' / 'PROJ-1.md').read_text(encoding='utf-8')
        assert report.succeeded == 1
        assert offline._client is None
        assert '- **Story Points**: 5.00' in page
        assert '![screen.png](/attachments/PROJ-1_screen.png)' in page
        assert '- [PROJ-1_spec sheet.pdf](../../attachments/PROJ-1_spec%20sheet.pdf)' in page

    def test_invalid_file_is_recorded(self, tmp_path, config):
        json_dir = tmp_path / 'input'
        json_dir.mkdir()
        (json_dir / 'broken.json').write_text('{oops', encoding='utf-8')

        report = make_orchestrator(config, None).convert_from_json(json_dir, tmp_path / 'out')

        assert report.failed == 1
        assert not report.success

    def test_malformed_issue_is_recorded(self, tmp_path, config, issue_payload):
        make_orchestrator(config, FakeJiraClient(issues=[issue_payload])).export_issue('PROJ-1')
        broken = {'issue': {'id': '2', 'key': 'PROJ-2', 'fields': {'assignee': 'bob'}}}
        (tmp_path / 'json' / 'PROJ' / 'PROJ-2.json').write_text(json.dumps(broken), encoding='utf-8')

        report = make_orchestrator(config, None).convert_from_json(tmp_path / 'json', tmp_path / 'site')

        assert report.succeeded == 1
        assert report.failed == 1
        assert (tmp_path / 'site' / 'PROJ' / 'PROJ-1.md').exists()

    def test_empty_directory(self, tmp_path, config):
        (tmp_path / 'nothing').mkdir()

        with pytest.raises(ValueError):
            make_orchestrator(config, None).convert_from_json(tmp_path / 'nothing')

    def test_missing_input(self, tmp_path, config):
        with pytest.raises(FileNotFoundError):
            make_orchestrator(config, None).convert_from_json(tmp_path / 'absent')


class TestMigrationReport:
    def test_summary(self, tmp_path):
        report = MigrationReport('search')
        report.record_success('A-1', tmp_path / 'A-1.md')
        report.record_failure('A-2', ValueError('bad'))
        report.record_warning('A-1: attachments skipped')
        report.finish()

        text = report.format_console_report()
        assert 'SEARCH REPORT' in text
        assert 'Failed:      1' in text
        assert 'A-2: bad' in text
        assert report.to_dict()['summary']['succeeded'] == 1

        report.save_json(tmp_path / 'report.json')
        saved = json.loads((tmp_path / 'report.json').read_text(encoding='utf-8'))
        assert saved['errors'] == [{'item': 'A-2', 'error': 'bad'}]

    @pytest.mark.parametrize('seconds, expected', [(12.34, '12.3s'), (61, '1m 1s'), (3661, '1h 1m 1s')])
    def test_format_duration(self, seconds, expected):
        assert MigrationReport._format_duration(seconds) == expected
