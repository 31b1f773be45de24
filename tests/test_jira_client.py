"""Tests for the Jira REST client using a stubbed HTTP session."""

import unittest
from unittest import mock

import requests
from gql.transport.exceptions import TransportQueryError, TransportServerError

from jira_markdown_migrator.jira_client import JiraClient, JiraClientError, convert_graphql_dev_status


def make_response(status_code=200, payload=None, text=None):
    response = mock.Mock()
    response.status_code = status_code
    response.json.return_value = payload
    response.text = text if text is not None else str(payload)
    return response


class TestJiraClient(unittest.TestCase):
    def setUp(self):
        self.client = JiraClient('https://example.atlassian.net/', 'user@example.com', 'token')
        self.client.session = mock.Mock()

    def _respond(self, *responses):
        self.client.session.request.side_effect = list(responses)

    def test_requires_credentials(self):
        with self.assertRaises(ValueError):
            JiraClient('https://example.atlassian.net', '', 'token')
        with self.assertRaises(ValueError):
            JiraClient('', 'user@example.com', 'token')

    def test_get_issue(self):
        self._respond(make_response(payload={'id': '1', 'key': 'PROJ-1', 'fields': {'summary': 'Hello'}}))

        issue = self.client.get_issue('PROJ-1')

        self.assertEqual('PROJ-1', issue.key)
        self.assertEqual('Hello', issue.summary)
        method, url = self.client.session.request.call_args[0]
        self.assertEqual('GET', method)
        self.assertEqual('https://example.atlassian.net/rest/api/2/issue/PROJ-1', url)
        self.assertEqual({'expand': 'renderedFields,changelog'},
                         self.client.session.request.call_args[1]['params'])

    def test_http_error(self):
        self._respond(make_response(status_code=404, text='Issue does not exist'))

        with self.assertRaises(JiraClientError) as context:
            self.client.get_issue('PROJ-404')

        self.assertEqual(404, context.exception.status_code)
        self.assertIn('Issue does not exist', str(context.exception))

    def test_transport_error(self):
        self.client.session.request.side_effect = requests.exceptions.ConnectionError('refused')

        with self.assertRaises(JiraClientError):
            self.client.get_project('PROJ')

    def test_invalid_json(self):
        response = make_response(text='<html>')
        response.json.side_effect = ValueError('no json')
        self._respond(response)

        with self.assertRaises(JiraClientError):
            self.client.get_field_list()

    def test_search_follows_page_tokens(self):
        self._respond(
            make_response(payload={'issues': [{'key': 'A-1'}, {'key': 'A-2'}], 'nextPageToken': 't1'}),
            make_response(payload={'issues': [{'key': 'A-3'}], 'isLast': True}),
        )

        keys = self.client.search_jql('project = A', max_results=2)

        self.assertEqual(['A-1', 'A-2', 'A-3'], keys)
        second_params = self.client.session.request.call_args_list[1][1]['params']
        self.assertEqual('t1', second_params['nextPageToken'])
        self.assertEqual(2, second_params['maxResults'])

    def test_search_stops_on_repeated_token(self):
        self._respond(
            make_response(payload={'issues': [{'key': 'A-1'}], 'nextPageToken': 'same'}),
            make_response(payload={'issues': [{'key': 'A-2'}], 'nextPageToken': 'same'}),
        )

        keys = self.client.search_jql('project = A')

        self.assertEqual(['A-1', 'A-2'], keys)
        self.assertEqual(2, self.client.session.request.call_count)

    def test_search_stops_on_empty_page(self):
        self._respond(make_response(payload={'issues': [], 'nextPageToken': 'more'}))

        self.assertEqual([], self.client.search_jql('project = A'))

    def test_child_issues_degrade_to_empty(self):
        self._respond(make_response(status_code=400, text='bad jql'))

        self.assertEqual([], self.client.get_child_issues('PROJ-1'))

    def test_child_issue_query(self):
        self._respond(make_response(payload={'issues': [{'key': 'PROJ-2'}], 'isLast': True}))

        self.assertEqual(['PROJ-2'], self.client.get_child_issues('PROJ-1'))
        params = self.client.session.request.call_args[1]['params']
        self.assertEqual('parent = "PROJ-1"', params['jql'])

    def test_field_list(self):
        self._respond(make_response(payload=[
            {'id': 'customfield_10001', 'name': 'Story Points', 'custom': True},
        ]))

        self.assertEqual([{'id': 'customfield_10001', 'name': 'Story Points'}], self.client.get_field_list())

    def test_rest_dev_status(self):
        self._respond(make_response(payload={'detail': [{
            'branches': [{'name': 'feature/x', 'url': 'https://git/b'}],
            'pullRequests': [{'id': 3, 'name': 'PR', 'status': 'OPEN', 'author': {'name': 'Taro'},
                              'source': {'branch': 'feature/x'}}],
        }]}))

        detail = self.client.get_dev_status('10001', {'development': {'application_type': 'github'}})

        self.assertEqual('feature/x', detail.detail[0].branches[0].name)
        self.assertEqual('Taro', detail.detail[0].pull_requests[0].author)
        params = self.client.session.request.call_args[1]['params']
        self.assertEqual('github', params['applicationType'])
        self.assertEqual('pullrequest', params['dataType'])

    def test_graphql_dev_status(self):
        graphql = mock.Mock()
        graphql.execute.return_value = {'developmentInformation': {'details': {
            'instanceTypes': [{'repository': [{'branches': [{'name': 'main', 'url': 'u'}]}]}]
        }}}
        self.client._graphql = graphql

        detail = self.client.get_dev_status('10001', {'development': {'api_type': 'graphql'}})

        self.assertEqual('main', detail.detail[0].branches[0].name)
        kwargs = graphql.execute.call_args[1]
        self.assertEqual({'issueId': '10001'}, kwargs['variable_values'])
        self.assertEqual('DevDetailsDialog', kwargs['operation_name'])
        self.client.session.request.assert_not_called()

    def test_graphql_errors(self):
        self.client._graphql = mock.Mock()
        self.client._graphql.execute.side_effect = TransportQueryError(
            'denied', errors=[{'message': 'denied'}]
        )

        with self.assertRaises(JiraClientError) as context:
            self.client.get_dev_status_graphql('10001')

        self.assertIn('denied', str(context.exception))

    def test_graphql_server_error_keeps_status(self):
        self.client._graphql = mock.Mock()
        self.client._graphql.execute.side_effect = TransportServerError('unavailable', 503)

        with self.assertRaises(JiraClientError) as context:
            self.client.get_dev_status_graphql('10001')

        self.assertEqual(503, context.exception.status_code)

    def test_graphql_transport(self):
        transport = self.client.graphql_client.transport

        self.assertEqual('https://example.atlassian.net/jsw2/graphql?operation=DevDetailsDialog', transport.url)
        self.assertEqual('ari:cloud:platform::site/', transport.headers['X-Query-Context'])
        self.assertEqual(('user@example.com', 'token'), transport.auth)
        self.assertIs(self.client.graphql_client, self.client.graphql_client)

    def test_remote_links(self):
        self._respond(make_response(payload=[
            {'id': 1, 'object': {'url': 'https://wiki/p', 'title': 'Page'}, 'application': {'type': 'confluence'}},
        ]))

        links = self.client.get_remote_links('PROJ-1')

        self.assertEqual(1, len(links))
        self.assertTrue(links[0].is_confluence)

    def test_download(self):
        response = make_response()
        response.iter_content.return_value = [b'abc', b'', b'def']
        self._respond(response)

        with mock.patch('builtins.open', mock.mock_open()) as opened:
            written = self.client.download('https://example.atlassian.net/attachment/1', '/tmp/file.bin')

        self.assertEqual(6, written)
        opened.assert_called_once_with('/tmp/file.bin', 'wb')
        response.close.assert_called_once()
        self.assertEqual('https://example.atlassian.net/attachment/1',
                         self.client.session.request.call_args[0][1])

    def test_from_config(self):
        client = JiraClient.from_config({
            'jira': {'url': 'https://x.atlassian.net', 'email': 'e@x', 'api_token': 't'},
            'advanced': {'request_timeout': 10, 'max_retries': 1},
        })

        self.assertEqual('https://x.atlassian.net', client.base_url)
        self.assertEqual(10, client.timeout)
        self.assertEqual(('e@x', 't'), client.session.auth)


class TestGraphqlConversion(unittest.TestCase):
    def test_pull_requests_from_all_sources(self):
        payload = {'developmentInformation': {'details': {'instanceTypes': [
            {
                'repository': [{
                    'branches': [{
                        'name': 'feature/a',
                        'lastCommit': {'displayId': 'abc', 'timestamp': '2025-01-01T00:00:00Z'},
                        'pullRequests': [{'id': 1, 'name': 'From branch', 'author': {'name': 'A'}}],
                    }],
                    'pullRequests': [{'id': 2, 'name': 'From repository', 'branchName': 'feature/b'}],
                }],
                'danglingPullRequests': [{'id': 3, 'name': 'Dangling'}],
            },
            {'repository': []},
        ]}}}

        detail = convert_graphql_dev_status(payload)

        self.assertEqual(1, len(detail.detail))
        item = detail.detail[0]
        self.assertEqual('abc', item.branches[0].last_commit.display_id)
        self.assertEqual(['From branch', 'From repository', 'Dangling'], [pr.name for pr in item.pull_requests])
        self.assertEqual('A', item.pull_requests[0].author)
        self.assertEqual('Unknown', item.pull_requests[1].author)
        self.assertEqual('feature/b', item.pull_requests[1].source_branch)

    def test_empty_payload(self):
        self.assertEqual([], convert_graphql_dev_status({}).detail)


if __name__ == '__main__':
    unittest.main()
