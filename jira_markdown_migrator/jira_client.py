"""Jira Cloud REST client with retry logic and development information lookups."""

import logging
import time
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

import requests
from gql import Client, gql
from gql.transport.exceptions import TransportProtocolError, TransportQueryError, TransportServerError
from gql.transport.requests import RequestsHTTPTransport
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config_loader import get_nested
from .models import (
    DevBranch,
    DevCommit,
    DevPullRequest,
    DevStatusDetail,
    DevStatusDetailItem,
    JiraIssue,
    JiraProject,
    RemoteLink,
)

logger = logging.getLogger('jira_markdown_migrator.client')

SEARCH_MAX_PAGES = 100

GRAPHQL_ENDPOINT = '/jsw2/graphql?operation=DevDetailsDialog'
GRAPHQL_QUERY_CONTEXT = 'ari:cloud:platform::site/'

DEV_DETAILS_QUERY = """
query DevDetailsDialog($issueId: ID!) {
  developmentInformation(issueId: $issueId) {
    details {
      instanceTypes {
        id
        name
        type
        repository {
          name
          url
          branches {
            name
            url
            lastCommit { displayId, timestamp, url }
          }
          pullRequests {
            id
            name
            url
            status
            branchName
            author { name }
          }
        }
        danglingPullRequests {
          id
          name
          url
          status
          branchName
          destinationBranchName
          author { name }
          repositoryName
        }
      }
    }
  }
}"""


class JiraClientError(Exception):
    """Raised when a Jira API request fails or returns an unusable response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _graphql_pull_request(data: Dict[str, Any]) -> DevPullRequest:
    author = data.get('author') or {}
    return DevPullRequest(
        id=str(data.get('id', '')),
        name=data.get('name', ''),
        author=author.get('name', '') if data.get('author') else 'Unknown',
        status=data.get('status') or '',
        source_branch=data.get('branchName') or '',
        url=data.get('url') or ''
    )


def convert_graphql_dev_status(data: Dict[str, Any]) -> DevStatusDetail:
    """
    Flatten a DevDetailsDialog GraphQL response into a DevStatusDetail.

    Each instance type becomes one detail item holding its repositories'
    branches, the pull requests found on those branches, repository pull
    requests and dangling pull requests. Instance types with neither branches
    nor pull requests are dropped.

    Args:
        data: ``data`` member of the GraphQL result

    Returns:
        DevStatusDetail
    """
    details = get_nested(data, 'developmentInformation.details', {}) or {}
    result = DevStatusDetail()

    for instance_type in details.get('instanceTypes') or []:
        item = DevStatusDetailItem()

        for repository in instance_type.get('repository') or []:
            for branch in repository.get('branches') or []:
                item.branches.append(DevBranch(
                    name=branch.get('name', ''),
                    url=branch.get('url') or '',
                    last_commit=DevCommit.from_dict(branch.get('lastCommit'))
                ))
                for pull_request in branch.get('pullRequests') or []:
                    item.pull_requests.append(_graphql_pull_request(pull_request))

            for pull_request in repository.get('pullRequests') or []:
                item.pull_requests.append(_graphql_pull_request(pull_request))

        for pull_request in instance_type.get('danglingPullRequests') or []:
            item.pull_requests.append(_graphql_pull_request(pull_request))

        if item.branches or item.pull_requests:
            result.detail.append(item)

    return result


class JiraClient:
    """Jira Cloud REST API client with basic authentication and retry logic."""

    def __init__(
        self,
        base_url: str,
        email: str,
        api_token: str,
        timeout: int = 30,
        max_retries: int = 3,
        retry_backoff_factor: float = 1.0,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize Jira client.

        Args:
            base_url: Jira Cloud URL (e.g., "https://your-domain.atlassian.net")
            email: Account email used for basic auth
            api_token: Jira API token
            timeout: HTTP request timeout in seconds
            max_retries: Maximum retry attempts for transient errors
            retry_backoff_factor: Exponential backoff factor

        Raises:
            ValueError: If credentials are missing
        """
        if not base_url:
            raise ValueError("Jira client requires a base URL")
        if not email or not api_token:
            raise ValueError("Basic auth requires email and api_token")

        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.max_retries = max_retries
        self._graphql: Optional[Client] = None
        self.logger = logger or logging.getLogger('jira_markdown_migrator.client')

        self.session = requests.Session()
        self.session.auth = (email, api_token)
        self.session.headers['Accept'] = 'application/json'

        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=retry_backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["HEAD", "GET", "OPTIONS"]
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        self.logger.info(f"Initialized Jira client for {self.base_url}")
        self.logger.debug(f"Client configured with timeout={timeout}s, max_retries={max_retries}, "
                          f"backoff_factor={retry_backoff_factor}")

    def _make_request(
        self,
        method: str,
        endpoint: str,
        full_url: Optional[str] = None,
        **kwargs
    ) -> requests.Response:
        """
        Make HTTP request to the Jira API.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint path (e.g., "/rest/api/2/field")
            full_url: Optional full URL (overrides base_url + endpoint)
            **kwargs: Additional arguments for requests

        Returns:
            Response object

        Raises:
            JiraClientError: For transport errors and non-success status codes
        """
        url = full_url if full_url else urljoin(self.base_url + '/', endpoint.lstrip('/'))

        start_time = time.time()
        self.logger.debug(f"API Request: {method} {url}")

        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            self.logger.error(f"Request timeout after {self.timeout}s: {method} {url}")
            raise JiraClientError(f"Request timed out: {method} {url}") from e
        except requests.exceptions.RequestException as e:
            self.logger.error(f"Request error: {method} {url} - {str(e)}")
            raise JiraClientError(f"Request failed: {method} {url}: {e}") from e

        elapsed = time.time() - start_time
        self.logger.debug(f"API Response: {response.status_code} {url} ({elapsed:.3f}s)")

        if response.status_code >= 400:
            body = response.text[:500]
            self.logger.error(f"HTTP Error {response.status_code}: {method} {url}")
            self.logger.debug(f"Error response: {body}")
            raise JiraClientError(
                f"HTTP {response.status_code} for {method} {url}: {body}",
                status_code=response.status_code
            )

        return response

    def _get_json(self, endpoint: str, **kwargs) -> Any:
        response = self._make_request('GET', endpoint, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise JiraClientError(f"Invalid JSON response from {endpoint}: {response.text[:200]}") from e

    def get_issue(self, issue_key: str) -> JiraIssue:
        """
        Fetch one issue with its changelog.

        Args:
            issue_key: Issue key or ID (e.g., "PROJ-123")

        Returns:
            JiraIssue

        Raises:
            JiraClientError: If the issue cannot be fetched
        """
        data = self._get_json(
            f"/rest/api/2/issue/{issue_key}",
            params={'expand': 'renderedFields,changelog'}
        )
        issue = JiraIssue.from_dict(data)
        self.logger.info(f"Fetched issue {issue.key}: {issue.summary}")
        return issue

    def search_jql(self, jql: str, max_results: int = 100) -> List[str]:
        """
        Search issue keys with JQL using token-based pagination.

        Pagination stops when the response is marked last, a page comes back
        empty, no next token is returned, a token repeats, or after
        ``SEARCH_MAX_PAGES`` pages.

        Args:
            jql: JQL query
            max_results: Page size sent as ``maxResults``

        Returns:
            Issue keys in result order

        Raises:
            JiraClientError: If any page request fails
        """
        issue_keys: List[str] = []
        next_page_token = ''
        seen_tokens = set()

        for page in range(SEARCH_MAX_PAGES):
            params: Dict[str, Any] = {'jql': jql, 'maxResults': max_results, 'fields': 'id,key'}
            if next_page_token:
                params['nextPageToken'] = next_page_token

            self.logger.info(f"JQL search page {page + 1}: {jql}")
            data = self._get_json('/rest/api/3/search/jql', params=params)

            issues = data.get('issues') or []
            issue_keys.extend(issue['key'] for issue in issues if issue.get('key'))
            self.logger.debug(f"JQL page {page + 1}: {len(issues)} issue(s), isLast={data.get('isLast')}")

            if data.get('isLast') or not issues:
                break

            token = data.get('nextPageToken') or ''
            if not token or token in seen_tokens:
                break
            seen_tokens.add(token)
            next_page_token = token

        return issue_keys

    def get_issues_by_jql(self, jql: str, max_results: int = 100) -> List[str]:
        return self.search_jql(jql, max_results)

    def get_child_issues(self, parent_key: str, max_results: int = 100) -> List[str]:
        """Keys of issues whose parent is ``parent_key``; [] if the search fails."""
        try:
            return self.get_issues_by_jql(f'parent = "{parent_key}"', max_results)
        except JiraClientError as e:
            self.logger.warning(f"Failed to fetch child issues of {parent_key}: {e}")
            return []

    def get_field_list(self) -> List[Dict[str, Any]]:
        """Fetch all field definitions as ``{'id', 'name'}`` dicts."""
        fields = self._get_json('/rest/api/2/field')
        return [{'id': f.get('id'), 'name': f.get('name', '')} for f in fields or []]

    def get_project(self, project_key: str) -> JiraProject:
        data = self._get_json(f"/rest/api/2/project/{project_key}")
        project = JiraProject.from_dict(data)
        self.logger.info(f"Fetched project {project.key}: {project.name}")
        return project

    def get_dev_status_details(
        self,
        issue_id: str,
        application_type: str,
        data_type: str = 'pullrequest'
    ) -> DevStatusDetail:
        """
        Fetch branches and pull requests from the dev-status REST API.

        Args:
            issue_id: Numeric issue ID (not the key)
            application_type: github, bitbucket, stash or gitlab
            data_type: Detail type to request

        Returns:
            DevStatusDetail

        Raises:
            JiraClientError: If the request fails
        """
        data = self._get_json(
            '/rest/dev-status/1.0/issue/detail',
            params={'issueId': issue_id, 'applicationType': application_type, 'dataType': data_type}
        )
        detail = DevStatusDetail.from_dict(data) or DevStatusDetail()

        if detail.detail:
            first = detail.detail[0]
            self.logger.debug(f"Dev-status for issue {issue_id}: {len(first.branches)} branch(es), "
                              f"{len(first.pull_requests)} pull request(s)")
        return detail

    @property
    def graphql_client(self) -> Client:
        """GraphQL client for the DevDetailsDialog endpoint, sharing the session's credentials."""
        if self._graphql is None:
            transport = RequestsHTTPTransport(
                url=f"{self.base_url}{GRAPHQL_ENDPOINT}",
                headers={'X-Query-Context': GRAPHQL_QUERY_CONTEXT},
                auth=self.session.auth,
                timeout=self.timeout,
                retries=self.max_retries
            )
            self._graphql = Client(transport=transport, fetch_schema_from_transport=False)
        return self._graphql

    def get_dev_status_graphql(self, issue_id: str) -> DevStatusDetail:
        """
        Fetch development information through the DevDetailsDialog GraphQL query.

        Args:
            issue_id: Numeric issue ID

        Returns:
            DevStatusDetail

        Raises:
            JiraClientError: If the request fails or GraphQL reports errors
        """
        self.logger.debug(f"GraphQL DevDetailsDialog for issue {issue_id}")
        try:
            result = self.graphql_client.execute(
                gql(DEV_DETAILS_QUERY),
                variable_values={'issueId': issue_id},
                operation_name='DevDetailsDialog'
            )
        except TransportQueryError as e:
            raise JiraClientError(f"GraphQL errors for issue {issue_id}: {e.errors or e}") from e
        except TransportServerError as e:
            raise JiraClientError(f"GraphQL server error for issue {issue_id}: {e}", status_code=e.code) from e
        except (TransportProtocolError, requests.exceptions.RequestException) as e:
            raise JiraClientError(f"GraphQL request failed for issue {issue_id}: {e}") from e

        detail = convert_graphql_dev_status(result or {})
        self.logger.debug(f"GraphQL dev-status for issue {issue_id}: {len(detail.detail)} instance type(s)")
        return detail

    def get_dev_status(self, issue_id: str, config: Dict[str, Any]) -> DevStatusDetail:
        """Fetch development information using the API selected by ``development.api_type``."""
        if get_nested(config, 'development.api_type', 'rest') == 'graphql':
            return self.get_dev_status_graphql(issue_id)
        application_type = get_nested(config, 'development.application_type') or 'bitbucket'
        return self.get_dev_status_details(issue_id, application_type, 'pullrequest')

    def get_remote_links(self, issue_key: str) -> List[RemoteLink]:
        data = self._get_json(f"/rest/api/2/issue/{issue_key}/remotelink")
        links = [RemoteLink.from_dict(item) for item in data or []]
        self.logger.debug(f"Fetched {len(links)} remote link(s) for {issue_key}")
        return links

    def download(self, url: str, destination: str, chunk_size: int = 8192) -> int:
        """
        Stream a file (e.g. attachment content URL) to disk.

        Args:
            url: Absolute download URL
            destination: File path to write
            chunk_size: Streaming chunk size in bytes

        Returns:
            Number of bytes written

        Raises:
            JiraClientError: If the download request fails
            OSError: If the file cannot be written
        """
        response = self._make_request('GET', '', full_url=url, stream=True)
        written = 0
        try:
            with open(destination, 'wb') as f:
                for chunk in response.iter_content(chunk_size=chunk_size):
                    if chunk:
                        f.write(chunk)
                        written += len(chunk)
        finally:
            response.close()
        self.logger.debug(f"Downloaded {written} bytes to {destination}")
        return written

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'JiraClient':
        """
        Initialize Jira client from configuration dictionary.

        Args:
            config: Configuration dictionary with jira and advanced settings

        Returns:
            JiraClient instance
        """
        jira_config = config.get('jira', {})
        advanced_config = config.get('advanced', {})

        return cls(
            base_url=jira_config.get('url'),
            email=jira_config.get('email'),
            api_token=jira_config.get('api_token'),
            timeout=advanced_config.get('request_timeout', 30),
            max_retries=advanced_config.get('max_retries', 3),
            retry_backoff_factor=advanced_config.get('retry_backoff_factor', 1.0)
        )


__all__ = ['JiraClient', 'JiraClientError', 'convert_graphql_dev_status']
