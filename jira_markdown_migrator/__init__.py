"""
Jira to Markdown migrator.

Exports Jira issues as Hugo Markdown pages. The core is a multi-pass
converter from Jira wiki markup to Markdown; around it sit a Jira REST
client, attachment downloading, a JSON cache for offline regeneration and a
command-line interface.
"""

__version__ = "1.0.0"

from .config_loader import ConfigLoader, get_nested
from .converters import MarkupConverter, convert_markup
from .jira_client import JiraClient, JiraClientError
from .models import IssueData, JiraIssue

__all__ = [
    '__version__',
    'ConfigLoader',
    'get_nested',
    'MarkupConverter',
    'convert_markup',
    'JiraClient',
    'JiraClientError',
    'IssueData',
    'JiraIssue',
]
