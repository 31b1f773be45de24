"""
Orchestration package for coordinating export pipeline phases.

This package sequences fetching issues from Jira, enriching them, downloading
attachments, caching JSON and writing Markdown, and reports on each run.
"""

from .migration_orchestrator import MigrationOrchestrator, sort_child_issues
from .migration_report import MigrationReport

__all__ = [
    'MigrationOrchestrator',
    'MigrationReport',
    'sort_child_issues',
]
