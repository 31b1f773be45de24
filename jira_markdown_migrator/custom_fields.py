"""
Custom field decoding, formatting and user mapping helpers.

Jira returns custom fields as arbitrary JSON. Each value is decoded once into
a ``CustomFieldValue`` whose ``kind`` tells the formatter what it holds, so
formatting never has to guess at runtime types again.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .models import DevStatusDetail, JiraIssue

logger = logging.getLogger('jira_markdown_migrator.custom_fields')

CUSTOM_FIELD_PREFIX = 'customfield_'
NOT_SET = 'Not set'

KIND_EMPTY = 'empty'
KIND_STRING = 'string'
KIND_NUMBER = 'number'
KIND_BOOLEAN = 'boolean'
KIND_LIST = 'list'
KIND_OBJECT = 'object'
KIND_DEVELOPMENT = 'development'


def is_development_field(value: Mapping[str, Any]) -> bool:
    """Development integration fields carry a ``pullrequest`` or ``json`` key."""
    return 'pullrequest' in value or 'json' in value


def extract_development_summary(value: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Pull the pull request count and state out of a development field.

    The ``pullrequest`` entry is read first; ``json.cachedValue.summary``
    is the fallback when it carries no count.

    Returns:
        Dict with ``count`` (int) and ``state`` (str)
    """
    summary = {'count': 0, 'state': ''}

    pull_request = value.get('pullrequest')
    if isinstance(pull_request, dict):
        if isinstance(pull_request.get('state'), str):
            summary['state'] = pull_request['state']
        if isinstance(pull_request.get('stateCount'), (int, float)):
            summary['count'] = int(pull_request['stateCount'])

    if summary['count'] == 0:
        overall = value.get('json')
        for key in ('cachedValue', 'summary', 'pullrequest', 'overall'):
            overall = overall.get(key) if isinstance(overall, dict) else None
        if isinstance(overall, dict):
            if isinstance(overall.get('count'), (int, float)):
                summary['count'] = int(overall['count'])
            if isinstance(overall.get('state'), str):
                summary['state'] = overall['state']

    return summary


def format_development_field(value: Mapping[str, Any]) -> str:
    """``Pull Request: N state``, or '' when nothing useful can be extracted."""
    pull_request = value.get('pullrequest')
    if isinstance(pull_request, dict):
        state = pull_request.get('state') if isinstance(pull_request.get('state'), str) else ''
        count = pull_request.get('stateCount')
        count = int(count) if isinstance(count, (int, float)) else 0
        if state and count > 0:
            return f"Pull Request: {count} {state.lower()}"

    summary = extract_development_summary({'json': value.get('json')})
    if summary['count'] > 0:
        return f"Pull Request: {summary['count']} {summary['state'].lower()}"
    return ''


def _describe(item: Any) -> str:
    if isinstance(item, bool):
        return 'true' if item else 'false'
    if isinstance(item, (dict, list)):
        return json.dumps(item, ensure_ascii=False)
    return str(item)


@dataclass(frozen=True)
class CustomFieldValue:
    """Decoded custom field value tagged with its kind."""

    kind: str
    value: Any = None

    @classmethod
    def decode(cls, raw: Any) -> 'CustomFieldValue':
        """
        Decode a raw JSON value into a tagged value.

        Args:
            raw: Value as returned by the Jira API

        Returns:
            CustomFieldValue
        """
        if raw is None:
            return cls(KIND_EMPTY)
        if isinstance(raw, bool):
            return cls(KIND_BOOLEAN, raw)
        if isinstance(raw, (int, float)):
            return cls(KIND_NUMBER, raw)
        if isinstance(raw, str):
            return cls(KIND_STRING, raw)
        if isinstance(raw, (list, tuple)):
            return cls(KIND_LIST, list(raw))
        if isinstance(raw, dict):
            if is_development_field(raw):
                return cls(KIND_DEVELOPMENT, raw)
            return cls(KIND_OBJECT, raw)
        return cls(KIND_STRING, str(raw))

    def is_empty(self) -> bool:
        """Check whether the value should be treated as not set."""
        if self.kind == KIND_EMPTY:
            return True
        if self.kind == KIND_STRING:
            return self.value == ''
        if self.kind in (KIND_LIST, KIND_OBJECT):
            return len(self.value) == 0
        if self.kind == KIND_DEVELOPMENT:
            return format_development_field(self.value) == ''
        return False

    def format(self) -> str:
        """
        Render the value for the Basic Information section.

        Returns:
            Display string; '' means the field should be hidden
        """
        if self.kind == KIND_EMPTY:
            return NOT_SET

        if self.kind == KIND_STRING:
            if self.value == '':
                return NOT_SET
            # Development fields sometimes arrive already stringified
            if 'pullrequest=' in self.value or '"pullrequest"' in self.value:
                return ''
            return self.value

        if self.kind == KIND_NUMBER:
            if isinstance(self.value, float):
                return f"{self.value:.2f}"
            return str(self.value)

        if self.kind == KIND_BOOLEAN:
            return 'Yes' if self.value else 'No'

        if self.kind == KIND_LIST:
            if not self.value:
                return NOT_SET
            parts = []
            for item in self.value:
                if isinstance(item, dict):
                    if 'name' in item:
                        parts.append(_describe(item['name']))
                    elif 'value' in item:
                        parts.append(_describe(item['value']))
                    else:
                        parts.append(_describe(item))
                else:
                    parts.append(_describe(item))
            return ', '.join(parts)

        if self.kind == KIND_DEVELOPMENT:
            return format_development_field(self.value)

        for key in ('name', 'value', 'displayName'):
            if key in self.value:
                return _describe(self.value[key])
        return _describe(self.value)


def is_custom_field_empty(value: Any) -> bool:
    return CustomFieldValue.decode(value).is_empty()


def format_custom_field_value(value: Any) -> str:
    return CustomFieldValue.decode(value).format()


def format_development_field_with_details(value: Mapping[str, Any],
                                          dev_status: Optional[DevStatusDetail]) -> str:
    """
    Format a development field, enriched with the first pull request's details.

    Args:
        value: Raw development field value
        dev_status: Development details fetched for the issue, if any

    Returns:
        e.g. ``Pull Request: 1 open (Add login) [feature/login]``
    """
    if dev_status is not None and dev_status.detail:
        summary = extract_development_summary(value)
        parts: List[str] = []

        if summary['count'] > 0:
            parts.append(f"Pull Request: {summary['count']} {summary['state'].lower()}")

        for item in dev_status.detail:
            if item.pull_requests:
                pull_request = item.pull_requests[0]
                if pull_request.name:
                    parts.append(f"({pull_request.name})")
                if pull_request.source_branch:
                    parts.append(f"[{pull_request.source_branch}]")
                break

        if parts:
            return ' '.join(parts)

    return format_development_field(value)


def get_all_custom_fields(issue: Optional[JiraIssue]) -> Dict[str, Any]:
    """Return every ``customfield_*`` entry of the issue's raw fields."""
    if issue is None:
        return {}
    return {
        key: value for key, value in issue.raw_fields.items()
        if key.startswith(CUSTOM_FIELD_PREFIX)
    }


def get_sorted_custom_field_keys(custom_fields: Mapping[str, Any]) -> List[str]:
    return sorted(custom_fields)


def format_custom_field_name(field_id: str) -> str:
    """``customfield_10001`` -> ``Custom field 10001``; other IDs are returned unchanged."""
    if field_id.startswith(CUSTOM_FIELD_PREFIX):
        return f"Custom field {field_id[len(CUSTOM_FIELD_PREFIX):]}"
    return field_id


class FieldNameCache(dict):
    """Field ID to human-readable name mapping."""

    @classmethod
    def from_fields(cls, fields: Iterable[Mapping[str, Any]]) -> 'FieldNameCache':
        """Build the cache from the ``/rest/api/2/field`` list."""
        cache = cls()
        for field_info in fields or []:
            field_id = field_info.get('id')
            if field_id:
                cache[field_id] = field_info.get('name', '')
        return cache

    def get_field_name(self, field_id: str) -> str:
        name = self.get(field_id)
        if name:
            return name
        return format_custom_field_name(field_id)


def build_user_mapping_from_issue(issue: Optional[JiraIssue], mapping: Dict[str, str]) -> None:
    """
    Add the issue's people to an account ID to display name mapping.

    Reporter, assignee, comment authors and changelog authors are collected;
    later entries overwrite earlier ones for the same account.

    Args:
        issue: Issue to scan
        mapping: Mapping updated in place
    """
    if issue is None:
        return

    people = [issue.reporter, issue.assignee]
    people.extend(comment.author for comment in issue.comments)
    people.extend(history.author for history in issue.changelog)

    for user in people:
        if user is not None and user.account_id:
            mapping[user.account_id] = user.display_name


def build_user_mapping(issues: Iterable[JiraIssue]) -> Dict[str, str]:
    mapping: Dict[str, str] = {}
    for issue in issues:
        build_user_mapping_from_issue(issue, mapping)
    logger.debug(f"Built user mapping with {len(mapping)} account(s)")
    return mapping


__all__ = [
    'CustomFieldValue',
    'FieldNameCache',
    'NOT_SET',
    'is_development_field',
    'format_development_field',
    'format_development_field_with_details',
    'is_custom_field_empty',
    'format_custom_field_value',
    'format_custom_field_name',
    'get_all_custom_fields',
    'get_sorted_custom_field_keys',
    'build_user_mapping_from_issue',
    'build_user_mapping',
]
