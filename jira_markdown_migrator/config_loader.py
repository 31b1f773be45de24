"""Configuration loader with TOML/YAML support and environment variable substitution."""

import copy
import os
import re
import sys
from typing import Any, Dict
from urllib.parse import urlparse

import yaml

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

APPLICATION_TYPES = ('github', 'bitbucket', 'stash', 'gitlab')
API_TYPES = ('rest', 'graphql')

DEFAULT_CONFIG: Dict[str, Any] = {
    'output': {
        'markdown_dir': 'output/markdown',
        'attachments_dir': 'output/attachments',
        'json_dir': '',
    },
    'search': {
        'default_jql': '',
        'max_results': 100,
    },
    'development': {
        'enabled': False,
        'application_type': 'bitbucket',
        'api_type': 'rest',
    },
    'display': {
        'hidden_custom_fields': [],
        'rank_field_id': 'customfield_10019',
    },
    'deletedUsers': {},
    'advanced': {
        'request_timeout': 30,
        'max_retries': 3,
        'retry_backoff_factor': 1.0,
    },
}


class ConfigLoader:
    """Handles loading and validation of configuration files."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: str, validate: bool = True) -> Dict[str, Any]:
        """
        Load configuration from a TOML or YAML file.

        Environment variables written as ``${NAME}`` are substituted, then
        defaults are filled in for every optional setting.

        Args:
            config_path: Path to ``.toml``, ``.yaml`` or ``.yml`` file
            validate: Run ``validate`` on the result

        Returns:
            Parsed configuration dictionary

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If the file cannot be parsed or fails validation
        """
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        config_data = cls._read_file(config_path)

        if not isinstance(config_data, dict):
            raise ValueError("Configuration file must contain a dictionary")

        # Substitute environment variables recursively
        config_data = cls._substitute_env_vars_recursive(config_data)
        config_data = cls.apply_defaults(config_data)

        if validate:
            cls.validate(config_data)
        return config_data

    @staticmethod
    def _read_file(config_path: str) -> Any:
        extension = os.path.splitext(config_path)[1].lower()

        if extension in ('.yaml', '.yml'):
            with open(config_path, 'r', encoding='utf-8') as f:
                try:
                    return yaml.safe_load(f)
                except yaml.YAMLError as e:
                    raise ValueError(f"Failed to parse YAML configuration {config_path}: {e}") from e

        with open(config_path, 'rb') as f:
            try:
                return tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ValueError(f"Failed to parse TOML configuration {config_path}: {e}") from e

    @staticmethod
    def apply_defaults(config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Fill in defaults for missing or empty optional settings.

        Args:
            config: Parsed configuration

        Returns:
            New configuration dictionary with defaults applied
        """
        merged = copy.deepcopy(config)
        for section, defaults in DEFAULT_CONFIG.items():
            if not isinstance(defaults, dict):
                continue
            current = merged.get(section)
            if not isinstance(current, dict):
                current = {}
                merged[section] = current
            for key, default in defaults.items():
                # An empty string counts as unset, except for json_dir where it disables JSON
                if key not in current or (current[key] == '' and default != ''):
                    current[key] = copy.deepcopy(default)
        return merged

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> None:
        """
        Validate configuration for required fields and correct values.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ValueError: If validation fails
        """
        cls._validate_required_field(config, 'jira.url')
        cls._validate_required_field(config, 'jira.email')
        cls._validate_required_field(config, 'jira.api_token')
        cls._validate_url(get_nested(config, 'jira.url'), 'jira.url')

        application_type = get_nested(config, 'development.application_type', 'bitbucket')
        if application_type not in APPLICATION_TYPES:
            raise ValueError(
                f"development.application_type must be one of: {', '.join(APPLICATION_TYPES)}"
            )

        api_type = get_nested(config, 'development.api_type', 'rest')
        if api_type not in API_TYPES:
            raise ValueError("development.api_type must be 'rest' or 'graphql'")

        enabled = get_nested(config, 'development.enabled', False)
        if not isinstance(enabled, bool):
            raise ValueError("development.enabled must be a boolean")

        hidden = get_nested(config, 'display.hidden_custom_fields', [])
        if not isinstance(hidden, list):
            raise ValueError("display.hidden_custom_fields must be a list of field IDs")

        deleted_users = config.get('deletedUsers', {})
        if not isinstance(deleted_users, dict):
            raise ValueError("deletedUsers must map account IDs to display names")

        # Validate timeout settings
        timeout = get_nested(config, 'advanced.request_timeout', 30)
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ValueError("advanced.request_timeout must be a positive number")

        max_retries = get_nested(config, 'advanced.max_retries', 3)
        if isinstance(max_retries, bool) or not isinstance(max_retries, int) or max_retries < 0:
            raise ValueError("advanced.max_retries must be a non-negative integer")

        max_results = get_nested(config, 'search.max_results', 100)
        if isinstance(max_results, bool) or not isinstance(max_results, int) or max_results < 1:
            raise ValueError("search.max_results must be a positive integer")

    @classmethod
    def merge_with_args(cls, config: Dict[str, Any], args) -> Dict[str, Any]:
        """
        Merge configuration file with CLI arguments.
        CLI arguments take precedence over config file values.

        Args:
            config: Base configuration dictionary
            args: CLI arguments with attributes matching config keys

        Returns:
            Merged configuration dictionary
        """
        merged = copy.deepcopy(config)

        # Ensure nested dictionaries exist
        for section in ('output', 'search', 'logging'):
            if section not in merged:
                merged[section] = {}

        if getattr(args, 'output', None):
            merged['output']['markdown_dir'] = args.output

        if getattr(args, 'max_results', None):
            merged['search']['max_results'] = args.max_results

        if getattr(args, 'verbose', 0):
            merged['logging']['level'] = 'DEBUG' if args.verbose > 1 else 'INFO'

        return merged

    @classmethod
    def _substitute_env_vars_recursive(cls, data: Any) -> Any:
        """Recursively substitute environment variables in data structure."""
        if isinstance(data, dict):
            return {key: cls._substitute_env_vars_recursive(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [cls._substitute_env_vars_recursive(item) for item in data]
        elif isinstance(data, str):
            return cls._substitute_env_vars(data)
        else:
            return data

    @classmethod
    def _substitute_env_vars(cls, value: str) -> str:
        """Substitute environment variables in a string value."""
        def replace_match(match):
            env_value = os.getenv(match.group(1))
            return env_value if env_value is not None else match.group(0)

        return cls.ENV_VAR_PATTERN.sub(replace_match, value)

    @staticmethod
    def _validate_required_field(config_section: dict, field: str) -> None:
        """Validate that a required field exists and has a value."""
        value = get_nested(config_section, field)
        if value is None or value == '':
            raise ValueError(f"Missing required configuration: {field}")

        # Check for unsubstituted environment variables
        if isinstance(value, str) and '${' in value:
            match = ConfigLoader.ENV_VAR_PATTERN.search(value)
            var_name = match.group(1) if match else value
            raise ValueError(
                f"Configuration field '{field}' contains unsubstituted environment variable: {value}. "
                f"Please set the {var_name} environment variable or provide a value in config file."
            )

    @staticmethod
    def _validate_url(url: str, field_name: str) -> None:
        """Validate URL format."""
        parsed = urlparse(url)
        if not parsed.scheme or parsed.scheme not in ['http', 'https']:
            raise ValueError(f"{field_name} must use http or https scheme: {url}")
        if not parsed.netloc:
            raise ValueError(f"{field_name} missing hostname: {url}")


def get_nested(config: dict, path: str, default: Any = None) -> Any:
    """Safely retrieve nested configuration values using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "jira.url")
        default: Default value if path doesn't exist

    Returns:
        Value at the nested path or default
    """
    value = config
    for key in path.split('.'):
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default
    return value


__all__ = ['ConfigLoader', 'get_nested', 'DEFAULT_CONFIG']
