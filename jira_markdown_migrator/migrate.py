#!/usr/bin/env python3
"""
Jira to Markdown Migration Tool - Main CLI Entry Point

This module provides the command-line interface for exporting Jira issues as
Hugo-ready Markdown pages, either straight from Jira or from previously saved
JSON files.
"""

import argparse
import logging
import sys
from typing import List, Optional

from . import __version__
from .config_loader import ConfigLoader, get_nested
from .logger import log_config, log_section, setup_logging
from .orchestrator import MigrationOrchestrator, MigrationReport


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog='jira-markdown-migrator',
        description="Export Jira issues as Markdown pages for Hugo",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Export a single issue
  jira-markdown-migrator issue PROJ-123

  # Export every issue matched by a JQL query
  jira-markdown-migrator search "project = PROJ ORDER BY created DESC" --max 50

  # Use search.default_jql from the config file
  jira-markdown-migrator search

  # Regenerate Markdown from saved JSON
  jira-markdown-migrator convert --input output/json --output site/content

  # Verbose logging
  jira-markdown-migrator -vv issue PROJ-123
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '-c', '--config',
        type=str,
        default='config.toml',
        help='Path to configuration file, TOML or YAML (default: config.toml)'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Increase verbosity (-v for INFO, -vv for DEBUG)'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        help='Also write logs to this file'
    )

    subparsers = parser.add_subparsers(dest='command', metavar='COMMAND')
    subparsers.required = True

    issue_parser = subparsers.add_parser(
        'issue',
        aliases=['i'],
        help='Export a single issue'
    )
    issue_parser.add_argument('issue_key', help='Issue key (e.g., PROJ-123)')
    issue_parser.set_defaults(handler=run_issue)

    search_parser = subparsers.add_parser(
        'search',
        aliases=['s'],
        help='Export issues matched by a JQL query'
    )
    search_parser.add_argument(
        'jql',
        nargs='?',
        default='',
        help='JQL query (default: search.default_jql from the config file)'
    )
    search_parser.add_argument(
        '-m', '--max',
        dest='max_results',
        type=int,
        default=None,
        help='Maximum number of issues to export (default: search.max_results, 100)'
    )
    search_parser.set_defaults(handler=run_search)

    convert_parser = subparsers.add_parser(
        'convert',
        aliases=['conv'],
        help='Convert saved issue JSON to Markdown without contacting Jira'
    )
    convert_parser.add_argument(
        '-i', '--input',
        required=True,
        help='JSON file or directory (searched recursively)'
    )
    convert_parser.add_argument(
        '-o', '--output',
        help='Markdown output directory (default: output.markdown_dir)'
    )
    convert_parser.set_defaults(handler=run_convert)

    return parser


def _finish(report: MigrationReport, logger: logging.Logger) -> int:
    print("\n" + report.format_console_report())
    if report.failed:
        logger.warning(f"Completed with {report.failed} failure(s)")
        return 1
    logger.info("Completed successfully")
    return 0


def run_issue(config: dict, args: argparse.Namespace, logger: logging.Logger) -> int:
    """Export one issue."""
    report = MigrationOrchestrator(config).export_issue(args.issue_key)
    for path in report.output_paths:
        print(f"Wrote {path}")
    return 0


def run_search(config: dict, args: argparse.Namespace, logger: logging.Logger) -> int:
    """Export the issues matched by a JQL query."""
    jql = args.jql
    if not jql:
        jql = get_nested(config, 'search.default_jql', '')
        if not jql:
            raise ValueError(
                "No JQL query given. Pass one as an argument or set search.default_jql in the config file"
            )
        logger.info(f"Using default JQL from config: {jql}")

    max_results = get_nested(config, 'search.max_results', 100)
    report = MigrationOrchestrator(config).export_search(jql, max_results)
    return _finish(report, logger)


def run_convert(config: dict, args: argparse.Namespace, logger: logging.Logger) -> int:
    """Regenerate Markdown from saved JSON."""
    report = MigrationOrchestrator(config).convert_from_json(args.input, args.output)
    return _finish(report, logger)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        logger = setup_logging(verbosity=args.verbose, log_file=args.log_file)

        log_section("Jira to Markdown Migration Tool")
        logger.info(f"Version: {__version__}")

        # Convert only renders local JSON, so Jira credentials are optional there
        needs_jira = args.handler is not run_convert

        logger.info(f"Loading configuration from {args.config}")
        config = ConfigLoader.load(args.config, validate=needs_jira)

        # Merge with CLI arguments (CLI takes precedence); convert's --output is handled separately
        config = ConfigLoader.merge_with_args(config, argparse.Namespace(
            max_results=getattr(args, 'max_results', None),
            verbose=args.verbose
        ))

        log_config(config)

        return args.handler(config, args, logger)

    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}", file=sys.stderr)
        return 2
    except ValueError as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nMigration interrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
