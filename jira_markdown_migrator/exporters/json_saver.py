"""JSON cache of fetched issue data for offline Markdown regeneration."""

import json
import logging
from pathlib import Path
from typing import List, Optional, Union

from ..models import IssueData


class JsonSaver:
    """Saves and loads ``IssueData`` as ``{json_dir}/{PROJECT}/{KEY}.json``."""

    def __init__(self, output_dir: Union[str, Path], logger: Optional[logging.Logger] = None):
        self.output_dir = Path(output_dir)
        self.logger = logger or logging.getLogger('jira_markdown_migrator.exporters.json_saver')

    def save_issue(self, data: IssueData) -> Path:
        """
        Write issue data as indented UTF-8 JSON.

        Args:
            data: Issue data to save

        Returns:
            Path of the written file

        Raises:
            OSError: If the directory or file cannot be written
        """
        project_dir = self.output_dir / data.issue.project_key
        project_dir.mkdir(parents=True, exist_ok=True)

        output_path = project_dir / f"{data.issue.key}.json"
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(data.to_dict(), f, ensure_ascii=False, indent=2)

        self.logger.debug(f"Saved issue JSON: {output_path}")
        return output_path

    def load_issue(self, json_path: Union[str, Path]) -> IssueData:
        """
        Read issue data written by ``save_issue``.

        Raises:
            OSError: If the file cannot be read
            ValueError: If the file is not valid issue JSON
        """
        with open(json_path, 'r', encoding='utf-8') as f:
            try:
                payload = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON in {json_path}: {e}") from e

        if not isinstance(payload, dict):
            raise ValueError(f"Issue JSON must be an object: {json_path}")
        return IssueData.from_dict(payload)

    @staticmethod
    def find_json_files(input_path: Union[str, Path]) -> List[Path]:
        """
        Collect JSON files from a file or directory path.

        Directories are walked recursively and results sorted for a stable order.

        Raises:
            FileNotFoundError: If the input path does not exist
        """
        path = Path(input_path)
        if not path.exists():
            raise FileNotFoundError(f"Input path not found: {input_path}")
        if path.is_dir():
            return sorted(p for p in path.rglob('*.json') if p.is_file())
        return [path]


__all__ = ['JsonSaver']
