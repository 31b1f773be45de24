"""Protect code, noformat and inline-code spans before any other markup pass."""

import logging
import re
from typing import Optional, Tuple

from .placeholder_vault import PlaceholderVault

CODE_WITH_LANG_PATTERN = re.compile(r'\{code:([^}]+)\}(.*?)\{code\}', re.DOTALL)
CODE_PATTERN = re.compile(r'\{code\}(.*?)\{code\}', re.DOTALL)
NOFORMAT_PATTERN = re.compile(r'\{noformat\}(.*?)\{noformat\}', re.DOTALL)
INLINE_CODE_PATTERN = re.compile(r'\{\{([^}]+)\}\}')


class CodeProtector:
    """
    Pulls code out of wiki markup and renders it as Markdown code.

    ``{code:lang}``, ``{code}`` and ``{noformat}`` blocks become fenced blocks
    and ``{{text}}`` becomes backtick code. The rendered code is kept in two
    vaults so no later pass rewrites its content.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('jira_markdown_migrator.converters.code_protector')

    def protect(self, text: str) -> Tuple[str, PlaceholderVault, PlaceholderVault]:
        """
        Replace code spans with placeholder tokens.

        Args:
            text: Wiki markup

        Returns:
            Tuple of (protected_text, block_vault, inline_vault)
        """
        blocks = PlaceholderVault('CODEBLOCK', logger=self.logger)
        inline = PlaceholderVault('INLINECODE', logger=self.logger)

        text = blocks.protect(
            text, CODE_WITH_LANG_PATTERN,
            lambda m: f"```{m.group(1)}\n{m.group(2)}\n```"
        )
        text = blocks.protect(text, CODE_PATTERN, lambda m: f"```\n{m.group(1)}\n```")
        text = blocks.protect(text, NOFORMAT_PATTERN, lambda m: f"```\n{m.group(1)}\n```")
        text = inline.protect(text, INLINE_CODE_PATTERN, lambda m: f"`{m.group(1)}`")

        if blocks or inline:
            self.logger.debug(f"Protected {len(blocks)} code block(s) and {len(inline)} inline code span(s)")

        return text, blocks, inline

    @staticmethod
    def restore(text: str, blocks: PlaceholderVault, inline: PlaceholderVault) -> str:
        """Restore code blocks first, then inline code."""
        text = blocks.restore(text)
        return inline.restore(text)


__all__ = ['CodeProtector']
