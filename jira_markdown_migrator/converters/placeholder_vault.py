"""Placeholder vault shielding spans of text from later rewrite passes."""

import logging
import re
from typing import Callable, List, Optional, Pattern, Union

logger = logging.getLogger('jira_markdown_migrator.converters.placeholder_vault')


class PlaceholderVault:
    """
    Swaps matched spans for opaque tokens and puts them back later.

    Tokens look like ``__KIND_N__``. An index whose token already occurs in
    the source text is skipped, so a literal token in the input never takes a
    stored value.

    KIND must be a single upper-case word: with no inner underscores, every
    underscore of a token sits next to another underscore or next to the
    token's own ``__`` framing, so the italic pass never treats part of a
    token as ``_text_``.
    """

    KIND_PATTERN = re.compile(r'^[A-Z]+$')

    def __init__(self, kind: str, logger: Optional[logging.Logger] = None):
        """
        Initialize an empty vault.

        Args:
            kind: Token kind, e.g. ``CODEBLOCK``
            logger: Optional logger instance

        Raises:
            ValueError: If kind is not a single upper-case word
        """
        if not self.KIND_PATTERN.match(kind):
            raise ValueError(f"Placeholder kind must be a single upper-case word: {kind!r}")

        self.kind = kind
        self.logger = logger or logging.getLogger('jira_markdown_migrator.converters.placeholder_vault')
        self._tokens: List[str] = []
        self._values: List[str] = []
        self._next_index = 0

    def __len__(self) -> int:
        return len(self._tokens)

    @property
    def tokens(self) -> List[str]:
        """Tokens in creation order."""
        return list(self._tokens)

    def _mint(self, avoid: str) -> str:
        while True:
            token = f"__{self.kind}_{self._next_index}__"
            self._next_index += 1
            if token not in avoid:
                return token

    def stash(self, value: str, avoid: str = '') -> str:
        """
        Store an already rendered value and return its token.

        Args:
            value: Text that should come back on restore
            avoid: Source text the token must not already occur in

        Returns:
            Freshly minted token
        """
        token = self._mint(avoid)
        self._tokens.append(token)
        self._values.append(value)
        return token

    def protect(
        self,
        text: str,
        pattern: Union[str, Pattern[str]],
        render: Optional[Callable[[re.Match], str]] = None
    ) -> str:
        """
        Replace every non-overlapping match, left to right, with a token.

        Args:
            text: Source text
            pattern: Regex (string or compiled) selecting spans to protect
            render: Builds the stored value from a match; defaults to the
                matched text itself

        Returns:
            Text with each match swapped for its token
        """
        compiled = re.compile(pattern) if isinstance(pattern, str) else pattern

        def _replace(match: re.Match) -> str:
            value = render(match) if render else match.group(0)
            return self.stash(value, avoid=text)

        return compiled.sub(_replace, text)

    def restore(self, text: str) -> str:
        """
        Put each stored value back in place of its token, once, in order.

        Tokens in the text that this vault never issued are left untouched.

        Args:
            text: Text containing tokens

        Returns:
            Text with stored values restored
        """
        for token, value in zip(self._tokens, self._values):
            if token not in text:
                self.logger.debug(f"Placeholder {token} not found during restore")
                continue
            text = text.replace(token, value, 1)
        return text


__all__ = ['PlaceholderVault']
