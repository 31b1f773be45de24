"""Jira block macro converter producing Markdown quotes and styled HTML."""

import logging
import re
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger('jira_markdown_migrator.converters.macro_converter')

STATUS_LABEL_PATTERN = re.compile(
    r'\{color:(#[0-9a-fA-F]{6})\}\*\[\s*([^\]]+?)\s*\]\*\{color\}', re.IGNORECASE
)
QUOTE_PATTERN = re.compile(r'\{quote\}(.*?)\{quote\}', re.DOTALL)
COLOR_PATTERN = re.compile(r'\{color:([^}]+)\}(.*?)\{color\}', re.DOTALL)
STATUS_PATTERN = re.compile(r'\{status(?::colou?r=([^}]+))?\}([^{]*)\{status\}', re.IGNORECASE)
PANEL_WITH_PARAMS_PATTERN = re.compile(r'\{panel:([^}]+)\}(.*?)\{panel\}', re.DOTALL)
PANEL_PATTERN = re.compile(r'\{panel\}(.*?)\{panel\}', re.DOTALL)
PANEL_PARAM_PATTERN = re.compile(r'(\w+)=([^|]+)')

ADMONITION_TYPES = ('note', 'info', 'warning', 'tip')
ADMONITION_PATTERNS = {
    name: re.compile(r'\{' + name + r'\}(.*?)\{' + name + r'\}', re.DOTALL)
    for name in ADMONITION_TYPES
}

STATUS_LABEL_CLASSES = {
    '#ff991f': 'status-label-warning',
    '#00b8d9': 'status-label-teal',
    '#36b37e': 'status-label-success',
    '#ff5630': 'status-label-danger',
    '#6554c0': 'status-label-purple',
    '#97a0af': 'status-label-gray',
}

STATUS_COLOR_CLASSES = {
    'green': 'status-green',
    'yellow': 'status-yellow',
    'red': 'status-red',
    'blue': 'status-blue',
    'blue-gray': 'status-blue',
    'grey': 'status-gray',
    'gray': 'status-gray',
}

PANEL_BG_CLASSES = {
    '#ffebe6': 'panel-error',
    '#e3fcef': 'panel-success',
    '#fffae6': 'panel-warning',
    '#deebff': 'panel-info',
}

ADMONITION_CLASSES = {
    'note': 'panel-note',
    'info': 'panel-info',
    'warning': 'panel-warning',
    'tip': 'panel-success',
}


def map_status_color(color: str) -> str:
    """Map a status macro colour name to its CSS class, or '' if unknown."""
    return STATUS_COLOR_CLASSES.get((color or '').strip().lower(), '')


def get_panel_class(bg_color: str) -> str:
    """
    Pick the semantic panel class for a background colour.

    Args:
        bg_color: Colour as written in the macro, with or without '#'

    Returns:
        One of panel-error, panel-success, panel-warning, panel-info
    """
    bg_color = (bg_color or '').strip().lower()
    if not bg_color.startswith('#'):
        bg_color = '#' + bg_color
    return PANEL_BG_CLASSES.get(bg_color, 'panel-info')


def parse_panel_params(param_str: str) -> Dict[str, str]:
    """Parse ``key=value|key=value`` panel parameters into a dict."""
    params = {}
    for match in PANEL_PARAM_PATTERN.finditer(param_str):
        params[match.group(1).strip()] = match.group(2).strip()
    return params


def get_admonition_class(admonition_type: str) -> str:
    return ADMONITION_CLASSES.get(admonition_type.lower(), 'panel-info')


class MacroConverter:
    """Converts Jira ``{macro}...{macro}`` blocks, one fixed-order pass per macro."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        """Initialize macro converter with optional logger."""
        self.logger = logger or logging.getLogger('jira_markdown_migrator.converters.macro_converter')

        # Order matters: the status-label form is a specialised {color} block
        self.macro_passes: List[Tuple[str, Any]] = [
            ('status_label', self.convert_status_labels),
            ('quote', self.convert_quotes),
            ('color', self.convert_colors),
            ('status', self.convert_statuses),
            ('panel', self.convert_panels),
            ('admonition', self.convert_admonitions),
        ]

    def convert(self, text: str) -> Tuple[str, Dict[str, Any]]:
        """
        Run every macro pass over the text.

        Args:
            text: Wiki markup with code already protected

        Returns:
            Tuple of (converted text, conversion stats)
        """
        stats: Dict[str, Any] = {'macros_converted': 0, 'by_type': {}}

        for macro_name, convert_pass in self.macro_passes:
            text, count = convert_pass(text)
            if count:
                stats['macros_converted'] += count
                stats['by_type'][macro_name] = count

        if stats['macros_converted']:
            self.logger.debug(f"Macro conversion: {stats['macros_converted']} converted {stats['by_type']}")
        return text, stats

    def convert_status_labels(self, text: str) -> Tuple[str, int]:
        """``{color:#HEX}*[ text ]*{color}`` -> status-label span."""
        def _replace(match: re.Match) -> str:
            label = match.group(2)
            class_name = STATUS_LABEL_CLASSES.get(match.group(1).lower())
            if class_name:
                return f'<span class="status-label {class_name}">{label}</span>'
            return f'<span class="status-label">{label}</span>'

        return STATUS_LABEL_PATTERN.subn(_replace, text)

    def convert_quotes(self, text: str) -> Tuple[str, int]:
        """``{quote}...{quote}`` -> Markdown blockquote, one ``>`` per line."""
        def _replace(match: re.Match) -> str:
            quoted = []
            for line in match.group(1).split('\n'):
                quoted.append(f"> {line}" if line.strip() else ">")
            return '\n'.join(quoted)

        return QUOTE_PATTERN.subn(_replace, text)

    def convert_colors(self, text: str) -> Tuple[str, int]:
        """``{color:VALUE}...{color}`` -> inline-styled span, VALUE kept verbatim."""
        return COLOR_PATTERN.subn(
            lambda m: f'<span style="color:{m.group(1)}">{m.group(2)}</span>', text
        )

    def convert_statuses(self, text: str) -> Tuple[str, int]:
        """``{status:colour=Green}Done{status}`` -> status span."""
        def _replace(match: re.Match) -> str:
            color_class = map_status_color(match.group(1) or '')
            if color_class:
                return f'<span class="status {color_class}">{match.group(2)}</span>'
            return f'<span class="status">{match.group(2)}</span>'

        return STATUS_PATTERN.subn(_replace, text)

    def convert_panels(self, text: str) -> Tuple[str, int]:
        """``{panel:title=T|bgColor=#hex}...{panel}`` and bare ``{panel}`` -> panel div."""
        def _replace_with_params(match: re.Match) -> str:
            params = parse_panel_params(match.group(1))
            panel_class = get_panel_class(params.get('bgColor', ''))
            title = params.get('title', '')
            body = match.group(2)
            if title:
                return (
                    f'<div class="panel {panel_class}"><div class="panel-title">{title}</div>'
                    f'<div class="panel-body">{body}</div></div>'
                )
            return f'<div class="panel {panel_class}"><div class="panel-body">{body}</div></div>'

        text, with_params = PANEL_WITH_PARAMS_PATTERN.subn(_replace_with_params, text)
        text, plain = PANEL_PATTERN.subn(
            lambda m: f'<div class="panel panel-info"><div class="panel-body">{m.group(1)}</div></div>',
            text
        )
        return text, with_params + plain

    def convert_admonitions(self, text: str) -> Tuple[str, int]:
        """``{note}``, ``{info}``, ``{warning}``, ``{tip}`` -> panel div."""
        total = 0
        for admonition_type in ADMONITION_TYPES:
            panel_class = get_admonition_class(admonition_type)
            text, count = ADMONITION_PATTERNS[admonition_type].subn(
                lambda m, c=panel_class: f'<div class="panel {c}"><div class="panel-body">{m.group(1)}</div></div>',
                text
            )
            total += count
        return text, total


__all__ = [
    'MacroConverter',
    'map_status_color',
    'get_panel_class',
    'parse_panel_params',
    'get_admonition_class',
]
