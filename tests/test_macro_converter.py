"""Tests for Jira block macro conversion."""

import unittest

from jira_markdown_migrator.converters.macro_converter import (
    MacroConverter,
    get_admonition_class,
    get_panel_class,
    map_status_color,
    parse_panel_params,
)


class TestMacroConverter(unittest.TestCase):
    def setUp(self):
        self.converter = MacroConverter()

    def test_status_label(self):
        """Test coloured bracket labels become status-label spans."""
        text, stats = self.converter.convert('{color:#FF991F}*[ IN PROGRESS ]*{color}')

        self.assertEqual(
            '<span class="status-label status-label-warning">IN PROGRESS</span>', text
        )
        self.assertEqual(1, stats['by_type']['status_label'])

    def test_status_label_with_unknown_colour(self):
        text, _ = self.converter.convert('{color:#123456}*[ CUSTOM ]*{color}')

        self.assertEqual('<span class="status-label">CUSTOM</span>', text)

    def test_quote(self):
        text, _ = self.converter.convert('{quote}first\n\nsecond{quote}')

        self.assertEqual('> first\n>\n> second', text)

    def test_color(self):
        text, _ = self.converter.convert('{color:red}warning{color}')

        self.assertEqual('<span style="color:red">warning</span>', text)

    def test_status_with_colour(self):
        text, _ = self.converter.convert('{status:colour=Green}Done{status}')

        self.assertEqual('<span class="status status-green">Done</span>', text)

    def test_status_with_american_spelling(self):
        text, _ = self.converter.convert('{status:color=Yellow}Review{status}')

        self.assertEqual('<span class="status status-yellow">Review</span>', text)

    def test_status_without_colour(self):
        text, _ = self.converter.convert('{status}Open{status}')

        self.assertEqual('<span class="status">Open</span>', text)

    def test_panel_with_title_and_background(self):
        text, _ = self.converter.convert('{panel:title=Heads up|bgColor=#FFEBE6}Broken{panel}')

        self.assertEqual(
            '<div class="panel panel-error"><div class="panel-title">Heads up</div>'
            '<div class="panel-body">Broken</div></div>',
            text
        )

    def test_panel_without_title(self):
        text, _ = self.converter.convert('{panel:bgColor=#fffae6}Careful{panel}')

        self.assertEqual(
            '<div class="panel panel-warning"><div class="panel-body">Careful</div></div>', text
        )

    def test_plain_panel(self):
        text, _ = self.converter.convert('{panel}Body{panel}')

        self.assertEqual(
            '<div class="panel panel-info"><div class="panel-body">Body</div></div>', text
        )

    def test_admonitions(self):
        text, stats = self.converter.convert('{note}N{note}\n{tip}T{tip}\n{warning}W{warning}')

        self.assertIn('<div class="panel panel-note"><div class="panel-body">N</div></div>', text)
        self.assertIn('<div class="panel panel-success"><div class="panel-body">T</div></div>', text)
        self.assertIn('<div class="panel panel-warning"><div class="panel-body">W</div></div>', text)
        self.assertEqual(3, stats['by_type']['admonition'])
        self.assertEqual(3, stats['macros_converted'])

    def test_unclosed_macro_is_left_literal(self):
        text, stats = self.converter.convert('{quote}never closed')

        self.assertEqual('{quote}never closed', text)
        self.assertEqual(0, stats['macros_converted'])

    def test_second_pass_changes_nothing(self):
        """Converted macros contain no macro syntax left to convert."""
        samples = [
            '{color:#FF991F}*[ IN PROGRESS ]*{color}',
            '{quote}first\n\nsecond{quote}',
            '{color:red}warning{color}',
            '{status:colour=Green}Done{status}',
            '{panel:title=Heads up|bgColor=#FFEBE6}Broken{panel}',
            '{note}N{note}\n{tip}T{tip}\n{warning}W{warning}',
            '{quote}never closed',
        ]
        for sample in samples:
            with self.subTest(sample=sample):
                once, _ = self.converter.convert(sample)
                twice, stats = self.converter.convert(once)

                self.assertEqual(once, twice)
                self.assertEqual(0, stats['macros_converted'])


class TestMacroHelpers(unittest.TestCase):
    def test_map_status_color(self):
        self.assertEqual('status-green', map_status_color('Green'))
        self.assertEqual('status-blue', map_status_color('blue-gray'))
        self.assertEqual('status-gray', map_status_color('grey'))
        self.assertEqual('', map_status_color('purple'))

    def test_get_panel_class(self):
        self.assertEqual('panel-error', get_panel_class('#FFEBE6'))
        self.assertEqual('panel-success', get_panel_class('e3fcef'))
        self.assertEqual('panel-info', get_panel_class('#ffffff'))
        self.assertEqual('panel-info', get_panel_class(''))

    def test_parse_panel_params(self):
        params = parse_panel_params('title=My Panel|borderStyle=solid|bgColor=#DEEBFF')

        self.assertEqual({'title': 'My Panel', 'borderStyle': 'solid', 'bgColor': '#DEEBFF'}, params)

    def test_get_admonition_class(self):
        self.assertEqual('panel-note', get_admonition_class('NOTE'))
        self.assertEqual('panel-info', get_admonition_class('unknown'))


if __name__ == '__main__':
    unittest.main()
