"""Tests for Jira table extraction and rendering."""

import pytest

from jira_markdown_migrator.converters import PlaceholderVault, TableConverter
from jira_markdown_migrator.converters.table_converter import is_data_line, is_header_line, is_markdown_table_start


class TestTableDetection:
    """Line classification."""

    def test_header_line(self):
        assert is_header_line('||a||b||')
        assert not is_header_line('||a||b')
        assert not is_header_line('|a|b|')

    def test_markdown_table_start(self):
        assert is_markdown_table_start(['| a |', '| --- |'], 0)
        assert not is_markdown_table_start(['| a |', '| b |'], 0)
        assert not is_markdown_table_start(['| a |'], 0)

    def test_data_line(self):
        assert is_data_line('|a|b|')
        assert is_data_line('|unterminated')
        assert not is_data_line('||a||')
        assert not is_data_line('text')


class TestTableConverter:
    """Headered, headerless and multi-line tables."""

    def setup_method(self):
        self.converter = TableConverter()

    def test_headered_table(self):
        result = self.converter.convert('||Name||Age||\n|Taro|30|\n|Hanako|25|')

        assert result == (
            '| Name | Age |\n'
            '| ------ | ------ |\n'
            '| Taro | 30 |\n'
            '| Hanako | 25 |'
        )

    def test_headerless_table(self):
        result = self.converter.convert('|a|b|c|')

        assert result == '|   |   |   |\n| ------ | ------ | ------ |\n| a | b | c |'

    def test_multi_line_cell(self):
        result = self.converter.convert('||Step||\n|first line\nsecond line|')

        assert result == '| Step |\n| ------ |\n| first line<br>second line |'

    def test_surrounding_text_is_kept(self):
        result = self.converter.convert('Before\n||h||\n|v|\n\nAfter')

        assert result == 'Before\n| h |\n| ------ |\n| v |\n\nAfter'

    def test_table_ends_at_plain_text(self):
        result = self.converter.convert('||h||\n|v|\nnot a row')

        assert result.endswith('| v |\nnot a row')

    def test_headerless_unterminated_row_is_dropped(self):
        result = self.converter.convert('|a|b|\n|broken\n\ntext')

        assert result == '|   |   |\n| ------ | ------ |\n| a | b |\n\ntext'

    def test_extract_tables_with_vault(self):
        vault = PlaceholderVault('TABLE')
        text, tables = self.converter.extract_tables('intro\n||h||\n|v|', vault)

        assert text == 'intro\n__TABLE_0__'
        assert tables == ['||h||\n|v|']
        assert vault.restore(text) == 'intro\n| h |\n| ------ |\n| v |'

    def test_markdown_table_passes_through(self):
        markdown = 'text\n| a | b |\n| --- | :---: |\n| 1 | 2 |\n\nafter'

        assert self.converter.convert(markdown) == markdown

    def test_dash_cells_are_still_a_jira_table(self):
        result = self.converter.convert('|x|y|\n|-|-|')

        assert result == '|   |   |\n| ------ | ------ |\n| x | y |\n| - | - |'

    @pytest.mark.parametrize('markup', [
        '||H1||H2||\n|A|B|',
        '|a|b|c|',
        '||Step||\n|first line\nsecond line|',
        'Before\n||h||\n|v|\n\nAfter\n|x|y|',
    ])
    def test_conversion_is_idempotent(self, markup):
        once = self.converter.convert(markup)

        assert self.converter.convert(once) == once

    def test_convert_table_directly(self):
        assert self.converter.convert_table('||a||b||') == '| a | b |\n| ------ | ------ |'
