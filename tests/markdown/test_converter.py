import pytest

from resilient_fetch.config.config import ConversionOptions
from resilient_fetch.errors.config import ConfigurationError
from resilient_fetch.markdown import converter
from resilient_fetch.markdown.converter import FALLBACK_TEMPLATE, convert_to_markdown
from resilient_fetch.markdown.preprocess import MarkdownToken, preprocess_html


def test_heading_and_bold():
    markdown = convert_to_markdown("<h1>Test Header</h1><p>Paragraph with <strong>bold</strong> text.</p>")

    assert "# Test Header" in markdown
    assert "**bold**" in markdown


def test_setext_headings():
    markdown = convert_to_markdown("<h1>Title</h1>", {"heading_style": "setext"})

    assert markdown.strip() == "Title\n====="


def test_emphasis_delimiters():
    markdown = convert_to_markdown("<p><em>soft</em> and <b>loud</b></p>", ConversionOptions(em_delimiter="*", strong_delimiter="__"))

    assert markdown.strip() == "*soft* and __loud__"


def test_bullet_list_marker():
    markdown = convert_to_markdown("<ul><li>Item 1</li><li>Item 2</li></ul>")

    assert "- Item 1" in markdown
    assert "- Item 2" in markdown


def test_horizontal_rule():
    assert "---" in convert_to_markdown("<p>a</p><hr><p>b</p>")


def test_fenced_code_block_keeps_language():
    markdown = convert_to_markdown('<pre><code class="language-javascript">const x = 1;</code></pre>')

    assert "```javascript\nconst x = 1;\n```" in markdown


def test_code_block_without_language():
    markdown = convert_to_markdown("<pre><code>\n  print('hi')\n</code></pre>")

    assert "```\nprint('hi')\n```" in markdown


def test_indented_code_block():
    markdown = convert_to_markdown("<pre><code>line one\nline two</code></pre>", {"code_block_style": "indented"})

    assert "    line one\n    line two" in markdown
    assert "```" not in markdown


def test_inline_code_uses_backticks():
    assert "`x = 1`" in convert_to_markdown("<p>Set <code>x = 1</code> first.</p>")


def test_table():
    html = """
    <table>
      <thead><tr><th>Name</th><th>Age</th></tr></thead>
      <tbody><tr><td>Alice</td><td>30</td></tr><tr><td>Bob</td><td>41</td></tr></tbody>
    </table>
    """

    lines = convert_to_markdown(html).strip().splitlines()

    assert lines == [
        "| Name | Age |",
        "| :---: | :---: |",
        "| Alice | 30 |",
        "| Bob | 41 |",
    ]


def test_table_without_thead_uses_first_row():
    html = "<table><tr><th>Key</th><th>Value</th></tr><tr><td>a</td><td>1</td></tr></table>"

    lines = convert_to_markdown(html).strip().splitlines()

    assert lines == ["| Key | Value |", "| :---: | :---: |", "| a | 1 |"]


def test_images_become_inline_tokens():
    markdown = convert_to_markdown('<p>See <img src="/logo_v2.png"> and <img alt="chart" src="c.png"></p>')

    assert "![Image](/logo_v2.png)" in markdown
    assert "![chart](c.png)" in markdown


def test_scripts_and_styles_are_removed():
    markdown = convert_to_markdown("<style>p {color: red}</style><p>Visible</p><script>alert('x')</script>")

    assert markdown.strip() == "Visible"


@pytest.mark.parametrize("html", ["<div><p>unclosed <b>bold", "</p></div><<>>", "", "<table><tr></table>"])
def test_malformed_html_never_raises(html):
    assert isinstance(convert_to_markdown(html), str)


def test_conversion_failure_returns_fallback(monkeypatch):
    def explode(html):
        msg = "parser broke"
        raise RuntimeError(msg)

    monkeypatch.setattr(converter, "preprocess_html", explode)

    markdown = convert_to_markdown("<p>hello</p>")

    assert markdown == FALLBACK_TEMPLATE.format(html="<p>hello</p>")
    assert markdown.startswith("[Conversion Error] Unable to convert content")
    assert "```html\n<p>hello</p>\n```" in markdown


def test_preprocess_keeps_only_language_classes():
    soup = preprocess_html('<div id="main" class="wrapper"><pre class="hl language-py"><code class="language-py x">1</code></pre></div>')

    assert soup.div.attrs == {}
    assert soup.pre["class"] == ["language-py"]
    assert soup.code["class"] == ["language-py"]


def test_preprocess_replaces_images():
    soup = preprocess_html('<p><img alt="a" src="b.png"></p>')

    token = soup.p.contents[0]
    assert isinstance(token, MarkdownToken)
    assert token == "![a](b.png)"


def test_nested_table_stays_in_its_cell():
    html = "<table><tr><th>A</th><th>B</th></tr><tr><td>x</td><td><table><tr><td>in</td></tr></table></td></tr></table>"

    lines = convert_to_markdown(html).strip().splitlines()

    assert lines == ["| A | B |", "| :---: | :---: |", "| x | in |"]


def test_invalid_options_raise_configuration_error():
    with pytest.raises(ConfigurationError):
        convert_to_markdown("<p>x</p>", {"heading_style": "fancy"})
