try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from basecamp_mcp.utils.markdown import html_to_markdown


def test_inline_formatting_and_links() -> None:
    html = '<p><strong>Hi</strong> <a href="https://x">there</a></p>'

    assert html_to_markdown(html) == "**Hi** [there](https://x)\n\n"


@pytest.mark.parametrize("html", [None, "", "   \n"])
def test_empty_input_gives_empty_string(html) -> None:
    assert html_to_markdown(html) == ""


@pytest.mark.parametrize(
    ("html", "expected"),
    [
        ("<em>soon</em> and <i>later</i>", "*soon* and *later*"),
        ("<b>bold</b>", "**bold**"),
        ("run <code>make test</code>", "run `make test`"),
        ("<h1>Title</h1><p>Body</p>", "# Title\n\nBody\n\n"),
        ("<h3>Notes</h3>", "### Notes\n\n"),
        ("line one<br>line two", "line one\nline two"),
        ("<div>first</div><div>second</div>", "first\nsecond\n"),
        ("<pre>a = 1</pre>", "```\na = 1\n```\n"),
        ("<blockquote>Quoted</blockquote>", "> Quoted\n\n"),
        ("<hr>", "---\n"),
    ],
)
def test_basic_elements(html: str, expected: str) -> None:
    assert html_to_markdown(html) == expected


def test_lists() -> None:
    assert html_to_markdown("<ul><li>One</li><li>Two</li></ul>") == "- One\n- Two\n"
    assert html_to_markdown("<ol><li>A</li><li>B</li></ol>") == "1. A\n2. B\n"


def test_basecamp_custom_elements() -> None:
    html = (
        '<bc-attachment filename="report.pdf" content-type="application/pdf">'
        "</bc-attachment> <mention>Ana</mention> <bc-gallery></bc-gallery>"
    )

    assert html_to_markdown(html) == (
        "[Attachment: report.pdf (application/pdf)] [@Ana] [Gallery]"
    )
    assert html_to_markdown("<bc-attachment></bc-attachment>") == "[Attachment]"


def test_output_never_contains_tags() -> None:
    html = "<div><script>alert(1)</script>&lt;b&gt;x&lt;/b&gt;<custom>kept</custom></div>"

    result = html_to_markdown(html)

    assert result == "xkept\n"
    assert "<" not in result


def test_malformed_markup_is_tolerated() -> None:
    result = html_to_markdown("<p>unclosed <strong>bold")

    assert "**bold**" in result
    assert "<" not in result


def test_runs_of_blank_lines_collapse() -> None:
    assert html_to_markdown("<p>a</p><br><br><br><p>b</p>") == "a\n\nb\n\n"
