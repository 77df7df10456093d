from memochat.render import render_markdown_safe


def test_markdown_is_rendered() -> None:
    html = render_markdown_safe("**bold** and `code`")

    assert "<strong>bold</strong>" in html
    assert "<code>code</code>" in html


def test_scripts_and_handlers_are_stripped() -> None:
    html = render_markdown_safe('hi <script>alert(1)</script> <img src="x" onerror="alert(1)">')

    assert "<script" not in html
    assert "onerror" not in html


def test_links_get_safe_rel_and_bad_schemes_are_dropped() -> None:
    html = render_markdown_safe('[site](https://example.com) <a href="javascript:alert(1)">evil</a>')

    assert 'href="https://example.com"' in html
    assert 'rel="noopener noreferrer"' in html
    assert "javascript:" not in html


def test_non_string_input_renders_empty() -> None:
    assert render_markdown_safe(None) == ""
