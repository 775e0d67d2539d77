from datetime import datetime
from pathlib import Path

from inkwell import html_utils, utils


def test_slugify_and_titleize():
    assert utils.slugify("Circuit Breakers, Explained!") == "circuit-breakers-explained"
    assert utils.slugify("  Hello   World  ") == "hello-world"
    assert utils.slugify("!!!") == ""
    assert utils.slugify("Café Crème_Brûlée") == "café-crème-brûlée"
    assert utils.slugify("日本語のメモ") == "日本語のメモ"
    assert utils.titleize("2024-01-02-post-title.md") == "Post Title"
    assert utils.titleize("getting_started.md") == "Getting Started"
    assert utils.titleize("---") == "Untitled"


def test_parse_post_filename():
    assert utils.parse_post_filename("2024-01-15-hello-world") == (
        datetime(2024, 1, 15),
        "hello-world",
    )
    assert utils.parse_post_filename("hello-world") is None
    assert utils.parse_post_filename("2024-13-40-bad-date") is None
    assert utils.parse_post_filename("2024-01-15") is None


def test_markdown_extensions_and_path_helpers():
    exts = utils.markdown_extensions({"markdown_ext": "md, Markdown,.mkd"})
    assert exts == {".md", ".markdown", ".mkd"}
    assert utils.markdown_extensions({}) == {".md"}

    assert utils.is_markdown(Path("post.MD"))
    assert utils.is_markdown(Path("post.mkd"), exts)
    assert not utils.is_markdown(Path("post.txt"))
    assert utils.is_html(Path("page.htm"))
    assert not utils.is_html(Path("page.md"))
    assert utils.is_hidden("_drafts")
    assert utils.is_hidden(".git")
    assert not utils.is_hidden("about.md")


def test_ensure_clean_dir_and_relative_posix(tmp_path):
    target = tmp_path / "build"
    target.mkdir()
    (target / "old.txt").write_text("old", encoding="utf-8")
    utils.ensure_clean_dir(target)
    assert list(target.iterdir()) == []

    missing = tmp_path / "missing" / "nested"
    utils.ensure_clean_dir(missing)
    assert missing.is_dir()

    assert utils.relative_posix(tmp_path / "a" / "b.md", tmp_path) == "a/b.md"


def test_html_helpers():
    assert html_utils.escape_html('<a href="x">&</a>') == (
        "&lt;a href=&quot;x&quot;&gt;&amp;&lt;/a&gt;"
    )
    assert html_utils.join_root_url("https://example.com/", "/about/") == (
        "https://example.com/about/"
    )
    assert html_utils.join_root_url("", "about") == "/about"
    assert html_utils.strip_html("<p>Hello <em>there</em>\n friend</p>") == (
        "Hello there friend"
    )


def test_absolutize_html_urls_only_rewrites_root_relative():
    html = (
        '<a href="/about/">About</a>'
        '<img src="relative.png">'
        '<a href="https://other.com/x">x</a>'
        '<a href="#top">top</a>'
        "<a href='mailto:me@example.com'>mail</a>"
    )
    result = html_utils.absolutize_html_urls(html, "https://example.com/blog")
    assert 'href="https://example.com/blog/about/"' in result
    assert 'src="relative.png"' in result
    assert 'href="https://other.com/x"' in result
    assert 'href="#top"' in result
    assert "mailto:me@example.com" in result
    assert html_utils.absolutize_html_urls(html, "") == html


def test_absolutize_html_urls_rewrites_srcset_and_poster():
    html = (
        '<img srcset="/img/a.png 1x, /img/b.png 2x, https://cdn.example.com/c.png 3x">'
        "<video poster='/still.jpg'></video>"
        '<img src="//cdn.example.com/d.png">'
        '<img src="data:image/png;base64,AAAA">'
    )
    result = html_utils.absolutize_html_urls(html, "https://example.com")
    assert (
        'srcset="https://example.com/img/a.png 1x, https://example.com/img/b.png 2x, '
        'https://cdn.example.com/c.png 3x"'
    ) in result
    assert "poster='https://example.com/still.jpg'" in result
    assert 'src="//cdn.example.com/d.png"' in result
    assert 'src="data:image/png;base64,AAAA"' in result


def test_strip_html_decodes_entities():
    assert html_utils.strip_html("<p>Tom &amp; <em>Jerry</em> &lt;3</p>") == "Tom & Jerry <3"
