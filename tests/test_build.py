import shutil
from pathlib import Path

import pytest

from inkwell.build import BuildError, build_site, clean_site, load_data
from inkwell.config import ConfigError


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def create_blog(tmp_path: Path) -> Path:
    root = tmp_path / "blog"
    write(
        root / "_config.yml",
        "title: Field Notes\n"
        "description: Notes on systems\n"
        "author: Ada\n"
        "url: https://example.com\n"
        "plugins: [jekyll-feed, jekyll-sitemap, jekyll-seo-tag]\n",
    )
    write(
        root / "_posts" / "2024-01-15-hello-world.md",
        "---\ntitle: Hello World\ncategories: ops\n---\n"
        "Intro with [about]({{ '/about/' | relative_url }}).\n\nMore text.\n",
    )
    write(
        root / "_posts" / "2024-02-01-second.md",
        "---\ntitle: Second\nexcerpt_separator: <!--more-->\n---\nTeaser<!--more-->\n\nRest\n",
    )
    write(root / "_drafts" / "idea.md", "---\ntitle: Idea\n---\nMaybe.\n")
    write(root / "about.md", "---\ntitle: About\npermalink: /about/\n---\n# About\n")
    write(root / "index.md", "---\nlayout: home\n---\n")
    write(root / "authors.html", "---\nlayout: none\n---\n{{ site.data.authors.ada.name }}")
    write(root / "_data" / "authors.yml", "ada:\n  name: Ada Lovelace\n")
    write(root / "images" / "logo.txt", "logo")
    return root


def test_build_site_writes_documents_static_files_and_plugins(tmp_path):
    root = create_blog(tmp_path)
    write(root / "_site" / "stale.html", "old")

    result = build_site(root)
    out = root / "_site"

    assert result.output_dir == out
    assert [p.slug for p in result.posts] == ["second", "hello-world"]
    assert len(result.pages) == 3
    assert result.generated == ["feed.xml", "sitemap.xml"]
    assert not (out / "stale.html").exists()

    post = (out / "ops" / "2024" / "01" / "15" / "hello-world.html").read_text(encoding="utf-8")
    assert "<title>Hello World | Field Notes</title>" in post
    assert '<a href="/about/">about</a>' in post
    assert '<link rel="canonical" href="https://example.com/ops/2024/01/15/hello-world.html" />' in post
    assert 'href="/2024/02/01/second.html"' in post

    about = (out / "about" / "index.html").read_text(encoding="utf-8")
    assert '<h1 id="about">About</h1>' in about

    home = (out / "index.html").read_text(encoding="utf-8")
    assert home.index("Second") < home.index("Hello World")
    assert 'href="/ops/2024/01/15/hello-world.html"' in home

    assert (out / "authors.html").read_text(encoding="utf-8") == "Ada Lovelace"
    assert (out / "images" / "logo.txt").read_text(encoding="utf-8") == "logo"
    assert (out / "assets" / "css" / "style.css").exists()

    feed = (out / "feed.xml").read_text(encoding="utf-8")
    assert "<title type=\"html\">Second</title>" in feed
    assert "https://example.com/about/" in feed
    sitemap = (out / "sitemap.xml").read_text(encoding="utf-8")
    assert "<loc>https://example.com/about/</loc>" in sitemap


def test_excerpts(tmp_path):
    root = create_blog(tmp_path)
    posts = {p.slug: p for p in build_site(root).posts}
    assert posts["second"].excerpt.strip() == "<p>Teaser</p>"
    assert "Intro with" in posts["hello-world"].excerpt
    assert "More text" not in posts["hello-world"].excerpt
    assert "More text" in posts["hello-world"].content


def test_build_with_drafts_and_baseurl(tmp_path):
    root = create_blog(tmp_path)
    result = build_site(root, overrides={"baseurl": "/blog"}, include_drafts=True)
    assert "idea" in {p.slug for p in result.posts}

    post = (root / "_site" / "ops" / "2024" / "01" / "15" / "hello-world.html").read_text(
        encoding="utf-8"
    )
    assert '<a href="/blog/about/">about</a>' in post
    assert 'href="/blog/assets/css/style.css"' in post


def test_build_into_override_without_cleaning(tmp_path):
    root = create_blog(tmp_path)
    staging = tmp_path / "staging"
    write(staging / "keep.txt", "keep")
    result = build_site(root, output_dir_override=staging, clean_output=False)
    assert result.output_dir == staging
    assert (staging / "keep.txt").exists()
    assert (staging / "index.html").exists()
    assert not (root / "_site").exists()


def test_missing_url_skips_feed_and_sitemap(tmp_path, caplog):
    root = create_blog(tmp_path)
    result = build_site(root, overrides={"url": ""})
    assert result.generated == []
    assert not (root / "_site" / "feed.xml").exists()
    assert "set `url`" in caplog.text


def test_missing_layout_still_builds(tmp_path, caplog):
    root = tmp_path / "blog"
    write(root / "_config.yml", "theme: ''\n")
    write(root / "_posts" / "2024-01-01-bare.md", "Just *text*\n")
    build_site(root)
    html = (root / "_site" / "2024" / "01" / "01" / "bare.html").read_text(encoding="utf-8")
    assert html.strip() == "<p>Just <em>text</em></p>"
    assert "Layout 'post' requested" in caplog.text


def test_template_errors_name_the_document(tmp_path):
    root = create_blog(tmp_path)
    bad = write(root / "_posts" / "2024-03-01-broken.md", "---\ntitle: Broken\n---\n{% if %}\n")
    with pytest.raises(BuildError) as excinfo:
        build_site(root)
    assert excinfo.value.source_path == bad
    assert "Template syntax error on line 1" in excinfo.value.message


def test_undefined_attribute_access_is_reported(tmp_path):
    root = create_blog(tmp_path)
    bad = write(root / "oops.md", "---\ntitle: Oops\n---\n{{ site.missing.deeper }}\n")
    with pytest.raises(BuildError) as excinfo:
        build_site(root)
    assert excinfo.value.source_path == bad
    assert excinfo.value.message.startswith("Undefined variable")


def test_malformed_front_matter_becomes_build_error(tmp_path):
    root = create_blog(tmp_path)
    bad = write(root / "broken.md", "---\ntitle: [unclosed\n---\n")
    with pytest.raises(BuildError) as excinfo:
        build_site(root)
    assert excinfo.value.source_path == bad
    assert "Invalid YAML front matter" in excinfo.value.message


def test_conflicting_urls_fail(tmp_path):
    root = create_blog(tmp_path)
    write(root / "about-copy.md", "---\npermalink: /about/\n---\nCopy\n")
    with pytest.raises(BuildError, match="conflicts with"):
        build_site(root)


def test_invalid_config_and_theme(tmp_path):
    root = create_blog(tmp_path)
    write(root / "_config.yml", "theme: nowhere\n")
    with pytest.raises(ConfigError, match="Unknown theme"):
        build_site(root)
    write(root / "_config.yml", "title: [\n")
    with pytest.raises(ConfigError):
        build_site(root)


def test_load_data(tmp_path):
    write(tmp_path / "_data" / "nav.yml", "- title: Home\n  url: /\n")
    write(tmp_path / "_data" / "stats.json", '{"posts": 3}')
    write(tmp_path / "_data" / "people" / "ada.yaml", "name: Ada\n")
    write(tmp_path / "_data" / "notes.txt", "ignored")
    data = load_data(tmp_path)
    assert data == {
        "nav": [{"title": "Home", "url": "/"}],
        "people": {"ada": {"name": "Ada"}},
        "stats": {"posts": 3},
    }
    assert load_data(tmp_path / "missing") == {}

    bad = write(tmp_path / "_data" / "bad.json", "{nope")
    with pytest.raises(BuildError) as excinfo:
        load_data(tmp_path)
    assert excinfo.value.source_path == bad


def test_clean_site(tmp_path):
    root = create_blog(tmp_path)
    build_site(root)
    assert clean_site(root) == root / "_site"
    assert not (root / "_site").exists()
    # cleaning twice is fine
    clean_site(root)


@pytest.mark.parametrize("destination", [".", "..", "./"])
def test_destination_containing_the_project_is_refused(tmp_path, destination):
    root = create_blog(tmp_path)
    write(root / "notes.txt", "keep me")

    with pytest.raises(ConfigError, match="destination must not be the source directory"):
        build_site(root, overrides={"destination": destination})
    with pytest.raises(ConfigError, match="destination must not be the source directory"):
        clean_site(root, overrides={"destination": destination})

    assert (root / "_posts" / "2024-01-15-hello-world.md").exists()
    assert (root / "notes.txt").read_text(encoding="utf-8") == "keep me"
    assert (root / "_config.yml").exists()


def test_output_override_containing_the_project_is_refused(tmp_path):
    root = create_blog(tmp_path)
    with pytest.raises(ConfigError):
        build_site(root, output_dir_override=tmp_path)
    assert (root / "_posts").is_dir()


def test_undecodable_post_becomes_build_error(tmp_path):
    root = create_blog(tmp_path)
    bad = root / "_posts" / "2024-01-02-latin.md"
    bad.write_bytes(b"---\ntitle: Caf\xe9\n---\nBody\n")
    with pytest.raises(BuildError) as excinfo:
        build_site(root)
    assert excinfo.value.source_path == bad
    assert excinfo.value.message.startswith("Cannot read file")


def test_undecodable_data_file_becomes_build_error(tmp_path):
    bad = tmp_path / "_data" / "authors.yml"
    bad.parent.mkdir(parents=True)
    bad.write_bytes(b"name: Caf\xe9\n")
    with pytest.raises(BuildError) as excinfo:
        load_data(tmp_path)
    assert excinfo.value.source_path == bad
    assert excinfo.value.message.startswith("Cannot read file")


def test_static_file_copy_failure_becomes_build_error(tmp_path, monkeypatch):
    root = create_blog(tmp_path)
    real_copy = shutil.copy2

    def copy2(src, dst, *args, **kwargs):
        if Path(src).name == "logo.txt":
            raise PermissionError("denied")
        return real_copy(src, dst, *args, **kwargs)

    monkeypatch.setattr("inkwell.static_files.shutil.copy2", copy2)
    with pytest.raises(BuildError) as excinfo:
        build_site(root)
    assert excinfo.value.source_path == root / "images" / "logo.txt"
    assert excinfo.value.message == "PermissionError: denied"


def test_non_utf8_script_is_copied_when_minifying(tmp_path, caplog):
    root = create_blog(tmp_path)
    write(root / "_config.yml", "minify_js: true\n")
    script = root / "js" / "app.js"
    script.parent.mkdir()
    script.write_bytes(b"var s = '\xe9';\n")

    build_site(root)
    assert (root / "_site" / "js" / "app.js").read_bytes() == b"var s = '\xe9';\n"
    assert "Could not minify" in caplog.text
