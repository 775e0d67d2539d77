import subprocess
from datetime import datetime
from pathlib import Path

import yaml
from click.testing import CliRunner

from inkwell.build import BuildError, BuildResult
from inkwell.cli import cli

ENV = {"INKWELL_SKIP_GIT_INIT": "1"}


def test_cli_new_scaffolds_project(tmp_path):
    runner = CliRunner()
    target = tmp_path / "field-notes"
    result = runner.invoke(cli, ["new", str(target)], env=ENV)
    assert result.exit_code == 0, result.output

    config = yaml.safe_load((target / "_config.yml").read_text(encoding="utf-8"))
    assert config["title"] == "Field Notes"
    assert config["theme"] == "minima"
    assert "jekyll-feed" in config["plugins"]
    assert (target / "index.md").exists()
    assert (target / "about.md").exists()
    assert (target / ".gitignore").read_text(encoding="utf-8").startswith("_site/")

    today = datetime.now().strftime("%Y-%m-%d")
    assert (target / "_posts" / f"{today}-welcome-to-inkwell.md").exists()

    # refuses a non-empty directory
    result = runner.invoke(cli, ["new", str(target)], env=ENV)
    assert result.exit_code != 0
    assert "non-empty" in result.output


def test_cli_new_blank(tmp_path):
    runner = CliRunner()
    target = tmp_path / "blank"
    result = runner.invoke(cli, ["new", str(target), "--blank"], env=ENV)
    assert result.exit_code == 0
    assert (target / "_config.yml").exists()
    assert (target / "index.md").exists()
    assert not (target / "about.md").exists()
    assert (target / "_posts").is_dir()
    assert list((target / "_posts").iterdir()) == []


def test_scaffolded_blog_builds(tmp_path):
    runner = CliRunner()
    target = tmp_path / "blog"
    runner.invoke(cli, ["new", str(target)], env=ENV)

    result = runner.invoke(cli, ["build", "-s", str(target)])
    assert result.exit_code == 0, result.output
    assert "Built 1 posts and 3 pages" in result.output
    site = target / "_site"
    assert (site / "index.html").exists()
    assert (site / "about" / "index.html").exists()
    assert (site / "404.html").exists()
    assert (site / "assets" / "css" / "style.css").exists()


def test_cli_build_and_serve_pass_options(monkeypatch, tmp_path):
    runner = CliRunner()
    called = {}

    def fake_build_site(source, overrides=None, include_drafts=False, **kwargs):
        called["build"] = (source, overrides, include_drafts)
        out = source / "public"
        return BuildResult(posts=[], pages=[], static_files=[], output_dir=out, config={})

    class DummyServer:
        def __init__(self, source, host=None, port=None, livereload_port=None, livereload=True, overrides=None):
            called["server"] = dict(
                source=source,
                host=host,
                port=port,
                livereload_port=livereload_port,
                livereload=livereload,
                overrides=overrides,
            )

        def start(self, include_drafts=False):
            called["started"] = include_drafts

    monkeypatch.setattr("inkwell.build.build_site", fake_build_site)
    monkeypatch.setattr("inkwell.server.DevServer", DummyServer)

    result = runner.invoke(
        cli,
        ["build", "-s", str(tmp_path), "-d", "public", "--baseurl", "/blog", "--drafts"],
        catch_exceptions=False,
    )
    assert result.exit_code == 0
    source, overrides, drafts = called["build"]
    assert source == tmp_path
    assert overrides == {"destination": "public", "baseurl": "/blog", "future": None}
    assert drafts is True
    assert "Built 0 posts and 0 pages" in result.output

    result = runner.invoke(
        cli,
        [
            "serve",
            "-s",
            str(tmp_path),
            "-P",
            "5050",
            "--livereload-port",
            "5051",
            "--no-livereload",
            "--future",
        ],
        catch_exceptions=False,
    )
    assert result.exit_code == 0
    assert called["server"]["port"] == 5050
    assert called["server"]["livereload_port"] == 5051
    assert called["server"]["livereload"] is False
    assert called["server"]["overrides"] == {"baseurl": None, "future": True}
    assert called["started"] is False


def test_cli_build_reports_errors(monkeypatch, tmp_path):
    runner = CliRunner()
    bad = tmp_path / "_posts" / "2024-01-01-bad.md"

    def failing_build(*args, **kwargs):
        raise BuildError(bad, "Template syntax error on line 3: unexpected '}'")

    monkeypatch.setattr("inkwell.build.build_site", failing_build)
    result = runner.invoke(cli, ["build", "-s", str(tmp_path)])
    assert result.exit_code == 1
    assert "Build failed:" in result.output
    assert "File: _posts/2024-01-01-bad.md" in result.output
    assert "unexpected '}'" in result.output


def test_cli_build_reports_config_errors(tmp_path):
    (tmp_path / "_config.yml").write_text("title: [\n", encoding="utf-8")
    result = CliRunner().invoke(cli, ["build", "-s", str(tmp_path)])
    assert result.exit_code == 1
    assert "File: _config.yml" in result.output


def test_cli_post_creates_file(tmp_path):
    runner = CliRunner()
    result = runner.invoke(
        cli,
        ["post", "Hello, World!", "-s", str(tmp_path), "--date", "2024-03-01", "-c", "notes"],
    )
    assert result.exit_code == 0, result.output
    target = tmp_path / "_posts" / "2024-03-01-hello-world.md"
    text = target.read_text(encoding="utf-8")
    assert text.startswith("---\n")
    meta = yaml.safe_load(text.split("---\n")[1])
    assert meta["title"] == "Hello, World!"
    assert meta["layout"] == "post"
    assert meta["categories"] == ["notes"]
    assert str(meta["date"]).startswith("2024-03-01 00:00:00")

    # same file again
    result = runner.invoke(cli, ["post", "Hello, World!", "-s", str(tmp_path), "--date", "2024-03-01"])
    assert result.exit_code != 0
    assert "already exists" in result.output

    # same slug on another day
    result = runner.invoke(cli, ["post", "Hello World", "-s", str(tmp_path), "--date", "2024-04-01"])
    assert result.exit_code != 0
    assert "slug 'hello-world'" in result.output


def test_cli_post_prompts_for_title(monkeypatch, tmp_path):
    class FakeQuestion:
        def __init__(self, answer):
            self.answer = answer

        def ask(self):
            return self.answer

    monkeypatch.setattr("inkwell.cli.questionary.text", lambda *a, **k: FakeQuestion("Prompted Post"))
    result = CliRunner().invoke(cli, ["post", "-s", str(tmp_path)])
    assert result.exit_code == 0, result.output
    assert list((tmp_path / "_posts").glob("*-prompted-post.md"))

    monkeypatch.setattr("inkwell.cli.questionary.text", lambda *a, **k: FakeQuestion(None))
    result = CliRunner().invoke(cli, ["post", "-s", str(tmp_path)])
    assert result.exit_code != 0


def test_cli_post_rejects_unusable_title(tmp_path):
    result = CliRunner().invoke(cli, ["post", "!!!", "-s", str(tmp_path)])
    assert result.exit_code != 0
    assert "Cannot derive a filename" in result.output


def test_cli_build_reports_undecodable_posts(tmp_path):
    posts = tmp_path / "_posts"
    posts.mkdir()
    (posts / "2024-01-02-latin.md").write_bytes(b"---\ntitle: Caf\xe9\n---\n")
    result = CliRunner().invoke(cli, ["build", "-s", str(tmp_path)])
    assert result.exit_code == 1
    assert "Build failed:" in result.output
    assert "File: _posts/2024-01-02-latin.md" in result.output
    assert "Cannot read file" in result.output


def test_cli_refuses_destination_holding_the_project(tmp_path):
    post = tmp_path / "_posts" / "2024-01-01-hello.md"
    post.parent.mkdir()
    post.write_text("---\ntitle: Hello\n---\nHi\n", encoding="utf-8")

    result = CliRunner().invoke(cli, ["build", "-s", str(tmp_path), "-d", "."])
    assert result.exit_code == 1
    assert "destination must not be the source directory" in result.output

    (tmp_path / "_config.yml").write_text("destination: .\n", encoding="utf-8")
    result = CliRunner().invoke(cli, ["clean", "-s", str(tmp_path)])
    assert result.exit_code == 1
    assert post.exists()


def test_cli_post_keeps_non_ascii_titles(tmp_path):
    runner = CliRunner()
    result = runner.invoke(cli, ["post", "日本語", "-s", str(tmp_path), "--date", "2024-03-01"])
    assert result.exit_code == 0, result.output
    assert (tmp_path / "_posts" / "2024-03-01-日本語.md").exists()

    result = runner.invoke(cli, ["post", "Café", "-s", str(tmp_path), "--date", "2024-03-01"])
    assert result.exit_code == 0, result.output
    assert (tmp_path / "_posts" / "2024-03-01-café.md").exists()


def test_cli_clean(tmp_path):
    (tmp_path / "_site").mkdir()
    (tmp_path / "_site" / "index.html").write_text("x", encoding="utf-8")
    result = CliRunner().invoke(cli, ["clean", "-s", str(tmp_path)])
    assert result.exit_code == 0
    assert not (tmp_path / "_site").exists()


def test_module_main_entrypoint():
    from inkwell.__main__ import main

    assert callable(main)


def test_main_invokes_cli(monkeypatch):
    import inkwell.cli as cli_mod

    called = {}
    monkeypatch.setattr(cli_mod, "cli", lambda: called.setdefault("ran", True))
    cli_mod.main()
    assert called["ran"]


def test_try_git_init(monkeypatch, tmp_path):
    from inkwell.cli import _try_git_init

    called = {}
    monkeypatch.delenv("INKWELL_SKIP_GIT_INIT", raising=False)
    monkeypatch.setattr("inkwell.cli.shutil.which", lambda cmd: "/usr/bin/git")

    def fake_run(cmd, cwd=None, check=None, capture_output=None):
        called["cmd"] = cmd
        called["cwd"] = cwd
        return subprocess.CompletedProcess(cmd, 0)

    monkeypatch.setattr("inkwell.cli.subprocess.run", fake_run)
    _try_git_init(tmp_path)
    assert called["cmd"] == ["/usr/bin/git", "init"]
    assert called["cwd"] == tmp_path


def test_try_git_init_failure_is_logged(monkeypatch, tmp_path, caplog):
    from inkwell.cli import _try_git_init

    monkeypatch.delenv("INKWELL_SKIP_GIT_INIT", raising=False)
    monkeypatch.setattr("inkwell.cli.shutil.which", lambda cmd: "/usr/bin/git")

    def fake_run(cmd, **kwargs):
        raise subprocess.CalledProcessError(128, cmd)

    monkeypatch.setattr("inkwell.cli.subprocess.run", fake_run)
    _try_git_init(tmp_path)
    assert "git init failed" in caplog.text

    monkeypatch.setattr("inkwell.cli.shutil.which", lambda cmd: None)
    _try_git_init(Path(tmp_path))  # no git, nothing to do
