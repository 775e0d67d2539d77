"""Development server for Inkwell.

Serves the built blog with live reload for local authoring:
- Injects a reload script into HTML responses.
- Rejects directory listings and missing paths with a 404 (serving 404.html when present).
- Resolves extensionless URLs such as ``/about`` to ``about.html``.
- Watches the project and triggers rebuilds plus client reloads.

Key classes:
- DevServer: Main class for running the development server.
- _ReloadHandler: HTTP request handler that injects the reload script and enforces 404s.
- _ChangeHandler: File system event handler for triggering rebuilds.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import os
import shutil
import threading
import time
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any

import click
import websockets
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .build import BuildError, build_site
from .config import ConfigError, check_destination, load_config

logger = logging.getLogger(__name__)


class _ReloadHandler(SimpleHTTPRequestHandler):
    """HTTP request handler that injects the live reload script into HTML pages.

    Attributes:
        reload_script: JavaScript snippet connecting to the reload websocket;
            empty when live reload is disabled.
    """

    reload_script_template = """
    <script>
    (() => {{
      const ws = new WebSocket('ws://' + location.hostname + ':{ws_port}');
      ws.onmessage = (event) => {{
        const data = JSON.parse(event.data || '{{}}');
        if (data.type === 'reload') location.reload();
      }};
    }})();
    </script>
    """
    reload_script = ""
    baseurl = ""

    def translate_path(self, path):
        # The site is built with baseurl-prefixed links; serve it from there.
        if self.baseurl and (path == self.baseurl or path.startswith(self.baseurl + "/")):
            path = path[len(self.baseurl) :] or "/"
        return super().translate_path(path)

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)

    def list_directory(self, path):  # pragma: no cover - exercised via send_head
        # Never expose directory listings; treat as missing content.
        return self._serve_404()

    def _inject(self, content: str) -> str:
        if not self.reload_script:
            return content
        if "</body>" in content:
            return content.replace("</body>", f"{self.reload_script}</body>")
        return content + self.reload_script

    def _send_html(self, status: int, content: str) -> None:
        encoded = self._inject(content).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(encoded)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(encoded)

    def _serve_404(self):
        """Serve 404.html (when present) with a 404 status."""
        error_page = Path(self.directory) / "404.html"
        if error_page.exists():
            self._send_html(404, error_page.read_text(encoding="utf-8"))
            return None
        self.send_error(404, "File not found")
        return None

    def send_head(self):
        path_obj = Path(self.translate_path(self.path))
        if path_obj.is_dir():
            index_path = path_obj / "index.html"
            if not index_path.exists():
                return self._serve_404()
            path_obj = index_path
        elif not path_obj.exists():
            html_path = path_obj.with_name(path_obj.name + ".html")
            if path_obj.suffix or not html_path.exists():
                return self._serve_404()
            path_obj = html_path

        if path_obj.suffix == ".html":
            self._send_html(200, path_obj.read_text(encoding="utf-8"))
            return None
        return super().send_head()


class DevServer:
    """Development server with live reload functionality.

    Attributes:
        source: Root directory of the blog project.
        config: Site configuration.
        output_dir: Directory where the built site is served from.
        host: Interface the HTTP server binds to.
        http_port: Port for the HTTP server.
        ws_port: Port for live reload websocket connections.
        livereload: Whether live reload is enabled.
    """

    def __init__(
        self,
        source: Path,
        host: str | None = None,
        port: int | None = None,
        livereload_port: int | None = None,
        livereload: bool = True,
        overrides: dict[str, Any] | None = None,
    ):
        self.source = source.resolve()
        self.overrides = dict(overrides or {})
        self.config = load_config(self.source, self.overrides)
        self.output_dir = check_destination(
            self.source, self.source / self.config["destination"]
        )
        self._staging_dir = self.output_dir.with_name(self.output_dir.name + ".staging")
        self.host = host or self.config.get("host", "127.0.0.1")
        self.http_port = int(port or self.config.get("port", 4000))
        self.ws_port = int(livereload_port or self.config.get("livereload_port", 35729))
        self.livereload = livereload
        self._reload_script = (
            _ReloadHandler.reload_script_template.format(ws_port=self.ws_port)
            if livereload
            else ""
        )
        # Preview pages link to the local server rather than the production url.
        self.overrides["url"] = f"http://{self._display_host}:{self.http_port}"
        self._observer: Observer | None = None
        self._httpd: ThreadingHTTPServer | None = None
        self._ws_clients: set = set()
        self._loop = asyncio.new_event_loop()
        self._rebuilding = False
        self._last_rebuild_at = 0.0
        self._last_signature: tuple | None = None
        self._debounce_seconds = 0.05
        self._post_build_delay = 0.05

    @property
    def _display_host(self) -> str:
        return "localhost" if self.host in ("127.0.0.1", "0.0.0.0", "") else self.host

    def start(self, include_drafts: bool = False) -> None:  # pragma: no cover - integration path
        self._build(include_drafts)
        self._last_signature = self._compute_signature()
        threading.Thread(target=self._start_http, daemon=True).start()
        if self.livereload:
            threading.Thread(target=self._start_ws, daemon=True).start()
        self._start_watcher(include_drafts)
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        if self._observer:
            self._observer.stop()
            self._observer.join()
        if self._httpd:
            self._httpd.shutdown()
        self._loop.call_soon_threadsafe(self._loop.stop)

    def _build(self, include_drafts: bool) -> None:
        staging = self._prepare_staging_dir()
        result = build_site(
            self.source,
            overrides=self.overrides,
            include_drafts=include_drafts,
            output_dir_override=staging,
            clean_output=True,
        )
        self._activate_staging(staging)
        click.echo(
            f"Built {len(result.posts)} posts and {len(result.pages)} pages "
            f"in {result.elapsed:.2f}s"
        )

    def _handler_class(self):
        handler_cls = type(
            "_ReloadHandlerWithPort",
            (_ReloadHandler,),
            {
                "reload_script": self._reload_script,
                "baseurl": self.config.get("baseurl", ""),
            },
        )
        return functools.partial(handler_cls, directory=str(self.output_dir))

    def _start_http(self) -> None:  # pragma: no cover - integration path
        self._httpd = ThreadingHTTPServer((self.host, self.http_port), self._handler_class())
        click.echo(
            f"Serving {self.output_dir} at "
            f"http://{self._display_host}:{self.http_port}{self.config.get('baseurl', '')}/"
        )
        self._httpd.serve_forever()

    def _start_ws(self) -> None:  # pragma: no cover - integration path
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._run_ws_server())
        except OSError as exc:
            logger.error("Live reload server failed to start (port %s): %s", self.ws_port, exc)

    async def _run_ws_server(self) -> None:  # pragma: no cover - integration path
        async with websockets.serve(self._ws_handler, self.host, self.ws_port):
            await asyncio.Future()

    async def _ws_handler(self, websocket):
        self._ws_clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self._ws_clients.discard(websocket)

    def _broadcast_reload(self):
        if not self.livereload:
            return
        message = json.dumps({"type": "reload"})
        asyncio.run_coroutine_threadsafe(self._async_broadcast(message), self._loop)

    async def _async_broadcast(self, message: str):
        stale = set()
        for ws in self._ws_clients:
            try:
                await ws.send(message)
            except Exception:
                stale.add(ws)
        for ws in stale:
            self._ws_clients.discard(ws)

    def _start_watcher(self, include_drafts: bool) -> None:
        handler = _ChangeHandler(self, include_drafts)
        observer = Observer()
        observer.schedule(handler, str(self.source), recursive=True)
        observer.start()
        self._observer = observer

    def rebuild(self, include_drafts: bool) -> None:
        now = time.time()
        if self._rebuilding or (now - self._last_rebuild_at) < self._debounce_seconds:
            return
        signature = self._compute_signature()
        if signature is not None and signature == self._last_signature:
            return
        self._rebuilding = True
        try:
            click.echo("Change detected; rebuilding...")
            try:
                self._build(include_drafts)
            except (BuildError, ConfigError) as exc:
                click.echo(click.style(f"Rebuild failed: {exc}", fg="red"), err=True)
                return
            self._last_signature = signature
            if self._post_build_delay:
                time.sleep(self._post_build_delay)
            self._broadcast_reload()
        finally:
            self._rebuilding = False
            self._last_rebuild_at = time.time()

    def _is_ignored(self, path: Path) -> bool:
        retired = self.output_dir.with_name(self.output_dir.name + ".old")
        for ignored in (self.output_dir, self._staging_dir, retired):
            try:
                path.relative_to(ignored)
                return True
            except ValueError:
                pass
        return any(part in (".git", "node_modules", ".sass-cache") for part in path.parts)

    def _compute_signature(self) -> tuple | None:
        entries: list[tuple] = []
        for path in sorted(self.source.rglob("*")):
            if path.is_dir() or self._is_ignored(path):
                continue
            try:
                stat = path.stat()
            except OSError:
                continue
            rel = path.relative_to(self.source)
            entries.append((str(rel), stat.st_mtime_ns, stat.st_size))
        return tuple(entries) if entries else None

    def _prepare_staging_dir(self) -> Path:
        staging = self._staging_dir
        if staging.exists():
            shutil.rmtree(staging)
        staging.mkdir(parents=True, exist_ok=True)
        return staging

    def _activate_staging(self, staging: Path) -> None:
        target = self.output_dir
        if target.exists():
            retired = target.with_name(target.name + ".old")
            if retired.exists():
                shutil.rmtree(retired)
            os.replace(target, retired)
            os.replace(staging, target)
            shutil.rmtree(retired)
        else:
            os.replace(staging, target)


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, server: DevServer, include_drafts: bool):
        super().__init__()
        self.server = server
        self.include_drafts = include_drafts

    def on_any_event(self, event):
        if event.is_directory:
            return
        path = Path(event.src_path)
        if self.server._is_ignored(path):
            return
        self.server.rebuild(self.include_drafts)
