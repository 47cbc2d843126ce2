"""Bridge to the provider-hosted Google Picker."""

from __future__ import annotations

import html
import json
import logging
import webbrowser
import wsgiref.simple_server
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import StrEnum
from string import Template
from typing import TYPE_CHECKING, Any, Protocol

from vault_storage.drive.models import AssetDescriptor, descriptor_from_file

if TYPE_CHECKING:
    from vault_storage.config import AppConfig
    from vault_storage.session.manager import SessionManager

logger = logging.getLogger(__name__)

DEFAULT_PICKER_TITLE = "Select Files from Google Drive"

_PAGE = Template(
    """<!doctype html>
<html>
<head>
<meta charset="utf-8">
<title>$title</title>
<script src="https://apis.google.com/js/api.js"></script>
</head>
<body>
<script>
const config = $config;
function post(action, docs) {
  fetch("/callback", {
    method: "POST",
    headers: {"Content-Type": "application/json"},
    body: JSON.stringify({action: action, docs: docs})
  }).then(() => window.close());
}
gapi.load("picker", {callback: () => {
  const view = new google.picker.DocsView()
    .setIncludeFolders(false)
    .setSelectFolderEnabled(false);
  if (config.mimeTypes) view.setMimeTypes(config.mimeTypes);
  const builder = new google.picker.PickerBuilder()
    .addView(view)
    .addView(new google.picker.DocsUploadView())
    .setOAuthToken(config.token)
    .setDeveloperKey(config.developerKey)
    .setTitle(config.title)
    .setCallback((data) => {
      if (data.action === google.picker.Action.PICKED) post("picked", data.docs);
      else if (data.action === google.picker.Action.CANCEL) post("cancel", []);
    });
  if (config.multiSelect) builder.enableFeature(google.picker.Feature.MULTISELECT_ENABLED);
  builder.build().setVisible(true);
}});
</script>
</body>
</html>
"""
)


class PickerAction(StrEnum):
    PICKED = "picked"
    CANCEL = "cancel"


@dataclass(frozen=True)
class PickerOptions:
    """What the chooser offers and how it behaves."""

    mime_types: tuple[str, ...] = ()
    title: str = DEFAULT_PICKER_TITLE
    multi_select: bool = False


@dataclass(frozen=True)
class PickerResult:
    """Outcome of one chooser session: the action and the picked documents."""

    action: PickerAction
    docs: list[dict[str, Any]] = field(default_factory=list)


class PickerLauncher(Protocol):
    """Shows the hosted chooser and blocks until the user picks or cancels."""

    def launch(
        self, access_token: str, developer_key: str, options: PickerOptions
    ) -> PickerResult: ...


def parse_callback(payload: Any) -> PickerResult | None:
    """Interpret the JSON posted back by the chooser page.

    Returns:
        PickerResult for ``picked``/``cancel``; None for anything else.
    """
    if not isinstance(payload, dict):
        return None
    action = payload.get("action")
    if action == PickerAction.CANCEL:
        return PickerResult(action=PickerAction.CANCEL)
    if action == PickerAction.PICKED:
        docs = [doc for doc in payload.get("docs") or [] if isinstance(doc, dict) and doc.get("id")]
        return PickerResult(action=PickerAction.PICKED, docs=docs)
    return None


def render_page(access_token: str, developer_key: str, options: PickerOptions) -> str:
    config = {
        "token": access_token,
        "developerKey": developer_key,
        "title": options.title,
        "mimeTypes": ",".join(options.mime_types) or None,
        "multiSelect": options.multi_select,
    }
    # "</" must not appear inside the inline script.
    config_js = json.dumps(config).replace("</", "<\\/")
    return _PAGE.substitute(title=html.escape(options.title), config=config_js)


class _QuietHandler(wsgiref.simple_server.WSGIRequestHandler):
    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        logger.debug(format, *args)


WsgiApp = Callable[[dict[str, Any], Callable[..., Any]], Iterable[bytes]]


def picker_app(page: str, sink: list[PickerResult]) -> WsgiApp:
    """WSGI app serving the chooser page and collecting its callback into ``sink``."""

    def app(environ: dict[str, Any], start_response: Callable[..., Any]) -> Iterable[bytes]:
        path = environ.get("PATH_INFO", "/")
        method = environ.get("REQUEST_METHOD", "GET")
        if method == "POST" and path == "/callback":
            length = int(environ.get("CONTENT_LENGTH") or 0)
            try:
                payload = json.loads(environ["wsgi.input"].read(length) or b"null")
            except ValueError:
                payload = None
            result = parse_callback(payload)
            if result is None:
                start_response("400 Bad Request", [("Content-Type", "text/plain")])
                return [b"unrecognized picker callback"]
            sink.append(result)
            start_response("204 No Content", [])
            return [b""]
        if method == "GET" and path == "/":
            start_response("200 OK", [("Content-Type", "text/html; charset=utf-8")])
            return [page.encode("utf-8")]
        start_response("404 Not Found", [("Content-Type", "text/plain")])
        return [b"not found"]

    return app


class BrowserPickerLauncher:
    """Opens the Google Picker in the user's browser through a one-shot local page."""

    def __init__(self, host: str = "localhost", open_browser: bool = True) -> None:
        self._host = host
        self._open_browser = open_browser

    def launch(self, access_token: str, developer_key: str, options: PickerOptions) -> PickerResult:
        sink: list[PickerResult] = []
        app = picker_app(render_page(access_token, developer_key, options), sink)
        server = wsgiref.simple_server.make_server(
            self._host, 0, app, handler_class=_QuietHandler
        )
        try:
            url = f"http://{self._host}:{server.server_port}/"
            logger.info("[launch] serving picker page; url:%s", url)
            if self._open_browser:
                webbrowser.open(url, new=1, autoraise=True)
            while not sink:
                server.handle_request()
        finally:
            server.server_close()
        return sink[0]


class PickerBridge:
    """Lets the user select existing Drive files without uploading anything."""

    def __init__(
        self,
        session: SessionManager,
        launcher: PickerLauncher,
        developer_key: str,
    ) -> None:
        self._session = session
        self._launcher = launcher
        self._developer_key = developer_key

    def pick(self, options: PickerOptions | None = None) -> list[AssetDescriptor]:
        """Show the chooser and return descriptors for the picked files.

        May perform interactive auth. Cancelling is a normal outcome and
        yields an empty list. No bytes are downloaded.
        """
        options = options or PickerOptions()
        credential = self._session.ensure_token()
        result = self._launcher.launch(credential.access_token, self._developer_key, options)
        if result.action == PickerAction.CANCEL:
            logger.info("[pick] picker cancelled")
            return []
        descriptors = [descriptor_from_file(doc, link_field="url") for doc in result.docs]
        logger.info("[pick] files picked; count:%d", len(descriptors))
        return descriptors


def picker_bridge_from_config(
    session: SessionManager,
    config: AppConfig,
    launcher: PickerLauncher | None = None,
) -> PickerBridge:
    """Construct a PickerBridge, defaulting to the browser launcher."""
    return PickerBridge(
        session=session,
        launcher=launcher or BrowserPickerLauncher(),
        developer_key=config.google_api_key,
    )
