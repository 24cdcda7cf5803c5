from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from starlette.exceptions import HTTPException
from starlette.responses import PlainTextResponse
from starlette.staticfiles import StaticFiles
from starlette.types import ASGIApp, Receive, Send

from webgate.pipeline.state import Scope

logger = logging.getLogger(__name__)


class StaticAssetsMiddleware:
    """Serve a request from the first static directory that has the file.

    Directories are tried in order; requests that match nothing continue down
    the pipeline untouched.
    """

    def __init__(self, app: ASGIApp, directories: Iterable[str | Path] = ()) -> None:
        self.app = app
        self.sites: list[StaticFiles] = []
        for directory in directories:
            if not Path(directory).is_dir():
                logger.debug("Static directory %s does not exist; skipping", directory)
                continue
            self.sites.append(StaticFiles(directory=directory))

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["method"] not in ("GET", "HEAD"):
            await self.app(scope, receive, send)
            return

        for site in self.sites:
            path = site.get_path(scope)
            try:
                response = await site.get_response(path, scope)
            except HTTPException as exc:
                if exc.status_code == 404:
                    continue
                response = PlainTextResponse(str(exc.detail), status_code=exc.status_code)
            await response(scope, receive, send)
            return

        await self.app(scope, receive, send)
