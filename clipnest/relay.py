"""HTTP relay that fetches third-party pages on behalf of a browser caller."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import requests
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from .config import DEFAULT_USER_AGENT, HarvestConfig
from .errors import MissingParameter, UpstreamFetchError

logger = logging.getLogger("clipnest.relay")

MISSING_URL_MESSAGE = "Please provide a target url"
FETCH_FAILED_MESSAGE = "Request failed"


def fetch_upstream(
    url: str,
    timeout: float,
    user_agent: str = DEFAULT_USER_AGENT,
    session: Optional[requests.Session] = None,
) -> requests.Response:
    """GET ``url`` with a browser identity, raising UpstreamFetchError on failure."""
    headers = {"User-Agent": user_agent}
    try:
        if session is None:
            resp = requests.get(url, timeout=timeout, headers=headers)
        else:
            resp = session.get(url, timeout=timeout, headers=headers)
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise UpstreamFetchError(url, str(exc)) from exc
    return resp


def create_app(config: Optional[HarvestConfig] = None) -> FastAPI:
    """Build the relay application.

    The relay is stateless: no caching, no allow-list and no relaying of its
    own responses. Every response carries permissive CORS headers.
    """
    config = config or HarvestConfig()
    app = FastAPI(title="ClipNest relay")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
    )

    def relay(url: Optional[str] = None) -> Response:
        try:
            if not url:
                raise MissingParameter(MISSING_URL_MESSAGE)
            upstream = fetch_upstream(url, config.request_timeout, config.user_agent)
        except MissingParameter as exc:
            return JSONResponse(status_code=400, content={"error": str(exc)})
        except UpstreamFetchError as exc:
            logger.warning("%s", exc)
            return JSONResponse(
                status_code=500,
                content={"error": FETCH_FAILED_MESSAGE, "message": exc.detail},
            )
        logger.info("Relayed %s (%d bytes)", url, len(upstream.content))
        return Response(
            content=upstream.content,
            status_code=200,
            media_type=upstream.headers.get("Content-Type", "text/html"),
        )

    app.add_api_route("/relay", relay, methods=["GET"])
    app.add_api_route("/proxy", relay, methods=["GET"], include_in_schema=False)

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    return app


class RelayClient:
    """Caller side of the relay, used by collection sessions."""

    def __init__(
        self,
        relay_url: str,
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.relay_url = relay_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch(self, url: str) -> str:
        """Return the remote page text for ``url`` as relayed."""
        try:
            resp = self.session.get(
                self.relay_url, params={"url": url}, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise UpstreamFetchError(url, f"relay unreachable: {exc}") from exc
        if resp.status_code != 200:
            detail = resp.text
            try:
                payload = resp.json()
                detail = payload.get("message") or payload.get("error") or detail
            except ValueError:
                pass
            raise UpstreamFetchError(url, f"relay returned {resp.status_code}: {detail}")
        return resp.text

    async def fetch_async(self, url: str) -> str:
        return await asyncio.to_thread(self.fetch, url)
