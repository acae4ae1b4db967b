"""Async Miniflux REST client (``/v1`` API)."""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from miniflux_bot.domain.exceptions import NotFoundError, UpstreamUnavailableError
from miniflux_bot.domain.models import Article, EntryPage

logger = logging.getLogger(__name__)

USER_AGENT = "miniflux-telegram-bot"


class MinifluxClient:
    """Minimal Miniflux client covering what the bridge needs.

    Every failure is raised as a domain error: a 404 becomes ``NotFoundError``,
    anything else (transport errors, 4xx/5xx, unparsable bodies) becomes
    ``UpstreamUnavailableError``.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout_sec: float = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_key:
            msg = "Miniflux API key is required"
            raise ValueError(msg)
        self._client = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/v1",
            headers={
                "X-Auth-Token": api_key,
                "User-Agent": USER_AGENT,
                "Accept": "application/json",
            },
            timeout=timeout_sec,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        started = time.perf_counter()
        try:
            resp = await self._client.request(method, path, params=params, json=json)
        except httpx.HTTPError as exc:
            logger.warning(
                "miniflux_request_failed",
                extra={"method": method, "path": path, "error": str(exc)},
            )
            msg = f"Miniflux request {method} {path} failed: {exc}"
            raise UpstreamUnavailableError(msg, details={"path": path}) from exc

        latency_ms = int((time.perf_counter() - started) * 1000)
        logger.debug(
            "miniflux_response",
            extra={
                "method": method,
                "path": path,
                "status": resp.status_code,
                "latency_ms": latency_ms,
            },
        )

        if resp.status_code == 404:
            msg = f"Miniflux returned 404 for {path}"
            raise NotFoundError(msg, details={"path": path})
        if resp.status_code >= 400:
            error_text = _error_message(resp)
            logger.warning(
                "miniflux_error_response",
                extra={"path": path, "status": resp.status_code, "error": error_text},
            )
            msg = f"Miniflux returned {resp.status_code} for {path}: {error_text}"
            raise UpstreamUnavailableError(
                msg, details={"path": path, "status": resp.status_code}
            )
        return resp

    async def get_entries(
        self,
        *,
        status: str | None = None,
        order: str = "id",
        direction: str = "asc",
        after_entry_id: int | None = None,
        limit: int | None = None,
    ) -> EntryPage:
        """List entries matching the filter (``GET /v1/entries``)."""
        params: dict[str, Any] = {"order": order, "direction": direction}
        if status:
            params["status"] = status
        if after_entry_id:
            params["after_entry_id"] = after_entry_id
        if limit:
            params["limit"] = limit

        resp = await self._request("GET", "/entries", params=params)
        data = _json(resp)
        try:
            entries = [Article.from_api(item) for item in data.get("entries") or []]
            total = int(data.get("total", len(entries)))
        except (KeyError, TypeError, ValueError) as exc:
            msg = f"Unexpected Miniflux entries payload: {exc}"
            raise UpstreamUnavailableError(msg) from exc
        return EntryPage(total=total, entries=entries)

    async def get_entry(self, entry_id: int) -> Article:
        """Fetch one entry (``GET /v1/entries/{id}``)."""
        resp = await self._request("GET", f"/entries/{entry_id}")
        try:
            return Article.from_api(_json(resp))
        except (KeyError, TypeError, ValueError) as exc:
            msg = f"Unexpected Miniflux entry payload for {entry_id}: {exc}"
            raise UpstreamUnavailableError(msg, details={"entry_id": entry_id}) from exc

    async def update_entries(self, entry_ids: list[int], status: str) -> None:
        """Set the status of several entries (``PUT /v1/entries``)."""
        await self._request(
            "PUT", "/entries", json={"entry_ids": list(entry_ids), "status": status}
        )
        logger.info("miniflux_entries_updated", extra={"entry_ids": entry_ids, "status": status})

    async def toggle_bookmark(self, entry_id: int) -> None:
        """Flip the starred flag of an entry (``PUT /v1/entries/{id}/bookmark``)."""
        await self._request("PUT", f"/entries/{entry_id}/bookmark")
        logger.info("miniflux_bookmark_toggled", extra={"entry_id": entry_id})


def _json(resp: httpx.Response) -> dict[str, Any]:
    try:
        data = resp.json()
    except ValueError as exc:
        msg = "Miniflux returned a non-JSON body"
        raise UpstreamUnavailableError(msg, details={"status": resp.status_code}) from exc
    if not isinstance(data, dict):
        msg = "Miniflux returned an unexpected JSON document"
        raise UpstreamUnavailableError(msg, details={"status": resp.status_code})
    return data


def _error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(data, dict) and data.get("error_message"):
        return str(data["error_message"])
    return resp.text[:200]
