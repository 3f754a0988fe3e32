"""Webhook forwarder: POSTs ``{from, body}`` to the configured URL."""

from __future__ import annotations

import json
import logging

import httpx

from wabridge.models.message import ForwardRequest, ForwardResult
from wabridge.providers.http.config import WebhookConfig

logger = logging.getLogger("wabridge.forwarder")


class WebhookForwarder:
    """Delivers forward requests over HTTP.

    Each call is bounded by ``config.timeout``. Failures are logged with the
    target and payload and returned as an unsuccessful :class:`ForwardResult`;
    nothing is retried.
    """

    def __init__(self, config: WebhookConfig, *, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._client = client or httpx.AsyncClient(timeout=config.timeout)

    @property
    def config(self) -> WebhookConfig:
        return self._config

    async def forward(self, request: ForwardRequest) -> ForwardResult:
        payload = request.payload()
        body = json.dumps(payload)
        headers = {"Content-Type": "application/json", **self._config.headers}
        log_extra = {"target": self._config.webhook_url, "payload": payload}

        try:
            resp = await self._client.post(
                self._config.webhook_url,
                content=body,
                headers=headers,
                timeout=self._config.timeout,
            )
            resp.raise_for_status()
        except httpx.TimeoutException:
            logger.error(
                "Webhook %s timed out forwarding %s",
                self._config.webhook_url,
                body,
                extra=log_extra,
            )
            return ForwardResult(success=False, error="timeout")
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.error(
                "Webhook %s returned %d forwarding %s",
                self._config.webhook_url,
                status,
                body,
                extra={**log_extra, "status_code": status},
            )
            return ForwardResult(success=False, status_code=status, error=f"http_{status}")
        except httpx.HTTPError as exc:
            logger.error(
                "Failed to forward %s to %s: %s",
                body,
                self._config.webhook_url,
                exc,
                extra=log_extra,
            )
            return ForwardResult(success=False, error=str(exc) or type(exc).__name__)

        logger.info(
            "Forwarded message from %s to webhook",
            request.from_,
            extra={"sender": request.from_},
        )
        return ForwardResult(success=True, status_code=resp.status_code)

    async def close(self) -> None:
        await self._client.aclose()
