# =============================================================================
# 📲 utils/push_gateway.py
# -----------------------------------------------------------------------------
# HTTP client for the external multicast push gateway.
#
# Request : {tokens, notification{title, body, image_url}, data, android, apns}
# Response: {responses: [{success, message_id?, error?{code, message}}]}
#           one entry per token, in token order
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

import config

logger = logging.getLogger(__name__)

ERROR_INVALID_TOKEN = "messaging/invalid-registration-token"
ERROR_TOKEN_NOT_REGISTERED = "messaging/registration-token-not-registered"
DEAD_TOKEN_CODES = frozenset({ERROR_INVALID_TOKEN, ERROR_TOKEN_NOT_REGISTERED})


class PushGatewayError(Exception):
    """Transport-level failure (timeout, non-2xx, malformed body)."""


@dataclass
class MulticastMessage:
    tokens: list[str]
    title: str
    body: str
    data: dict[str, str] = field(default_factory=dict)
    image_url: Optional[str] = None
    android: dict[str, Any] = field(default_factory=dict)
    apns: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        notification = {"title": self.title, "body": self.body}
        if self.image_url:
            notification["image_url"] = self.image_url
        return {
            "tokens": list(self.tokens),
            "notification": notification,
            "data": dict(self.data),
            "android": self.android,
            "apns": self.apns,
        }


@dataclass
class SendResponse:
    success: bool
    message_id: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None


@dataclass
class BatchResponse:
    responses: list[SendResponse]

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.responses if r.success)

    @property
    def failure_count(self) -> int:
        return len(self.responses) - self.success_count


def parse_batch_response(body: Any, expected: int) -> BatchResponse:
    if not isinstance(body, dict) or not isinstance(body.get("responses"), list):
        raise PushGatewayError("push gateway returned an unexpected body")

    parsed = []
    for item in body["responses"]:
        item = item or {}
        error = item.get("error") or {}
        parsed.append(
            SendResponse(
                success=bool(item.get("success")),
                message_id=item.get("message_id"),
                error_code=error.get("code"),
                error_message=error.get("message"),
            )
        )
    if len(parsed) != expected:
        raise PushGatewayError(
            f"push gateway returned {len(parsed)} results for {expected} tokens"
        )
    return BatchResponse(responses=parsed)


class HttpPushGateway:
    def __init__(
        self,
        url: str,
        api_key: str = "",
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self._client = client

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def send_multicast(self, message: MulticastMessage) -> BatchResponse:
        if not message.tokens:
            return BatchResponse(responses=[])

        payload = message.to_payload()
        try:
            if self._client is not None:
                resp = self._client.post(self.url, json=payload, headers=self._headers(), timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    resp = client.post(self.url, json=payload, headers=self._headers())
            resp.raise_for_status()
            body = resp.json()
        except httpx.HTTPError as exc:
            raise PushGatewayError(f"push gateway request failed: {exc}") from exc
        except ValueError as exc:
            raise PushGatewayError("push gateway returned invalid JSON") from exc

        batch = parse_batch_response(body, expected=len(message.tokens))
        logger.info(
            f"📲 Multicast sent: {batch.success_count} ok / {batch.failure_count} failed"
        )
        return batch


def get_push_gateway() -> Optional[HttpPushGateway]:
    """FastAPI dependency; None when no gateway is configured."""
    if not config.PUSH_GATEWAY_URL:
        return None
    return HttpPushGateway(
        url=config.PUSH_GATEWAY_URL,
        api_key=config.PUSH_GATEWAY_KEY,
        timeout=config.PUSH_TIMEOUT_SECONDS,
    )
