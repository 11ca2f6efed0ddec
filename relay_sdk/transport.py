from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from .context import ResourceContext
from .decoding import decode, find_text
from .exceptions import RelayDecodeError, RelayServiceError, RelayTransportError

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded; charset=utf-8"


class HttpInvoker:
    """Posts one form-encoded action to the context's URL.

    Signing is left to whatever ``httpx.Auth`` the client was built with.
    """

    def __init__(self, http_client: httpx.Client) -> None:
        self._http = http_client

    def invoke(
        self,
        action: str,
        context: ResourceContext,
        parameters: Mapping[str, str],
    ) -> tuple[bytes, int]:
        logger.debug("%s %s -> %s", context.service, action, context.url)
        try:
            response = self._http.post(
                context.url,
                data=dict(parameters),
                headers={"Content-Type": FORM_CONTENT_TYPE},
            )
        except httpx.TransportError as exc:
            raise RelayTransportError(f"{action} request to {context.url} failed: {exc}") from exc

        if not response.is_success:
            self._raise_service_error(response)
        return response.content, response.status_code

    def _raise_service_error(self, response: httpx.Response) -> None:
        code = "Unknown"
        message = response.text or response.reason_phrase
        body: Any | None = None
        try:
            body = decode(response.content)
        except RelayDecodeError:
            body = None
        else:
            code = find_text(body, "Code") or code
            message = find_text(body, "Message") or message

        request_id = None
        if body is not None:
            request_id = find_text(body, "RequestId")
        request_id = request_id or response.headers.get("x-amzn-requestid") or response.headers.get("x-request-id")
        raise RelayServiceError(
            response.status_code,
            code,
            message,
            body=body,
            request_id=request_id,
        )
