from typing import Any

from fastapi import Request
from plugins.core.options.models import RequestContext
from utils.exceptions import BadRequestError

ASYNC_REQUEST_HEADER = "x-requested-with"
ASYNC_REQUEST_VALUE = "xmlhttprequest"


async def _read_fields(request: Request) -> dict[str, Any]:
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("application/json"):
        try:
            payload = await request.json()
        except ValueError:
            # Covers both malformed JSON and bodies that are not valid UTF-8.
            raise BadRequestError("Request body must be valid JSON.")
        if not isinstance(payload, dict):
            raise BadRequestError("Request body must be a JSON object.")
        return payload

    if content_type.startswith(
        ("application/x-www-form-urlencoded", "multipart/form-data")
    ):
        form = await request.form()
        return {key: value for key, value in form.items() if isinstance(value, str)}

    return {}


async def get_request_context(request: Request) -> RequestContext:
    """
    Dependency describing the request for the nonce gate.

    A request counts as a background request when it is sent with
    `X-Requested-With: XMLHttpRequest`.
    """
    requested_with = request.headers.get(ASYNC_REQUEST_HEADER, "")
    return RequestContext(
        is_async=requested_with.lower() == ASYNC_REQUEST_VALUE,
        fields=await _read_fields(request),
        origin=request.headers.get("origin"),
        referer=request.headers.get("referer"),
    )
