"""Publish API — the HTTP entry point into the relay.

Learn: Accepts the message either as an HTML form field (the original
"type a message, hit send" page) or as JSON. 202 means the transport
accepted the message; it does not mean any client received it. If the
transport is down the caller gets 503, never a silent success.
"""

from fastapi import APIRouter, HTTPException, Request

from pubrelay.errors import TransportUnavailable
from pubrelay.realtime.relay import get_publisher
from pubrelay.schemas.message import PublishRequest, PublishResponse

router = APIRouter()


async def _read_message(request: Request) -> str:
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("application/json"):
        try:
            body = PublishRequest.model_validate(await request.json())
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
        return body.message

    form = await request.form()
    message = form.get("message")
    if not isinstance(message, str):
        raise HTTPException(status_code=422, detail="Form field 'message' is required")
    return message


@router.post("/publish", response_model=PublishResponse, status_code=202)
async def publish_message(request: Request):
    """Hand one message to the channel transport."""
    message = await _read_message(request)
    publisher = get_publisher()

    try:
        await publisher.publish(message)
    except TransportUnavailable as e:
        raise HTTPException(status_code=503, detail=f"Message not sent: {e}")

    return PublishResponse(message=message, channel=publisher.channel)
