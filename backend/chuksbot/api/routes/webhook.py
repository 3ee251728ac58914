"""
WhatsApp webhook routes
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from chuksbot.core import logger, settings
from chuksbot.api.deps import get_chat_service
from chuksbot.services.chat import ChatService

router = APIRouter()


def extract_message(body: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """First message of a WhatsApp Cloud API notification, if any."""
    try:
        return body["entry"][0]["changes"][0]["value"]["messages"][0]
    except (KeyError, IndexError, TypeError):
        return None


@router.get("")
async def verify_webhook(
    mode: Optional[str] = Query(None, alias="hub.mode"),
    token: Optional[str] = Query(None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(None, alias="hub.challenge"),
):
    """Webhook subscription handshake."""
    if not settings.VERIFY_TOKEN:
        logger.error("VERIFY_TOKEN not set in environment variables")
        return JSONResponse(status_code=500, content={"error": "Server configuration error"})

    logger.info(f"Verification attempt: mode={mode}, has_token={bool(token)}, has_challenge={bool(challenge)}")
    if mode == "subscribe" and token == settings.VERIFY_TOKEN:
        logger.info("Webhook verified")
        return PlainTextResponse(challenge or "")

    logger.warning("Webhook verification failed")
    return PlainTextResponse("Forbidden", status_code=403)


@router.post("")
async def receive_message(
    request: Request,
    chat_service: ChatService = Depends(get_chat_service),
):
    """
    Inbound WhatsApp notification.

    Always answers 200 so the gateway does not retry; failures are reported
    with ``success: false``.
    """
    try:
        body = await request.json()
        message = extract_message(body)
        if message is None:
            return {"success": True, "ignored": "no message"}

        user_id = message.get("from")
        message_type = message.get("type")
        text = (message.get("text") or {}).get("body")
        if message_type != "text" or not text or not user_id:
            logger.info(f"Ignoring {message_type} message")
            return {"success": True, "ignored": f"unsupported message type: {message_type}"}

        result = await chat_service.process_message(user_id, text)

        if settings.WHATSAPP_TEST_MODE:
            return {
                "success": True,
                "test_mode": True,
                "state": result["state"],
                "message_preview": result["response"],
                "note": "This is a test. No actual WhatsApp message was sent.",
            }

        sent = await chat_service.send(user_id, result["response"])
        if not sent:
            return {"success": False, "error": "Failed to send reply"}
        return {"success": True, "state": result["state"]}

    except Exception as e:
        logger.error(f"Webhook error: {e}", exc_info=True)
        return {"success": False, "error": "Internal error"}
