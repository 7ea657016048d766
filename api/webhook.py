# api/webhook.py
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse
import os
import json
from typing import Optional

from api.dependencies import get_dispatcher
from models.whatsapp_schemas import parse_webhook_payload

router = APIRouter()


@router.get("/webhook", response_class=PlainTextResponse)
async def verify_webhook(
    mode: Optional[str] = Query(None, alias="hub.mode"),
    token: Optional[str] = Query(None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(None, alias="hub.challenge")
):
    """Subscription handshake: echo the challenge when the verify token matches"""
    expected = os.getenv("WEBHOOK_VERIFY_TOKEN")
    if mode == "subscribe" and expected and token == expected:
        print("✅ Webhook verified successfully!")
        return PlainTextResponse(challenge or "")

    print(f"⚠️ Webhook verification failed (mode={mode})")
    raise HTTPException(status_code=403, detail="Forbidden")


@router.post("/webhook")
async def receive_webhook(request: Request, dispatcher=Depends(get_dispatcher)):
    """Receive one Cloud API notification and handle its message"""
    try:
        payload = await request.json()
        print(f"🔍 Incoming webhook message: {json.dumps(payload)[:500]}")

        event = parse_webhook_payload(payload)
        if event is None:
            return {"status": "ignored"}

        route = await dispatcher.handle_event(event)
        return {"status": "ok", "route": route.kind.value}

    except Exception as e:
        print(f"❌ Error in webhook handler: {e}")
        import traceback
        traceback.print_exc()
        raise HTTPException(status_code=500, detail="Internal Server Error")
