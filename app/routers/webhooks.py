import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Form, Response
from twilio.twiml.messaging_response import MessagingResponse
from typing import Optional

from ..dependencies import get_inbound_router
from ..services.inbound import InboundMessage, InboundRouter
from ..services.notification import NotificationGateway, get_gateway

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/webhooks",
    tags=["Webhooks"]
)

@router.post("/twilio/incoming")
def twilio_incoming(
    background_tasks: BackgroundTasks,
    From: str = Form(...),
    Body: str = Form(""),
    NumMedia: int = Form(0),
    MediaUrl0: Optional[str] = Form(None),
    MediaContentType0: Optional[str] = Form(None),
    inbound: InboundRouter = Depends(get_inbound_router),
    gateway: NotificationGateway = Depends(get_gateway)
):
    logger.info("Received message from %s", From)
    reply = inbound.handle(InboundMessage(
        sender=From,
        body=Body,
        media_count=NumMedia,
        media_url=MediaUrl0,
        media_content_type=MediaContentType0
    ))
    if reply.notices:
        background_tasks.add_task(gateway.deliver_all, reply.notices)

    # Twilio sends the reply back to the recipient on the same conversation
    twiml = MessagingResponse()
    twiml.message(reply.body)
    return Response(content=str(twiml), media_type="application/xml")
