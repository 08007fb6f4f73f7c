from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from loguru import logger

from ..database import settings
from ..models.notification import ChatAnswer, ChatQuery, ContactMessage
from ..services.chatbot import Chatbot, get_chatbot
from ..utils.notifications import EmailNotification, NotificationService

router = APIRouter(tags=["support"])


def get_notifier(request: Request) -> NotificationService:
    return request.app.state.notifier


@router.post("/contact", status_code=status.HTTP_202_ACCEPTED)
async def contact(payload: ContactMessage, notifier: NotificationService = Depends(get_notifier)) -> dict:
    await notifier.send_email(
        EmailNotification(
            to=settings.support_email,
            subject="New Contact Form Submission",
            body=f"Name: {payload.name}\nEmail: {payload.email}\nMessage:\n{payload.message}",
        )
    )
    logger.info("Contact message from {} forwarded to support", payload.email)
    return {
        "status": "sent",
        "message": "Thank you for your inquiry! Your message has been sent to our support team.",
    }


@router.post("/chatbot", response_model=ChatAnswer)
async def chatbot(payload: ChatQuery, bot: Chatbot = Depends(get_chatbot)) -> ChatAnswer:
    answer = await bot.answer(payload.question)
    logger.debug("Chatbot answered {!r} with {!r}", payload.question, answer)
    return ChatAnswer(answer=answer)
