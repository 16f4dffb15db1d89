"""Guest- and organizer-facing texts.

Email bodies are HTML with every guest-supplied value escaped; Telegram
texts use legacy Markdown with guest values escaped for it.
"""

from __future__ import annotations

from dataclasses import dataclass
from html import escape

from telegram.helpers import escape_markdown

CANCEL_CALLBACK = "cancel_rsvp"
CANCEL_BUTTON = "❌ Отменить"
WEBAPP_BUTTON = "🎊 Я приду!"


@dataclass
class EventDetails:
    """Display strings for the event, straight from settings."""

    date_display: str
    time_display: str
    place_name: str


@dataclass
class Email:
    subject: str
    html: str


# ---------------------------------------------------------------------------
# Email
# ---------------------------------------------------------------------------


def organizer_notice(name: str, phone: str, email: str) -> Email:
    """One line for the organizer: who answered and how to reach them."""
    subject_name = name.replace("\n", " ").replace("\r", " ")
    body = f"{escape(name)} — {escape(phone)}"
    if email:
        body += f", {escape(email)}"
    return Email(subject=f"Ответил(а) {subject_name}", html=f"<p>{body}</p>")


def guest_thank_you() -> Email:
    return Email(
        subject="Рады, что придёте!",
        html=(
            "<p>Привет!</p>"
            "<p>Мы получили ваш ответ и очень рады, что вы будете с нами.</p>"
            "<p>Ждём встречи, обнимаем.</p>"
        ),
    )


def reminder_email(days_before: int) -> Email:
    return Email(
        subject=f"Через {days_before} дней — ждём вас!",
        html=(
            "<p>Привет!</p>"
            f"<p>Напоминаем: через {days_before} дней наша свадьба.</p>"
            "<p>Очень ждём вас!</p>"
        ),
    )


# ---------------------------------------------------------------------------
# Telegram
# ---------------------------------------------------------------------------


def telegram_confirmation(name: str, details: EventDetails) -> str:
    return (
        f"✨ *Спасибо, {escape_markdown(name)}!*\n\n"
        "Мы так рады, что вы будете с нами! 💕\n\n"
        "📍 *Детали:*\n"
        f"Дата: {details.date_display}\n"
        f"Время: {details.time_display}\n"
        f"Место: {details.place_name}\n\n"
        "До встречи на празднике!\n\n"
        "_Если ваши планы изменятся, пожалуйста, сообщите нам об этом — "
        "просто нажмите на кнопку ниже._"
    )


def telegram_reminder(days_before: int) -> str:
    return (
        "💌 *Напоминание о свадьбе!*\n\n"
        f"Привет! Напоминаем, что через {days_before} дней наша свадьба.\n\n"
        "Очень ждём вас на празднике!"
    )


WELCOME_TEXT = (
    "🎉 *Привет!*\n\n"
    "Мы очень рады, что вы с нами! 💕\n\n"
    "Пожалуйста, заполните небольшую форму — это поможет нам всё "
    "организовать наилучшим образом:\n\n"
    "Нажмите на кнопку ниже:"
)

PHONE_USAGE_TEXT = "❌ Пожалуйста, укажите номер после /phone"

CANCELLED_TEXT = "✅ Отменено.\n\nЕсли передумаете — заполните форму снова, мы будем рады! 💕"


def phone_saved(phone: str) -> str:
    return (
        "✅ *Отлично!*\n\n"
        f"Ваш номер {escape_markdown(phone)} сохранён.\n\n"
        "Теперь, когда вы заполните форму RSVP, мы отправим вам приглашение здесь!"
    )
