"""Localized push notification texts.

Texts are rendered in settings.NOTIFICATION_LANGUAGE ("he" or "en") and
dates in settings.NOTIFICATION_TIME_ZONE. Weekday and month names come from
Django's own locale catalogs via translation.override().
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from zoneinfo import ZoneInfo

from django.conf import settings
from django.utils import formats, timezone, translation
from django.utils.dateparse import parse_date, parse_datetime

from .push import PushNotification

DEFAULT_LANGUAGE = "he"

CURRENCY_SYMBOLS = {"ILS": "₪", "USD": "$", "EUR": "€", "GBP": "£"}

MESSAGES = {
    "en": {
        "another_parent": "Another parent",
        "other_parent": "The other parent",
        "approved": "approved",
        "rejected": "rejected",
        "swap_created_title": "New swap request",
        "swap_created_body": "{name} asked to swap {date}",
        "swap_resolved_title": "Request {status}",
        "swap_resolved_body": "{name} {status} the swap for {date}",
        "event_created_title": "New event on the family calendar",
        "event_created_body": "{title} • {when}",
        "expense_created_title": "New expense",
        "expense_created_body": "{name} added: {title} ({amount})",
        "expense_resolved_title": "Expense {status}",
        "expense_resolved_body": "{name} {status} {title} ({amount})",
        "custody_request_title": "New custody schedule request",
        "custody_request_body": "{name} asked to approve a new custody schedule from {date}",
        "custody_resolved_title": "Custody schedule request handled",
        "custody_resolved_body": "The other parent responded to the custody schedule request.",
        "reminder_title": "Reminder: {title}",
    },
    "he": {
        "another_parent": "הורה אחר",
        "other_parent": "ההורה השני",
        "approved": "אושרה",
        "rejected": "נדחתה",
        "swap_created_title": "בקשת החלפה חדשה",
        "swap_created_body": "{name} ביקש להחליף את {date}",
        "swap_resolved_title": "בקשה {status}",
        "swap_resolved_body": "{name} {status} את ההחלפה עבור {date}",
        "event_created_title": "אירוע חדש בלוח המשפחה",
        "event_created_body": "{title} • {when}",
        "expense_created_title": "הוצאה חדשה",
        "expense_created_body": "{name} הוסיף/הוסיפה: {title} ({amount})",
        "expense_resolved_title": "הוצאה {status}",
        "expense_resolved_body": "{name} {status} את {title} ({amount})",
        "custody_request_title": "בקשת משמרות חדשה",
        "custody_request_body": "{name} ביקש לאשר תבנית משמורת חדשה מ־{date}",
        "custody_resolved_title": "בקשת המשמרות אושרה/טופלה",
        "custody_resolved_body": "הבקשה לסידור המשמרות עודכנה על ידי ההורה השני.",
        "reminder_title": "תזכורת לאירוע: {title}",
    },
}


def get_language():
    language = getattr(settings, "NOTIFICATION_LANGUAGE", DEFAULT_LANGUAGE)
    return language if language in MESSAGES else DEFAULT_LANGUAGE


def _text(key, **kwargs):
    return MESSAGES[get_language()][key].format(**kwargs)


def _name(value, fallback_key):
    return value or MESSAGES[get_language()][fallback_key]


def coerce_datetime(value):
    """Turn a snapshot value (ISO string, date or datetime) into a date/datetime.

    Returns None for anything unparseable.
    """
    if isinstance(value, (datetime, date)):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return parse_datetime(value) or parse_date(value)
    except ValueError:
        return None


def _localize(value):
    if not isinstance(value, datetime):
        return value
    if timezone.is_naive(value):
        value = timezone.make_aware(value, ZoneInfo("UTC"))
    tz_name = getattr(settings, "NOTIFICATION_TIME_ZONE", "UTC")
    return timezone.localtime(value, ZoneInfo(tz_name))


def format_date(value):
    """Long weekday, two-digit day and long month, e.g. "Monday, 05 January"."""
    value = _localize(coerce_datetime(value))
    if value is None:
        return ""
    with translation.override(get_language()):
        return formats.date_format(value, "l, d F")


def format_event_date(value, is_all_day=False):
    """Event date, followed by the local start time unless all-day."""
    value = _localize(coerce_datetime(value))
    if value is None:
        return ""
    day = format_date(value)
    if is_all_day or not isinstance(value, datetime):
        return day
    with translation.override(get_language()):
        return f"{day} • {formats.time_format(value, 'H:i')}"


def format_currency(amount, currency="ILS"):
    """Format an amount; anything that is not a number counts as zero."""
    try:
        number = Decimal(str(amount)) if amount is not None else Decimal("0")
    except (InvalidOperation, ValueError):
        number = Decimal("0")
    if not number.is_finite():
        number = Decimal("0")
    symbol = CURRENCY_SYMBOLS.get(currency or "ILS", f"{currency} ")
    formatted = f"{number:,.2f}"
    if get_language() == "he":
        return f"{formatted} {symbol}"
    return f"{symbol}{formatted}"


# --- Message builders (one per notification type) ---


def swap_request_created(request):
    return PushNotification(
        title=_text("swap_created_title"),
        body=_text(
            "swap_created_body",
            name=_name(request.get("requestedByName"), "another_parent"),
            date=format_date(request.get("originalDate")),
        ),
    )


def swap_request_resolved(request):
    status = _text(request["status"])
    when = request.get("proposedDate") or request.get("originalDate")
    return PushNotification(
        title=_text("swap_resolved_title", status=status),
        body=_text(
            "swap_resolved_body",
            name=_name(request.get("requestedToName"), "other_parent"),
            status=status,
            date=format_date(when),
        ),
    )


def calendar_event_created(event):
    return PushNotification(
        title=_text("event_created_title"),
        body=_text(
            "event_created_body",
            title=event.get("title") or "",
            when=format_event_date(event.get("startAt"), event.get("isAllDay")),
        ),
    )


def expense_created(expense):
    return PushNotification(
        title=_text("expense_created_title"),
        body=_text(
            "expense_created_body",
            name=_name(expense.get("createdByName"), "other_parent"),
            title=expense.get("title") or "",
            amount=format_currency(expense.get("amount"), expense.get("currency")),
        ),
    )


def expense_resolved(expense):
    status = _text(expense["status"])
    return PushNotification(
        title=_text("expense_resolved_title", status=status),
        body=_text(
            "expense_resolved_body",
            name=_name(expense.get("updatedByName"), "other_parent"),
            status=status,
            title=expense.get("title") or "",
            amount=format_currency(expense.get("amount"), expense.get("currency")),
        ),
    )


def custody_approval_requested(pending):
    return PushNotification(
        title=_text("custody_request_title"),
        body=_text(
            "custody_request_body",
            name=_name(pending.get("requestedByName"), "another_parent"),
            date=format_date(pending.get("startDate")),
        ),
    )


def custody_approval_resolved():
    return PushNotification(
        title=_text("custody_resolved_title"),
        body=_text("custody_resolved_body"),
    )


def event_reminder(title, start_at):
    return PushNotification(
        title=_text("reminder_title", title=title),
        body=format_event_date(start_at),
    )
