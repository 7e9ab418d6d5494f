"""Builders for the structured text payloads embedded in QR codes."""

from datetime import datetime, timezone

from enhanced_qr_server.errors import QRValidationError
from enhanced_qr_server.schemas import CalendarEvent, ContactRecord, NetworkCredential


def build_vcard(contact: ContactRecord) -> str:
    """Render a contact as a vCard 3.0 block. Absent fields produce no line."""
    lines = [
        "BEGIN:VCARD",
        "VERSION:3.0",
        f"FN:{contact.first_name} {contact.last_name}",
        f"N:{contact.last_name};{contact.first_name};;;",
    ]

    optional = (
        ("ORG", contact.organization),
        ("TITLE", contact.title),
        ("TEL", contact.phone),
        ("EMAIL", contact.email),
        ("URL", contact.website),
    )
    lines.extend(f"{key}:{value}" for key, value in optional if value)

    if contact.address:
        addr = contact.address
        parts = [addr.street, addr.city, addr.state, addr.zip, addr.country]
        lines.append("ADR:;;" + ";".join(p or "" for p in parts))

    lines.append("END:VCARD")
    return "\n".join(lines)


def build_wifi(credential: NetworkCredential) -> str:
    hidden = "true" if credential.hidden else "false"
    return f"WIFI:T:{credential.security};S:{credential.ssid};P:{credential.password or ''};H:{hidden};;"


def _parse_timestamp(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError as e:
        raise QRValidationError(f"Invalid event date: {value}", {"date": value}) from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_event_date(value: str, all_day: bool) -> str:
    """Format an ISO timestamp as an iCalendar UTC date or date-time."""
    parsed = _parse_timestamp(value)
    if all_day:
        return parsed.strftime("%Y%m%d")
    return parsed.strftime("%Y%m%dT%H%M%SZ")


def build_event(event: CalendarEvent) -> str:
    lines = [
        "BEGIN:VEVENT",
        f"SUMMARY:{event.title}",
        f"DTSTART:{format_event_date(event.start_date, event.all_day)}",
    ]
    if event.end_date:
        lines.append(f"DTEND:{format_event_date(event.end_date, event.all_day)}")
    if event.description:
        lines.append(f"DESCRIPTION:{event.description}")
    if event.location:
        lines.append(f"LOCATION:{event.location}")
    lines.append("END:VEVENT")
    return "\n".join(lines)
