"""iCalendar feed builders for calendar sync tests."""

import httpx


def vevent(summary: str | None, start: str | None, end: str | None = None) -> list[str]:
    """One all-day VEVENT; dates as YYYYMMDD."""
    lines = []
    if summary is not None:
        lines.append(f"SUMMARY:{summary}")
    if start is not None:
        lines.append(f"DTSTART;VALUE=DATE:{start}")
    if end is not None:
        lines.append(f"DTEND;VALUE=DATE:{end}")
    return lines


def ics(*events: list[str], extra: list[str] | None = None) -> bytes:
    """Wrap VEVENTs (and optional raw components) in a VCALENDAR."""
    lines = ["BEGIN:VCALENDAR", "VERSION:2.0", "PRODID:-//Family Hub Tests//EN"]
    lines += extra or []
    for index, body in enumerate(events):
        lines += ["BEGIN:VEVENT", f"UID:event-{index}@test", "DTSTAMP:20250101T000000Z", *body, "END:VEVENT"]
    lines.append("END:VCALENDAR")
    return ("\r\n".join(lines) + "\r\n").encode()


def feed_client(payload: bytes, status_code: int = 200) -> httpx.AsyncClient:
    """httpx client that serves ``payload`` for every request."""
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, content=payload, headers={"content-type": "text/calendar"})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))
