"""Tests for the HTTP API."""

import pytest

from feeds import ics, vevent
from hub.pipelines import calendar_sync
from hub.pipelines.calendar_sync import CalendarFetchError

ITINERARY = "AA 1234 on 03/15/2025, Passenger: John Smith, Confirmation: ABC123"


class TestHealth:
    """Test service endpoints."""

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    @pytest.mark.asyncio
    async def test_root_lists_endpoints(self, client):
        response = await client.get("/")
        assert "/calendar/sync" in response.json()["endpoints"].values()


class TestMembers:
    """Test member endpoints."""

    @pytest.mark.asyncio
    async def test_list_in_id_order(self, client):
        response = await client.get("/members")
        assert [m["name"] for m in response.json()] == ["Ivan", "Marnie", "John", "Ann"]

    @pytest.mark.asyncio
    async def test_create_and_conflict(self, client):
        response = await client.post("/members", json={"name": "Grandma", "role": "other"})
        assert response.status_code == 201
        assert response.json()["name"] == "Grandma"

        response = await client.post("/members", json={"name": "Grandma"})
        assert response.status_code == 409
        assert "already exists" in response.json()["error"]


class TestFlightItinerary:
    """Test the review and confirm flow."""

    @pytest.mark.asyncio
    async def test_review_then_confirm(self, client):
        response = await client.post("/ingest/flight-itinerary", json={"text": ITINERARY, "source": "paste"})
        assert response.status_code == 200
        body = response.json()
        assert body["needs_review"] is False
        flight = body["flights"][0]
        assert flight["airline_code"] == "AA"
        assert flight["flight_number"] == "AA1234"
        assert flight["departure_date"] == "2025-03-15"
        assert flight["confirmation_code"] == "ABC123"
        assert flight["traveler_name"] == "John Smith"
        assert flight["member_name"] == "John"

        unassigned = {**flight, "member_id": None}
        response = await client.post("/ingest/flight-itinerary/confirm", json={"flights": [flight, unassigned]})
        assert response.status_code == 201
        body = response.json()
        assert body["count"] == 1
        assert body["saved"][0]["source"] == "itinerary"
        assert body["saved"][0]["departure_date"] == "2025-03-15"

    @pytest.mark.asyncio
    async def test_unparseable_text_is_400(self, client):
        response = await client.post("/ingest/flight-itinerary", json={"text": "see you soon"})
        assert response.status_code == 400
        assert "Could not parse flight information" in response.json()["error"]


class TestUploads:
    """Test upload validation."""

    @pytest.mark.asyncio
    async def test_wrong_extension_rejected(self, client):
        response = await client.post("/ingest/pdf", files={"file": ("notes.docx", b"data", "application/octet-stream")})
        assert response.status_code == 400
        assert "Unsupported file type" in response.json()["error"]

    @pytest.mark.asyncio
    async def test_image_endpoint_rejects_pdf(self, client):
        response = await client.post("/ingest/image", files={"file": ("trip.pdf", b"%PDF-1.4", "application/pdf")})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_oversized_rejected(self, client, monkeypatch):
        from hub.config import settings

        monkeypatch.setattr(settings.uploads, "max_bytes", 1024)
        response = await client.post("/ingest/pdf", files={"file": ("big.pdf", b"x" * 2048, "application/pdf")})
        assert response.status_code == 400
        assert "too large" in response.json()["error"]

    @pytest.mark.asyncio
    async def test_image_upload(self, client, tmp_path, monkeypatch):
        from hub.config import settings
        from hub.parsers import FileType, ParsedDocument
        from hub.pipelines import ingest

        monkeypatch.setattr(settings.uploads, "dir", str(tmp_path))
        monkeypatch.setattr(
            ingest,
            "parse_file",
            lambda path, filename: ParsedDocument(text="Piano lesson Wednesday 3:00-4:00", file_type=FileType.IMAGE),
        )

        response = await client.post("/ingest/image", files={"file": ("flyer.png", b"\x89PNG data", "image/png")})
        assert response.status_code == 200
        body = response.json()
        assert body["raw_text"] == "Piano lesson Wednesday 3:00-4:00"
        assert body["extracted"]["activities"][0]["day"] == "Wednesday"


class TestEmailAndHistory:
    """Test email ingestion and the history listing."""

    @pytest.mark.asyncio
    async def test_email_then_history(self, client):
        response = await client.post(
            "/ingest/email",
            json={"subject": "Itinerary", "body": ITINERARY, "from": "travel@example.com", "date": "2025-03-01"},
        )
        assert response.status_code == 200
        assert response.json()["has_flight_info"] is True

        response = await client.get("/ingest/history", params={"source_type": "email"})
        [document] = response.json()
        assert document["notes"] == "From: travel@example.com, Subject: Itinerary"


class TestCalendar:
    """Test calendar endpoints with the feed download stubbed out."""

    @pytest.fixture
    def feed(self, monkeypatch):
        payload = {"content": ics(vevent("Ivan Paris", "20250601", "20250610"))}

        async def fake_download(client, url):
            payload["url"] = url
            return payload["content"]

        monkeypatch.setattr(calendar_sync, "_download", fake_download)
        return payload

    @pytest.mark.asyncio
    async def test_sync_requires_url(self, client):
        response = await client.post("/calendar/sync", json={})
        assert response.status_code == 400
        assert response.json()["error"] == "Calendar URL is required"

    @pytest.mark.asyncio
    async def test_sync_and_resync(self, client, feed):
        response = await client.post("/calendar/sync", json={"calendar_url": "webcal://example.com/f.ics"})
        assert response.status_code == 200
        assert response.json()["imported"] == 1
        assert feed["url"] == "https://example.com/f.ics"

        response = await client.post("/calendar/sync", json={"calendar_url": "https://example.com/f.ics"})
        assert response.json()["imported"] == 0
        assert response.json()["skipped"] == 1

    @pytest.mark.asyncio
    async def test_stored_url_fallback(self, client, feed):
        response = await client.post("/calendar/settings", json={"calendar_url": "https://example.com/stored.ics"})
        assert response.json()["calendar_url"] == "https://example.com/stored.ics"

        response = await client.post("/calendar/preview", json={})
        assert response.status_code == 200
        assert response.json()["will_import"] == 1
        assert feed["url"] == "https://example.com/stored.ics"

        response = await client.get("/calendar/settings")
        assert response.json()["last_synced"] is None

    @pytest.mark.asyncio
    async def test_fetch_failure_is_502(self, client, monkeypatch):
        async def failing_fetch(url, *, client=None):
            raise CalendarFetchError("Calendar feed returned HTTP 404")

        monkeypatch.setattr(calendar_sync, "fetch_calendar", failing_fetch)

        response = await client.post("/calendar/sync", json={"calendar_url": "https://example.com/gone.ics"})
        assert response.status_code == 502
        assert response.json()["error"] == "Calendar feed returned HTTP 404"


class TestSurvey:
    """Test survey endpoints."""

    @pytest.mark.asyncio
    async def test_parse_response(self, client):
        response = await client.post(
            "/survey/parse-response",
            json={"response_text": "Marnie climbing on Saturday", "week_start_date": "2025-01-06"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["parsed"][0]["type"] == "activity"
        assert body["parsed"][0]["details"] == "climbing"
        assert body["message"] == "Parsed 1 items: 0 travel, 1 activities, 0 notes"

    @pytest.mark.asyncio
    async def test_other_response_auto_parsed(self, client):
        response = await client.post("/survey/questions", json={"question_text": "Anything else?", "category": "other"})
        assert response.status_code == 201
        question_id = response.json()["id"]

        response = await client.post(
            "/survey/responses",
            json={"question_id": question_id, "response_text": "Ivan flying to Denver", "week_start_date": "2025-01-06"},
        )
        assert response.status_code == 201
        body = response.json()
        assert body["response"]["question_id"] == question_id
        assert body["parse_result"]["parsed"][0]["type"] == "travel"

        response = await client.get("/survey/questions")
        assert [q["id"] for q in response.json()] == [question_id]

    @pytest.mark.asyncio
    async def test_unknown_question_is_404(self, client):
        response = await client.post("/survey/responses", json={"question_id": 42, "response_text": "hi"})
        assert response.status_code == 404
