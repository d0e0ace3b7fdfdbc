"""
Tests for the built-in tool executors in mcp_orchestrator/tools/.

Provider backends are simple in-memory fakes; web calls are intercepted with
monkeypatch or httpx.MockTransport.
"""

import os
from datetime import date, datetime, timezone

import httpx
import pytest

from mcp_orchestrator.tools import ToolBackends
from mcp_orchestrator.tools import calendar as calendar_module
from mcp_orchestrator.tools.calendar import (
    exec_create_calendar_event,
    exec_get_todays_events,
    resolve_day,
)
from mcp_orchestrator.tools.content import exec_generate_content
from mcp_orchestrator.tools.docs import (
    LocalDocumentStore,
    _parse_summary,
    exec_create_document,
    exec_process_document,
)
from mcp_orchestrator.tools.drive import exec_get_drive_file, exec_search_drive
from mcp_orchestrator.tools.email import exec_get_emails, exec_get_last_ten_mails
from mcp_orchestrator.tools.web import exec_crawl_page, exec_search_web
from mcp_orchestrator.utils.timezones import local_now
from mcp_orchestrator.web import crawl, search


class FakeCalendar:
    def __init__(self):
        self.created = []
        self.listed = []

    async def list_events(self, user_id, day):
        self.listed.append(day)
        return [{"summary": "Standup", "start": {"dateTime": f"{day}T09:00:00"}}]

    async def create_event(self, user_id, title, start, duration_hours, description=""):
        self.created.append((title, start, duration_hours, description))
        return {"id": "evt-1", "summary": title}


class FakeMail:
    def __init__(self):
        self.queries = []

    async def search(self, user_id, query, max_results):
        self.queries.append((query, max_results))
        return [{"id": str(i), "subject": f"Mail {i}"} for i in range(min(max_results, 3))]


class FakeDrive:
    def __init__(self):
        self.created = []

    async def search(self, user_id, query, max_results):
        return [{"id": "f1", "name": f"{query}.docx", "mime_type": "application/msword"}]

    async def get_file(self, user_id, file_id):
        return {"id": file_id, "name": "Quarterly.txt", "content": "Revenue grew 12%."}

    async def create_file(self, user_id, title, content, mime_type):
        self.created.append((title, mime_type))
        return {"id": "new-file", "name": title}


# --------------------------------------------------------------------------- #
# Calendar                                                                     #
# --------------------------------------------------------------------------- #

def test_resolve_day():
    today = date(2026, 3, 14)
    assert resolve_day(None, today) == today
    assert resolve_day("tomorrow", today) == date(2026, 3, 15)
    assert resolve_day("Yesterday", today) == date(2026, 3, 13)
    assert resolve_day("2026-04-01", today) == date(2026, 4, 1)
    with pytest.raises(ValueError):
        resolve_day("next blursday", today)


@pytest.mark.asyncio
async def test_calendar_not_configured():
    result = await exec_get_todays_events(ToolBackends(), "u1", {})
    assert result.success is False
    assert result.error == "Calendar not configured."


@pytest.mark.asyncio
async def test_get_events_for_date():
    cal = FakeCalendar()
    result = await exec_get_todays_events(ToolBackends(calendar=cal), "u1", {"date": "2026-03-20"})
    assert result.success
    assert result.data["date"] == "2026-03-20"
    assert result.data["count"] == 1
    assert cal.listed == [date(2026, 3, 20)]


@pytest.mark.asyncio
async def test_get_events_invalid_date():
    result = await exec_get_todays_events(ToolBackends(calendar=FakeCalendar()), "u1", {"date": "soon"})
    assert result.success is False
    assert "Invalid date" in result.error


@pytest.mark.asyncio
async def test_today_follows_request_timezone(monkeypatch):
    # 01:00 UTC on the 15th is still 18:00 on the 14th in Los Angeles.
    fixed = datetime(2026, 3, 15, 1, 0, tzinfo=timezone.utc)
    monkeypatch.setattr(calendar_module, "local_now", lambda tz_name: local_now(tz_name, now=fixed))
    cal = FakeCalendar()
    backends = ToolBackends(calendar=cal)

    la = await exec_get_todays_events(backends, "u1", {"timezone": "America/Los_Angeles"})
    utc = await exec_get_todays_events(backends, "u1", {})
    tomorrow = await exec_get_todays_events(
        backends, "u1", {"date": "tomorrow", "timezone": "America/Los_Angeles"}
    )

    assert la.data["date"] == "2026-03-14"
    assert utc.data["date"] == "2026-03-15"
    assert tomorrow.data["date"] == "2026-03-15"


@pytest.mark.asyncio
async def test_create_event():
    cal = FakeCalendar()
    result = await exec_create_calendar_event(
        ToolBackends(calendar=cal), "u1",
        {"title": "Dentist", "date": "2026-03-20", "time": "14:30", "duration_hours": 0.5},
    )
    assert result.success
    assert result.data["start"] == "2026-03-20T14:30:00"
    assert cal.created == [("Dentist", datetime(2026, 3, 20, 14, 30), 0.5, "")]


@pytest.mark.asyncio
async def test_create_event_bad_time():
    result = await exec_create_calendar_event(
        ToolBackends(calendar=FakeCalendar()), "u1",
        {"title": "Dentist", "date": "2026-03-20", "time": "half past two"},
    )
    assert result.success is False
    assert result.error.startswith("Invalid date/time")


# --------------------------------------------------------------------------- #
# Email / Drive                                                                #
# --------------------------------------------------------------------------- #

@pytest.mark.asyncio
async def test_get_emails_clamps_max_results():
    mail = FakeMail()
    result = await exec_get_emails(ToolBackends(mail=mail), "u1", {"query": "from:boss", "max_results": 500})
    assert result.success
    assert mail.queries == [("from:boss", 50)]


@pytest.mark.asyncio
async def test_last_ten_mails():
    mail = FakeMail()
    result = await exec_get_last_ten_mails(ToolBackends(mail=mail), "u1", {})
    assert result.data["count"] == 3
    assert mail.queries == [("", 10)]


@pytest.mark.asyncio
async def test_email_not_configured():
    assert (await exec_get_last_ten_mails(ToolBackends(), "u1", {})).error == "Email not configured."


@pytest.mark.asyncio
async def test_drive_search_and_get():
    backends = ToolBackends(drive=FakeDrive())
    found = await exec_search_drive(backends, "u1", {"query": "budget"})
    assert found.data["files"][0]["name"] == "budget.docx"
    fetched = await exec_get_drive_file(backends, "u1", {"file_id": "abc"})
    assert fetched.data["content"] == "Revenue grew 12%."
    assert (await exec_get_drive_file(backends, "u1", {})).success is False


# --------------------------------------------------------------------------- #
# Documents                                                                    #
# --------------------------------------------------------------------------- #

@pytest.mark.asyncio
async def test_local_store_save_and_read(tmp_path):
    store = LocalDocumentStore(str(tmp_path))
    saved = await store.save("user@example.com", "My Notes!", "# hi")
    assert os.path.exists(saved["path"])
    assert saved["path"].endswith(".md")
    assert "my-notes" in os.path.basename(saved["path"])
    assert saved["size"] == 4
    assert await store.read("user@example.com", os.path.basename(saved["path"])) == "# hi"


@pytest.mark.asyncio
async def test_create_document_local(tmp_path):
    backends = ToolBackends(documents=LocalDocumentStore(str(tmp_path)))
    result = await exec_create_document(backends, "u1", {"title": "Plan", "content": "steps"})
    assert result.success
    assert result.data["destination"] == "local"
    assert "drive" not in result.data


@pytest.mark.asyncio
async def test_create_document_both_without_drive_saves_locally(tmp_path):
    backends = ToolBackends(documents=LocalDocumentStore(str(tmp_path)))
    result = await exec_create_document(
        backends, "u1", {"title": "Plan", "content": "steps", "destination": "both"}
    )
    assert result.success
    assert "local" in result.data and "drive" not in result.data


@pytest.mark.asyncio
async def test_create_document_both(tmp_path):
    drive = FakeDrive()
    backends = ToolBackends(documents=LocalDocumentStore(str(tmp_path)), drive=drive)
    result = await exec_create_document(
        backends, "u1", {"title": "Plan", "content": "steps", "destination": "both", "type": "text"}
    )
    assert result.data["drive"]["id"] == "new-file"
    assert drive.created == [("Plan", "text/plain")]


@pytest.mark.asyncio
async def test_create_document_validation(tmp_path):
    backends = ToolBackends(documents=LocalDocumentStore(str(tmp_path)))
    assert (await exec_create_document(backends, "u1", {"content": "x"})).success is False
    assert (await exec_create_document(backends, "u1", {"title": "x", "content": " "})).success is False
    bad = await exec_create_document(backends, "u1", {"title": "x", "content": "y", "destination": "ftp"})
    assert "Unknown destination" in bad.error
    drive_only = await exec_create_document(
        backends, "u1", {"title": "x", "content": "y", "destination": "google_drive"}
    )
    assert drive_only.error == "Drive not configured."


def test_parse_summary():
    parsed = _parse_summary('```json\n{"summary": "Short.", "key_points": ["a", "b"]}\n```')
    assert parsed == {"summary": "Short.", "key_points": ["a", "b"]}
    assert _parse_summary("Just prose.") == {"summary": "Just prose.", "key_points": []}


@pytest.mark.asyncio
async def test_process_document_from_drive(fake_claude):
    claude = fake_claude('{"summary": "Revenue is up.", "key_points": ["12% growth"]}')
    backends = ToolBackends(drive=FakeDrive(), claude=claude)
    result = await exec_process_document(backends, "u1", {"file_id": "abc"})
    assert result.success
    assert result.data["file_name"] == "Quarterly.txt"
    assert result.data["key_points"] == ["12% growth"]
    assert "Revenue grew 12%." in claude.last_prompt


@pytest.mark.asyncio
async def test_process_document_needs_a_source(fake_claude):
    result = await exec_process_document(ToolBackends(claude=fake_claude()), "u1", {})
    assert result.success is False
    assert result.error == "Provide text, file_id or file_name."


# --------------------------------------------------------------------------- #
# Content                                                                      #
# --------------------------------------------------------------------------- #

@pytest.mark.asyncio
async def test_generate_content(fake_claude):
    claude = fake_claude("  # Outline\n- one  ")
    result = await exec_generate_content(ToolBackends(claude=claude), "u1", {"prompt": "outline a talk"})
    assert result.data == {"prompt": "outline a talk", "format": "markdown", "content": "# Outline\n- one"}


@pytest.mark.asyncio
async def test_generate_content_not_configured():
    result = await exec_generate_content(ToolBackends(), "u1", {"prompt": "x"})
    assert result.success is False


# --------------------------------------------------------------------------- #
# Web                                                                          #
# --------------------------------------------------------------------------- #

@pytest.mark.asyncio
async def test_search_web(monkeypatch):
    seen = {}

    async def fake_search(query, max_results=5):
        seen["args"] = (query, max_results)
        return [{"title": "T", "url": "https://a.example", "snippet": "s"}]

    monkeypatch.setattr(search, "web_search", fake_search)
    result = await exec_search_web(ToolBackends(), "u1", {"query": "rust", "max_results": 99})
    assert result.success and result.data["count"] == 1
    assert seen["args"] == ("rust", 10)


@pytest.mark.asyncio
async def test_search_web_no_results(monkeypatch):
    async def empty(query, max_results=5):
        return []

    monkeypatch.setattr(search, "web_search", empty)
    result = await exec_search_web(ToolBackends(), "u1", {"query": "rust"})
    assert result.success is False
    assert "no results" in result.error


def test_normalise_result():
    assert search.normalise_result({"title": "T", "href": "https://x", "body": " b "}) == {
        "title": "T", "url": "https://x", "snippet": "b",
    }


def _mock_client(monkeypatch, handler):
    real_client = httpx.AsyncClient

    def factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(crawl.httpx, "AsyncClient", factory)


HTML = """
<html><head><title>Solar Today</title><script>var x = 1;</script></head>
<body><nav>Home | About</nav><main><h1>Panels</h1><p>Efficiency is rising.</p></main>
<footer>copyright</footer></body></html>
"""


def test_html_to_text_prefers_main():
    title, text = crawl.html_to_text(HTML)
    assert title == "Solar Today"
    assert "Efficiency is rising." in text
    assert "Home" not in text and "copyright" not in text and "var x" not in text


@pytest.mark.asyncio
async def test_crawl_page_adds_scheme_and_extracts(monkeypatch):
    requested = []

    def handler(request):
        requested.append(str(request.url))
        return httpx.Response(200, text=HTML, headers={"content-type": "text/html; charset=utf-8"})

    _mock_client(monkeypatch, handler)
    result = await exec_crawl_page(ToolBackends(), "u1", {"url": "solar.example/news"})
    assert result.success
    assert requested == ["https://solar.example/news"]
    assert result.data["title"] == "Solar Today"
    assert result.data["truncated"] is False


@pytest.mark.asyncio
async def test_crawl_page_truncates(monkeypatch):
    body = "<html><body><p>" + "word " * 500 + "</p></body></html>"
    _mock_client(monkeypatch, lambda request: httpx.Response(200, text=body, headers={"content-type": "text/html"}))
    result = await exec_crawl_page(ToolBackends(), "u1", {"url": "https://a.example", "max_length": 200})
    assert result.data["truncated"] is True
    assert len(result.data["content"]) == 201


@pytest.mark.asyncio
async def test_crawl_page_http_error(monkeypatch):
    _mock_client(monkeypatch, lambda request: httpx.Response(404, text="nope"))
    result = await exec_crawl_page(ToolBackends(), "u1", {"url": "https://a.example/missing"})
    assert result.success is False
    assert result.error == "HTTP 404: https://a.example/missing"


@pytest.mark.asyncio
async def test_crawl_page_timeout(monkeypatch):
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    _mock_client(monkeypatch, handler)
    result = await exec_crawl_page(ToolBackends(), "u1", {"url": "https://slow.example"})
    assert result.error == "Request to https://slow.example timed out"


@pytest.mark.asyncio
async def test_crawl_page_rejects_binary(monkeypatch):
    _mock_client(
        monkeypatch,
        lambda request: httpx.Response(200, content=b"%PDF", headers={"content-type": "application/pdf"}),
    )
    result = await exec_crawl_page(ToolBackends(), "u1", {"url": "https://a.example/file.pdf"})
    assert result.success is False
    assert "Unsupported content type" in result.error


@pytest.mark.asyncio
async def test_crawl_page_without_content(monkeypatch):
    _mock_client(monkeypatch, lambda request: httpx.Response(200, text=HTML, headers={"content-type": "text/html"}))
    result = await exec_crawl_page(
        ToolBackends(), "u1", {"url": "https://a.example", "extract_content": False}
    )
    assert "content" not in result.data
    assert result.data["title"] == "Solar Today"
