import asyncio
import base64
import email
import json
from datetime import datetime, timedelta

import httpx
import pytest

from backoffice.services import gmail_service


@pytest.fixture(autouse=True)
def clean_token_cache():
    gmail_service.reset_token_cache()
    yield
    gmail_service.reset_token_cache()


@pytest.fixture
def unconfigured(monkeypatch):
    monkeypatch.setattr(gmail_service, "GMAIL_CLIENT_ID", "")


@pytest.fixture
def configured(monkeypatch):
    monkeypatch.setattr(gmail_service, "GMAIL_CLIENT_ID", "client-id")
    monkeypatch.setattr(gmail_service, "GMAIL_CLIENT_SECRET", "client-secret")
    monkeypatch.setattr(gmail_service, "GMAIL_REFRESH_TOKEN", "refresh-token")


@pytest.fixture
def gmail_api(monkeypatch, configured):
    """Routes every httpx call made by the Gmail client to an in-memory mailbox"""
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        path = request.url.path
        if request.url.host == "oauth2.googleapis.com":
            return httpx.Response(200, json={"access_token": "fresh-token", "expires_in": 3600})
        if path.endswith("/messages/send"):
            return httpx.Response(200, json={"id": "msg-1", "threadId": "thread-1"})
        if path.endswith("/drafts/send"):
            return httpx.Response(200, json={"id": "msg-3", "threadId": "thread-3"})
        if path.endswith("/drafts/missing"):
            return httpx.Response(404, json={"error": {"message": "Requested entity was not found."}})
        if path.endswith("/drafts/draft-1") and request.method == "DELETE":
            return httpx.Response(204)
        if path.endswith("/drafts") and request.method == "POST":
            return httpx.Response(200, json={"id": "draft-1", "message": {"id": "msg-2", "threadId": "thread-2"}})
        if path.endswith("/drafts"):
            return httpx.Response(
                200, json={"drafts": [{"id": "draft-1", "message": {"id": "msg-2", "threadId": "thread-2"}}]}
            )
        return httpx.Response(500)

    async_client = httpx.AsyncClient

    def mock_client(**kwargs):
        return async_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(gmail_service.httpx, "AsyncClient", mock_client)
    return requests


def decode(raw):
    return email.message_from_bytes(base64.urlsafe_b64decode(raw))


class TestRawMessage:
    def test_headers_and_body(self):
        raw = gmail_service.build_raw_message(
            ["guest@example.com", "partner@example.com"],
            "Your booking",
            "<p>Hello</p>",
            cc=["ops@example.com"],
            bcc="audit@example.com",
            from_address="bookings@example.com",
            reply_to="help@example.com",
        )
        message = decode(raw)

        assert "+" not in raw and "/" not in raw
        assert message["To"] == "guest@example.com, partner@example.com"
        assert message["From"] == "bookings@example.com"
        assert message["Subject"] == "Your booking"
        assert message["Cc"] == "ops@example.com"
        assert message["Bcc"] == "audit@example.com"
        assert message["Reply-To"] == "help@example.com"
        assert message.get_content_type() == "text/html"
        assert message.get_payload(decode=True).decode() == "<p>Hello</p>"

    def test_optional_headers_are_omitted(self):
        message = decode(gmail_service.build_raw_message("guest@example.com", "Hi", "<p>Hi</p>", cc=[], bcc=None))
        assert message["Cc"] is None
        assert message["Bcc"] is None
        assert message["Reply-To"] is None


def test_sent_url():
    assert gmail_service.get_sent_url("abc") == "https://mail.google.com/mail/u/0/#sent/abc"


class TestAccessToken:
    def test_cached_token_is_reused(self, gmail_api):
        gmail_service._token_cache.update(access_token="cached", expires_at=datetime.utcnow() + timedelta(minutes=10))
        assert asyncio.run(gmail_service.get_access_token()) == "cached"
        assert gmail_api == []

    def test_token_close_to_expiry_is_refreshed(self, gmail_api):
        gmail_service._token_cache.update(access_token="cached", expires_at=datetime.utcnow() + timedelta(minutes=4))

        assert asyncio.run(gmail_service.get_access_token()) == "fresh-token"
        assert len(gmail_api) == 1
        assert b"grant_type=refresh_token" in gmail_api[0].content
        assert gmail_service._token_cache["expires_at"] > datetime.utcnow() + timedelta(minutes=55)

    def test_unconfigured_client_cannot_refresh(self, unconfigured):
        with pytest.raises(gmail_service.GmailApiError):
            asyncio.run(gmail_service.get_access_token())

    def test_failed_refresh(self, monkeypatch, configured):
        async_client = httpx.AsyncClient

        def rejecting_client(**kwargs):
            transport = httpx.MockTransport(lambda request: httpx.Response(400, json={"error": "invalid_grant"}))
            return async_client(transport=transport, **kwargs)

        monkeypatch.setattr(gmail_service.httpx, "AsyncClient", rejecting_client)

        with pytest.raises(gmail_service.GmailApiError) as exc:
            asyncio.run(gmail_service.get_access_token())
        assert exc.value.status_code == 400


def test_send_email_posts_raw_message(gmail_api):
    result = asyncio.run(gmail_service.send_email("guest@example.com", "Hi", "<p>Hi</p>"))

    assert result == {"messageId": "msg-1", "threadId": "thread-1", "status": "sent"}
    send_request = gmail_api[-1]
    assert send_request.headers["Authorization"] == "Bearer fresh-token"
    assert decode(json.loads(send_request.content)["raw"])["To"] == "guest@example.com"


class TestRoutes:
    def test_send(self, client, gmail_api):
        response = client.post(
            "/gmail/send", json={"to": ["guest@example.com"], "subject": "Hi", "htmlContent": "<p>Hi</p>"}
        )
        assert response.status_code == 200
        assert response.json()["sentUrl"] == "https://mail.google.com/mail/u/0/#sent/msg-1"

    def test_send_requires_content(self, client, gmail_api):
        assert client.post("/gmail/send", json={"to": ["guest@example.com"]}).status_code == 422

    def test_send_when_not_configured(self, client, unconfigured):
        payload = {"to": ["guest@example.com"], "subject": "Hi", "htmlContent": "<p>Hi</p>"}
        assert client.post("/gmail/send", json=payload).status_code == 503

    def test_draft_lifecycle(self, client, gmail_api):
        payload = {"to": ["guest@example.com"], "subject": "Draft", "htmlContent": "<p>Draft</p>"}
        created = client.post("/gmail/drafts", json=payload)
        assert created.status_code == 201
        assert created.json() == {"draftId": "draft-1", "messageId": "msg-2", "threadId": "thread-2"}

        drafts = client.get("/gmail/drafts", params={"maxResults": 5}).json()
        assert [d["draftId"] for d in drafts] == ["draft-1"]
        assert gmail_api[-1].url.params["maxResults"] == "5"

        sent = client.post("/gmail/drafts/draft-1/send").json()
        assert sent["messageId"] == "msg-3"
        assert sent["sentUrl"].endswith("#sent/msg-3")

        assert client.delete("/gmail/drafts/draft-1").status_code == 204

    def test_gmail_errors_keep_client_status(self, client, gmail_api):
        assert client.delete("/gmail/drafts/missing").status_code == 404
