"""
Gmail API Service
Sends mail and manages drafts for the shared mailbox through the Gmail REST API
"""

import base64
import logging
from datetime import datetime, timedelta
from email.mime.text import MIMEText
from typing import Optional, Union

import httpx

from ..config import GMAIL_CLIENT_ID, GMAIL_CLIENT_SECRET, GMAIL_REFRESH_TOKEN, GMAIL_SENDER

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GMAIL_API = "https://gmail.googleapis.com/gmail/v1/users/me"


class GmailApiError(Exception):
    """Raised when the Gmail API rejects a request"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


# Access token cached for the process; refreshed from GMAIL_REFRESH_TOKEN
_token_cache: dict = {"access_token": None, "expires_at": None}


def is_configured() -> bool:
    return bool(GMAIL_CLIENT_ID and GMAIL_CLIENT_SECRET and GMAIL_REFRESH_TOKEN)


def reset_token_cache() -> None:
    _token_cache["access_token"] = None
    _token_cache["expires_at"] = None


async def get_access_token() -> str:
    """
    Get a valid access token, refreshing if necessary.
    Tokens within 5 minutes of expiry are refreshed.
    """
    expires_at = _token_cache["expires_at"]
    if _token_cache["access_token"] and expires_at and expires_at > datetime.utcnow() + timedelta(minutes=5):
        return _token_cache["access_token"]

    if not is_configured():
        raise GmailApiError("Gmail API is not configured")

    logger.info("🔄 Gmail access token expired, refreshing...")
    async with httpx.AsyncClient(timeout=30.0) as client:
        response = await client.post(
            GOOGLE_TOKEN_URL,
            data={
                "client_id": GMAIL_CLIENT_ID,
                "client_secret": GMAIL_CLIENT_SECRET,
                "refresh_token": GMAIL_REFRESH_TOKEN,
                "grant_type": "refresh_token",
            },
        )

    if response.status_code != 200:
        logger.error(f"❌ Gmail token refresh failed: {response.text}")
        raise GmailApiError("Failed to refresh Gmail access token", response.status_code)

    tokens = response.json()
    access_token = tokens.get("access_token")
    if not access_token:
        logger.error("❌ No access token in refresh response")
        raise GmailApiError("No access token in refresh response")

    _token_cache["access_token"] = access_token
    _token_cache["expires_at"] = datetime.utcnow() + timedelta(seconds=tokens.get("expires_in", 3600))
    logger.info("✅ Gmail access token refreshed successfully")
    return access_token


def _join(addresses: Union[str, list[str], None]) -> str:
    if not addresses:
        return ""
    if isinstance(addresses, str):
        return addresses
    return ", ".join(a for a in addresses if a)


def build_raw_message(
    to: Union[str, list[str]],
    subject: str,
    html_content: str,
    cc: Union[str, list[str], None] = None,
    bcc: Union[str, list[str], None] = None,
    from_address: Optional[str] = None,
    reply_to: Optional[str] = None,
) -> str:
    """Base64url encoded MIME message as the Gmail API expects it"""
    message = MIMEText(html_content or "", "html", "utf-8")
    message["To"] = _join(to)
    message["From"] = from_address or GMAIL_SENDER
    message["Subject"] = subject or ""
    if _join(cc):
        message["Cc"] = _join(cc)
    if _join(bcc):
        message["Bcc"] = _join(bcc)
    if reply_to:
        message["Reply-To"] = reply_to
    return base64.urlsafe_b64encode(message.as_bytes()).decode()


def get_sent_url(message_id: str) -> str:
    return f"https://mail.google.com/mail/u/0/#sent/{message_id}"


async def _request(method: str, path: str, json: Optional[dict] = None, params: Optional[dict] = None) -> dict:
    access_token = await get_access_token()
    async with httpx.AsyncClient(timeout=30.0) as client:
        response = await client.request(
            method,
            f"{GMAIL_API}{path}",
            headers={"Authorization": f"Bearer {access_token}"},
            json=json,
            params=params,
        )

    if response.status_code == 401:
        # Revoked or rotated token; force a refresh on the next call
        reset_token_cache()
    if response.status_code >= 400:
        logger.error(f"❌ Gmail API {method} {path} failed ({response.status_code}): {response.text}")
        raise GmailApiError(f"Gmail API request failed: {response.text}", response.status_code)

    if response.status_code == 204 or not response.content:
        return {}
    return response.json()


# ============================================================================
# MESSAGES AND DRAFTS
# ============================================================================


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    html_content: str,
    cc: Union[str, list[str], None] = None,
    bcc: Union[str, list[str], None] = None,
    from_address: Optional[str] = None,
    reply_to: Optional[str] = None,
) -> dict:
    raw = build_raw_message(to, subject, html_content, cc, bcc, from_address, reply_to)
    result = await _request("POST", "/messages/send", json={"raw": raw})
    logger.info(f"📧 Gmail message sent to {_join(to)}: {result.get('id')}")
    return {"messageId": result.get("id"), "threadId": result.get("threadId"), "status": "sent"}


async def create_draft(
    to: Union[str, list[str]],
    subject: str,
    html_content: str,
    cc: Union[str, list[str], None] = None,
    bcc: Union[str, list[str], None] = None,
    from_address: Optional[str] = None,
    reply_to: Optional[str] = None,
) -> dict:
    raw = build_raw_message(to, subject, html_content, cc, bcc, from_address, reply_to)
    result = await _request("POST", "/drafts", json={"message": {"raw": raw}})
    message = result.get("message") or {}
    logger.info(f"📧 Gmail draft created for {_join(to)}: {result.get('id')}")
    return {"draftId": result.get("id"), "messageId": message.get("id"), "threadId": message.get("threadId")}


async def list_drafts(max_results: int = 20) -> list[dict]:
    result = await _request("GET", "/drafts", params={"maxResults": max_results})
    return [
        {
            "draftId": draft.get("id"),
            "messageId": (draft.get("message") or {}).get("id"),
            "threadId": (draft.get("message") or {}).get("threadId"),
        }
        for draft in result.get("drafts", [])
    ]


async def delete_draft(draft_id: str) -> None:
    await _request("DELETE", f"/drafts/{draft_id}")
    logger.info(f"🗑️ Gmail draft deleted: {draft_id}")


async def send_draft(draft_id: str) -> dict:
    result = await _request("POST", "/drafts/send", json={"id": draft_id})
    return {"messageId": result.get("id"), "threadId": result.get("threadId"), "status": "sent"}
