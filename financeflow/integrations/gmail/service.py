import base64
import logging
import os
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Optional
from urllib.parse import urlencode

from google.auth.exceptions import GoogleAuthError, RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from financeflow.core.exceptions import FetchError
from financeflow.integrations.gmail.dto import EmailDTO, FetchWindow
from financeflow.modules.sync.types import MailFolder
from financeflow.modules.transactions.constants import (
    BANK_SENDERS,
    CARD_SENDERS,
    GMAIL_SUBJECT_KEYWORDS,
    UPI_APP_SENDERS,
)
from financeflow.utils.datetime import utc_now

logger = logging.getLogger(__name__)


def build_search_query(window: FetchWindow, now: Optional[datetime] = None) -> str:
    """
    Gmail search query for transaction alerts inside the fetch window.

    Example:
    (subject:(UPI OR debited) OR from:(hdfcbank OR phonepe)) (in:inbox OR category:updates)
    after:2026/01/17
    """
    now = now or utc_now()
    subjects = " OR ".join(GMAIL_SUBJECT_KEYWORDS)
    senders = " OR ".join(
        sorted({*BANK_SENDERS.keys(), *UPI_APP_SENDERS.keys(), *CARD_SENDERS.keys()})
    )
    if not window.folders:
        raise ValueError("At least one mail folder must be selected")
    folders = " OR ".join(folder.value for folder in window.folders)
    query_parts = [f"(subject:({subjects}) OR from:({senders}))", f"({folders})"]

    after_date = now - timedelta(days=window.scan_days)
    query_parts.append(f"after:{after_date.strftime('%Y/%m/%d')}")
    return " ".join(query_parts)


def map_fetch_error(error: Exception) -> FetchError:
    """Translate a Google client failure into a FetchError with a stable code."""
    if isinstance(error, FetchError):
        return error
    if isinstance(error, RefreshError):
        return FetchError(f"Gmail token expired: {error}", code="TOKEN_EXPIRED")
    if isinstance(error, HttpError):
        status = error.resp.status
        content = str(error).lower()
        if status == 401:
            return FetchError("Gmail rejected the access token", code="INVALID_TOKEN")
        if status == 403:
            if "quota" in content or "ratelimit" in content:
                return FetchError("Gmail API quota exceeded", code="QUOTA_EXCEEDED")
            return FetchError("Gmail API permission denied", code="PERMISSION_DENIED")
        if status == 429:
            return FetchError("Gmail API rate limit exceeded", code="RATE_LIMIT_EXCEEDED")
        return FetchError(f"Gmail API error {status}: {error}", code="UNKNOWN")
    if isinstance(error, GoogleAuthError):
        return FetchError(f"Gmail authentication failed: {error}", code="INVALID_TOKEN")
    if isinstance(error, (OSError, TimeoutError)):
        return FetchError(f"Could not reach Gmail: {error}", code="CONNECTION_FAILED")
    return FetchError(str(error), code="UNKNOWN")


class GmailService:
    """Fetches transaction alert emails from each owner's Gmail account."""

    SCOPES = ["https://www.googleapis.com/auth/gmail.readonly"]
    REVOKE_URL = "https://oauth2.googleapis.com/revoke"

    def __init__(
        self,
        credentials_path: str = "credentials.json",
        tokens_dir: str = "tokens",
    ):
        self.credentials_path = credentials_path
        self.tokens_dir = tokens_dir

    def token_path(self, owner_id: int) -> str:
        return os.path.join(self.tokens_dir, f"{owner_id}.json")

    def authorize(self, owner_id: int) -> Credentials:
        """Run the installed-app OAuth flow and save the owner's token."""
        if not os.path.exists(self.credentials_path):
            raise FileNotFoundError(
                f"Gmail credentials file not found at {self.credentials_path}. "
                "Please download from Google Cloud Console."
            )
        logger.info(f"Initiating Gmail OAuth flow for user {owner_id}")
        flow = InstalledAppFlow.from_client_secrets_file(self.credentials_path, self.SCOPES)
        creds = flow.run_local_server(port=0)
        self._save_credentials(owner_id, creds)
        return creds

    def disconnect(self, owner_id: int) -> bool:
        """
        Revoke the owner's Google grant and delete the stored token.

        A failed revoke is logged and the token is deleted anyway; Google
        may already consider it invalid. Returns False when no token existed.
        """
        path = self.token_path(owner_id)
        if not os.path.exists(path):
            logger.info(f"No Gmail token to disconnect for user {owner_id}")
            return False

        try:
            creds = Credentials.from_authorized_user_file(path, self.SCOPES)
            self._revoke(creds.refresh_token or creds.token)
        except (GoogleAuthError, ValueError, OSError) as e:
            logger.warning(f"Could not revoke Gmail token for user {owner_id}: {e}")

        os.remove(path)
        logger.info(f"Disconnected Gmail for user {owner_id}")
        return True

    def _revoke(self, token: Optional[str]) -> None:
        if not token:
            return
        response = Request()(
            url=self.REVOKE_URL,
            method="POST",
            body=urlencode({"token": token}),
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        if response.status != 200:
            logger.warning(f"Google token revoke returned HTTP {response.status}")

    def _save_credentials(self, owner_id: int, creds: Credentials) -> None:
        os.makedirs(self.tokens_dir, exist_ok=True)
        path = self.token_path(owner_id)
        with open(path, "w") as token:
            token.write(creds.to_json())
        logger.info(f"Saved Gmail credentials to {path}")

    def _get_credentials(self, owner_id: int) -> Credentials:
        """Load and, when expired, refresh the owner's OAuth2 credentials."""
        path = self.token_path(owner_id)
        if not os.path.exists(path):
            raise FetchError(
                f"No Gmail token for user {owner_id}. Please reconnect Gmail.",
                code="TOKEN_EXPIRED",
            )

        creds = Credentials.from_authorized_user_file(path, self.SCOPES)
        if creds.valid:
            return creds

        if creds.expired and creds.refresh_token:
            logger.info(f"Refreshing expired Gmail credentials for user {owner_id}")
            creds.refresh(Request())
            self._save_credentials(owner_id, creds)
            return creds

        raise FetchError(
            "Gmail token expired. Please reconnect your Gmail account.",
            code="TOKEN_EXPIRED",
        )

    def _get_service(self, owner_id: int):
        return build(
            "gmail", "v1", credentials=self._get_credentials(owner_id), cache_discovery=False
        )

    def _parse_email_headers(self, headers: list) -> dict:
        """Parse email headers into a dictionary."""
        result = {}
        for header in headers:
            name = header.get("name", "").lower()
            if name in ["from", "to", "subject", "date"]:
                result[name] = header.get("value", "")
        return result

    def _parse_from_header(self, from_header: str) -> tuple[str, str]:
        """Parse 'From' header into name and email."""
        if "<" in from_header and ">" in from_header:
            name = from_header.split("<")[0].strip().strip('"')
            email = from_header.split("<")[1].split(">")[0].strip()
        else:
            name = ""
            email = from_header.strip()
        return name, email

    def _get_email_body(self, payload: dict) -> tuple[str, Optional[str]]:
        """Extract plain text and HTML body from email payload."""
        plain_body = ""
        html_body = None

        def decode(part: dict) -> str:
            data = part.get("body", {}).get("data", "")
            return base64.urlsafe_b64decode(data).decode("utf-8", errors="replace") if data else ""

        def extract_parts(part: dict):
            nonlocal plain_body, html_body
            mime_type = part.get("mimeType", "")
            if mime_type == "text/plain" and not plain_body:
                plain_body = decode(part)
            elif mime_type == "text/html" and html_body is None:
                html_body = decode(part) or None
            for sub_part in part.get("parts", []):
                extract_parts(sub_part)

        # Single-part messages carry the body on the payload itself
        if payload.get("body", {}).get("data"):
            if payload.get("mimeType") == "text/html":
                html_body = decode(payload)
            else:
                plain_body = decode(payload)

        for part in payload.get("parts", []):
            extract_parts(part)

        return plain_body, html_body

    def _to_email_dto(self, msg_data: dict) -> EmailDTO:
        payload = msg_data.get("payload", {})
        headers = self._parse_email_headers(payload.get("headers", []))
        from_name, from_addr = self._parse_from_header(headers.get("from", ""))

        date = None
        if msg_data.get("internalDate"):
            date = datetime.fromtimestamp(int(msg_data["internalDate"]) / 1000, tz=timezone.utc)
        elif headers.get("date"):
            try:
                date = parsedate_to_datetime(headers["date"])
            except (TypeError, ValueError):
                logger.warning(f"Could not parse date header: {headers['date']}")

        plain_body, html_body = self._get_email_body(payload)

        return EmailDTO(
            id=msg_data["id"],
            thread_id=msg_data.get("threadId", ""),
            subject=headers.get("subject", ""),
            from_email=from_addr,
            from_name=from_name,
            to_email=headers.get("to", ""),
            body=plain_body,
            html_body=html_body,
            date=date,
            snippet=msg_data.get("snippet", ""),
            labels=msg_data.get("labelIds", []),
        )

    def fetch_messages(self, owner_id: int, window: FetchWindow) -> list[EmailDTO]:
        """
        Fetch candidate transaction emails for one owner.

        Blocking; callers on the event loop run it in a worker thread.
        Every failure surfaces as a FetchError carrying an error code.
        """
        if not window.folders:
            logger.info(f"No mail folders selected for user {owner_id}; nothing to fetch")
            return []

        query = build_search_query(window)
        include_spam_trash = any(
            folder in (MailFolder.SPAM, MailFolder.TRASH) for folder in window.folders
        )
        logger.info(f"Fetching emails for user {owner_id} with query: {query}")

        try:
            service = self._get_service(owner_id)
            results = (
                service.users()
                .messages()
                .list(
                    userId="me",
                    q=query,
                    maxResults=window.max_results,
                    includeSpamTrash=include_spam_trash,
                )
                .execute()
            )

            messages = results.get("messages", [])
            logger.info(f"Found {len(messages)} emails for user {owner_id}")

            emails = []
            for msg in messages:
                msg_data = (
                    service.users()
                    .messages()
                    .get(userId="me", id=msg["id"], format="full")
                    .execute()
                )
                emails.append(self._to_email_dto(msg_data))
            return emails

        except Exception as e:
            error = map_fetch_error(e)
            logger.error(f"Error fetching emails for user {owner_id} ({error.code}): {e}")
            raise error from e
