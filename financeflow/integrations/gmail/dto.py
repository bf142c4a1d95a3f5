from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from financeflow.modules.sync.types import MailFolder, ScanMode


class EmailDTO(BaseModel):
    """DTO representing an email message."""

    id: str = Field(..., description="Gmail message ID")
    thread_id: str = Field(default="", description="Gmail thread ID")
    subject: str = Field(default="", description="Email subject")
    from_email: str = Field(default="", description="Sender email address")
    from_name: str = Field(default="", description="Sender display name")
    to_email: str = Field(default="", description="Recipient email address")
    body: str = Field(default="", description="Email body (plain text)")
    html_body: Optional[str] = Field(default=None, description="Email body (HTML)")
    date: Optional[datetime] = Field(default=None, description="When the email was received")
    snippet: str = Field(default="", description="Email snippet/preview")
    labels: list[str] = Field(default_factory=list, description="Gmail labels")

    class Config:
        json_schema_extra = {
            "example": {
                "id": "18d1234567890abc",
                "thread_id": "18d1234567890abc",
                "subject": "You have done a UPI txn. Check details!",
                "from_email": "alerts@hdfcbank.net",
                "from_name": "HDFC Bank InstaAlerts",
                "to_email": "user@gmail.com",
                "body": "Rs.150.00 has been debited from account 1771 to VPA shop@oksbi ...",
                "date": "2026-01-24T10:00:00Z",
                "snippet": "Rs.150.00 has been debited from account 1771 ...",
                "labels": ["INBOX", "CATEGORY_UPDATES"],
            }
        }


class FetchWindow(BaseModel):
    """Which messages a sync run asks the mailbox for."""

    folders: List[MailFolder] = Field(
        default_factory=lambda: [MailFolder.INBOX, MailFolder.UPDATES]
    )
    scan_days: int = Field(default=7, ge=1, description="Lookback window in days")
    scan_mode: ScanMode = Field(default=ScanMode.LIMITED)
    max_results: int = Field(default=50, ge=1, le=500)
