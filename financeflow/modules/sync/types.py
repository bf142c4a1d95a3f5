from enum import Enum


class SyncMode(str, Enum):
    """What started a sync run."""

    MANUAL = "manual"
    AUTO = "auto"


class RunStatus(str, Enum):
    """Outcome of a finished sync run."""

    COMPLETED = "completed"
    PARTIAL = "partial"  # Time budget hit or some messages skipped
    FAILED = "failed"


class SyncStatus(str, Enum):
    """Status shown on the owner's sync settings."""

    IDLE = "idle"
    SYNCING = "syncing"
    ERROR = "error"
    TOKEN_EXPIRED = "token_expired"


class ScanMode(str, Enum):
    LIMITED = "limited"
    FULL = "full"


class MailFolder(str, Enum):
    """Mailbox folders a sync can scan, as Gmail search operators."""

    INBOX = "in:inbox"
    PROMOTIONS = "category:promotions"
    UPDATES = "category:updates"
    SOCIAL = "category:social"
    SPAM = "in:spam"
    TRASH = "in:trash"


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COOLDOWN = "cooldown"


# Folder toggle field on SyncSettings -> folder it enables
FOLDER_FIELDS = {
    "scan_inbox": MailFolder.INBOX,
    "scan_promotions": MailFolder.PROMOTIONS,
    "scan_updates": MailFolder.UPDATES,
    "scan_social": MailFolder.SOCIAL,
    "scan_spam": MailFolder.SPAM,
    "scan_trash": MailFolder.TRASH,
}

SCAN_MODE_PRESETS = {
    ScanMode.LIMITED: {MailFolder.INBOX, MailFolder.UPDATES},
    ScanMode.FULL: set(MailFolder),
}
