# Gmail integration
from financeflow.integrations.gmail.service import GmailService
from financeflow.integrations.gmail.dto import EmailDTO, FetchWindow

__all__ = ["GmailService", "EmailDTO", "FetchWindow"]
