"""
Adapters layer - External integrations (Microsoft Graph, SMTP, JSON files).
"""

from .graph_authenticator import GraphAuthenticator
from .graph_client import GraphClient
from .mock_calendar_client import MockCalendarClient
from .notifiers import LoggingNotifier, SmtpNotifier
from .proposal_store import JsonProposalStore

__all__ = [
    "GraphAuthenticator",
    "GraphClient",
    "JsonProposalStore",
    "LoggingNotifier",
    "MockCalendarClient",
    "SmtpNotifier",
]
