"""
Repositories for the email sync feature.
"""

from .communication_repository import CommunicationRepository, CommunicationRepositoryError
from .credential_repository import CredentialRepository, CredentialRepositoryError
from .imap_account_repository import ImapAccountRepository, ImapAccountRepositoryError

__all__ = [
    "CommunicationRepository",
    "CommunicationRepositoryError",
    "CredentialRepository",
    "CredentialRepositoryError",
    "ImapAccountRepository",
    "ImapAccountRepositoryError",
]
