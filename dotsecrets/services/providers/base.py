"""Abstract base class for secret store providers."""
from abc import ABC, abstractmethod
from typing import List, Optional

from dotsecrets.core.config import DEFAULT_CATEGORY, DEFAULT_FIELD


class SecretProvider(ABC):
    """Abstract interface for secret stores (1Password, in-memory, etc.)."""

    #: Account the provider is currently bound to, mixed into cache keys
    account: Optional[str] = None

    @abstractmethod
    def ensure_signed_in(self, account_alias: Optional[str] = None) -> str:
        """Verify there is a usable session.

        Args:
            account_alias: Alias such as 'work' or a concrete account ID

        Returns:
            The concrete account ID that was checked

        Raises:
            NotSignedInError: If no session exists or the check timed out
        """
        pass

    @abstractmethod
    def fetch_secret(self, name: str, field: str = DEFAULT_FIELD, vault: Optional[str] = None) -> str:
        """Fetch one field of a secret.

        Raises:
            SecretNotFoundError: If the item or field does not exist
            NotSignedInError: If the session expired mid-run
        """
        pass

    @abstractmethod
    def list_secrets(self, vault: Optional[str] = None) -> List[str]:
        """List item titles in a vault."""
        pass

    @abstractmethod
    def create_or_update_secret(
        self,
        name: str,
        value: str,
        vault: Optional[str] = None,
        category: str = DEFAULT_CATEGORY,
        field: str = DEFAULT_FIELD,
    ) -> bool:
        """Create a secret or overwrite one field of an existing one.

        Returns:
            True if the item was created, False if an existing item was updated
        """
        pass
