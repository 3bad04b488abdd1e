"""In-memory secret provider for tests and offline runs."""
from collections import Counter
from typing import Dict, List, Optional, Tuple

from dotsecrets.core.config import DEFAULT_CATEGORY, DEFAULT_FIELD, DEFAULT_VAULT
from dotsecrets.core.errors import NotSignedInError, SecretNotFoundError

from .base import SecretProvider


class InMemoryProvider(SecretProvider):
    """Dictionary-backed provider that counts fetches."""

    def __init__(
        self,
        secrets: Optional[Dict[str, Dict[str, str]]] = None,
        vault: str = DEFAULT_VAULT,
        account: Optional[str] = None,
        signed_in: bool = True,
    ):
        """Initialize in-memory provider.

        Args:
            secrets: {name: {field: value}} seeded into ``vault``
            vault: Vault the seed secrets live in
            account: Account name reported for cache keying
            signed_in: If False, every call raises NotSignedInError
        """
        self.account = account
        self.default_vault = vault
        self.signed_in = signed_in
        self.items: Dict[Tuple[str, str], Dict[str, str]] = {}
        self.categories: Dict[Tuple[str, str], str] = {}
        self.fetch_calls: Counter = Counter()
        for name, fields in (secrets or {}).items():
            self.items[(vault, name)] = dict(fields)

    @property
    def fetch_count(self) -> int:
        return sum(self.fetch_calls.values())

    def add(self, name: str, value: str, field: str = DEFAULT_FIELD, vault: Optional[str] = None) -> None:
        self.items.setdefault((vault or self.default_vault, name), {})[field] = value

    def _check_session(self) -> None:
        if not self.signed_in:
            raise NotSignedInError(self.account)

    def ensure_signed_in(self, account_alias: Optional[str] = None) -> str:
        self._check_session()
        return account_alias or self.account or "memory"

    def fetch_secret(self, name: str, field: str = DEFAULT_FIELD, vault: Optional[str] = None) -> str:
        self._check_session()
        vault = vault or self.default_vault
        field = field or DEFAULT_FIELD
        self.fetch_calls[(vault, name, field)] += 1
        try:
            return self.items[(vault, name)][field]
        except KeyError:
            raise SecretNotFoundError(name, field, vault) from None

    def list_secrets(self, vault: Optional[str] = None) -> List[str]:
        self._check_session()
        vault = vault or self.default_vault
        return sorted(name for (item_vault, name) in self.items if item_vault == vault)

    def create_or_update_secret(
        self,
        name: str,
        value: str,
        vault: Optional[str] = None,
        category: str = DEFAULT_CATEGORY,
        field: str = DEFAULT_FIELD,
    ) -> bool:
        self._check_session()
        key = (vault or self.default_vault, name)
        created = key not in self.items
        self.items.setdefault(key, {})[field] = value
        if created:
            self.categories[key] = category
        return created
