"""1Password provider backed by the `op` CLI."""
import json
import subprocess
from typing import List, Optional

from dotsecrets.core.config import (
    DEFAULT_CATEGORY,
    DEFAULT_FIELD,
    DEFAULT_VAULT,
    SecretsSettings,
)
from dotsecrets.core.errors import NotSignedInError, ProviderError, SecretNotFoundError
from dotsecrets.core.logger import get_logger

from .base import SecretProvider

logger = get_logger(__name__)

# stderr fragments `op` prints when the session is missing or stale
AUTH_FAILURE_MARKERS = (
    "not signed in",
    "not currently signed in",
    "session expired",
    "authentication required",
    "no accounts configured",
    "account is not signed in",
)


def is_auth_failure(stderr: str) -> bool:
    lowered = (stderr or "").lower()
    return any(marker in lowered for marker in AUTH_FAILURE_MARKERS)


def _first_line(text: str) -> str:
    text = (text or "").strip()
    return text.splitlines()[0] if text else ""


class OnePasswordProvider(SecretProvider):
    """Secret provider that shells out to the 1Password CLI."""

    def __init__(
        self,
        settings: Optional[SecretsSettings] = None,
        account_alias: Optional[str] = None,
        timeout: int = 30,
        op_binary: str = "op",
    ):
        """Initialize 1Password provider.

        Args:
            settings: Alias map, default vault and fallback accounts
            account_alias: Alias or account ID to bind to (None = op's default)
            timeout: Seconds before an op call is abandoned
            op_binary: Name or path of the op executable
        """
        self.settings = settings or SecretsSettings()
        self.account_alias = account_alias
        self.account = self.settings.account_id(account_alias)
        self.timeout = timeout
        self.op_binary = op_binary

    @property
    def default_vault(self) -> str:
        return self.settings.default_vault or DEFAULT_VAULT

    def _run(self, args: List[str], account: Optional[str] = None) -> subprocess.CompletedProcess:
        """Run an op subcommand with a bounded timeout."""
        cmd = [self.op_binary, *args]
        if account:
            cmd.extend(["--account", account])

        try:
            return subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            # op blocks on interactive re-authentication
            raise NotSignedInError(
                account, f"op did not answer within {self.timeout}s"
            ) from e
        except FileNotFoundError as e:
            raise ProviderError(
                f"1Password CLI '{self.op_binary}' not found. Install it from "
                "https://developer.1password.com/docs/cli/"
            ) from e

    def _candidate_accounts(self) -> List[Optional[str]]:
        accounts: List[Optional[str]] = [self.account]
        for alias in self.settings.fallback_accounts:
            account_id = self.settings.account_id(alias)
            if account_id not in accounts:
                accounts.append(account_id)
        return accounts

    def ensure_signed_in(self, account_alias: Optional[str] = None) -> str:
        """Fail fast with NotSignedInError unless `op account get` succeeds."""
        account = self.settings.account_id(account_alias) if account_alias else self.account
        if not account:
            account = self.settings.account_id(self.settings.default_account)

        result = self._run(["account", "get"], account=account)
        if result.returncode != 0:
            logger.debug(f"op account get failed for {account}: {_first_line(result.stderr)}")
            raise NotSignedInError(account, _first_line(result.stderr))

        logger.debug(f"Signed in to 1Password account: {account}")
        return account

    def fetch_secret(self, name: str, field: str = DEFAULT_FIELD, vault: Optional[str] = None) -> str:
        """Fetch a field, trying the bound account then any fallback accounts."""
        vault = vault or self.default_vault
        field = field or DEFAULT_FIELD
        args = ["item", "get", name, "--vault", vault, "--fields", field, "--reveal"]

        for account in self._candidate_accounts():
            result = self._run(args, account=account)
            if result.returncode == 0:
                value = result.stdout.rstrip("\n")
                if value:
                    return value
                logger.debug(f"Field '{field}' empty for {name} in {vault}")
                continue
            if is_auth_failure(result.stderr):
                raise NotSignedInError(account, _first_line(result.stderr))
            logger.debug(f"{name} not found in {vault} (account: {account or 'default'})")

        raise SecretNotFoundError(name, field, vault)

    def list_secrets(self, vault: Optional[str] = None) -> List[str]:
        vault = vault or self.default_vault
        result = self._run(
            ["item", "list", "--vault", vault, "--format", "json"],
            account=self.account,
        )
        if result.returncode != 0:
            if is_auth_failure(result.stderr):
                raise NotSignedInError(self.account, _first_line(result.stderr))
            raise ProviderError(f"Failed to list vault '{vault}': {_first_line(result.stderr)}")

        try:
            items = json.loads(result.stdout or "[]")
        except json.JSONDecodeError as e:
            raise ProviderError(f"Unexpected output from op item list: {e}") from e

        return sorted(item["title"] for item in items if item.get("title"))

    def _item_exists(self, name: str, vault: str) -> bool:
        result = self._run(
            ["item", "get", name, "--vault", vault, "--format", "json"],
            account=self.account,
        )
        if result.returncode != 0 and is_auth_failure(result.stderr):
            raise NotSignedInError(self.account, _first_line(result.stderr))
        return result.returncode == 0

    def create_or_update_secret(
        self,
        name: str,
        value: str,
        vault: Optional[str] = None,
        category: str = DEFAULT_CATEGORY,
        field: str = DEFAULT_FIELD,
    ) -> bool:
        vault = vault or self.default_vault
        assignment = f"{field}={value}"

        if self._item_exists(name, vault):
            result = self._run(["item", "edit", name, "--vault", vault, assignment], account=self.account)
            created = False
        else:
            result = self._run(
                ["item", "create", "--category", category, "--title", name, "--vault", vault, assignment],
                account=self.account,
            )
            created = True

        if result.returncode != 0:
            if is_auth_failure(result.stderr):
                raise NotSignedInError(self.account, _first_line(result.stderr))
            action = "create" if created else "update"
            raise ProviderError(f"Failed to {action} secret {name}: {_first_line(result.stderr)}")

        logger.info(f"{'Created' if created else 'Updated'} secret: {name}")
        return created
