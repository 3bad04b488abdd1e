"""Exception types raised by the dotsecrets engine.

Messages carry secret identifiers at most, never secret values.
"""
from typing import Iterable, Optional


class DotsecretsError(Exception):
    """Base class for all dotsecrets errors."""
    pass


class NotSignedInError(DotsecretsError):
    """Raised when the secret store session is missing or timed out."""

    def __init__(self, account: Optional[str] = None, detail: str = ""):
        self.account = account
        target = f" to account '{account}'" if account else ""
        message = f"Not signed in{target}"
        if detail:
            message += f": {detail}"
        if account:
            message += f"\nRun: eval $(op signin --account {account})"
        super().__init__(message)


class SecretNotFoundError(DotsecretsError):
    """Raised when a secret or one of its fields does not exist."""

    def __init__(self, name: str, field: Optional[str] = None, vault: Optional[str] = None):
        self.name = name
        self.field = field
        self.vault = vault
        where = f" in vault '{vault}'" if vault else ""
        what = f"{name}:{field}" if field else name
        super().__init__(f"Secret not found: {what}{where}")


class ProviderError(DotsecretsError):
    """Raised when the secret store CLI fails for reasons other than auth or lookup."""
    pass


class UnsupportedFormatError(DotsecretsError):
    """Raised for a template format the engine does not know about."""

    def __init__(self, fmt):
        self.format = fmt
        super().__init__(f"Unsupported template format: {fmt!r}")


class BinaryFileError(DotsecretsError):
    """Raised when a template candidate looks like binary data."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"Cannot process binary file: {path}")


class CacheIOError(DotsecretsError):
    """Cache read/write failure. Logged and treated as a miss, never raised to callers."""
    pass


class UnresolvedSecretsError(DotsecretsError):
    """Raised under the strict policy when a template references missing secrets."""

    def __init__(self, names: Iterable[str], path=None):
        self.names = sorted(set(names))
        self.path = path
        source = f" for {path}" if path else ""
        super().__init__(
            f"Failed to retrieve secrets{source}: {', '.join(self.names)}"
        )
