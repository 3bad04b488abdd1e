"""Secret resolution with write-through caching."""
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from dotsecrets.core.cache import CacheManager
from dotsecrets.core.config import DEFAULT_FIELD, DEFAULT_VAULT
from dotsecrets.core.errors import DotsecretsError, NotSignedInError
from dotsecrets.core.logger import get_logger
from dotsecrets.services.providers import SecretProvider

logger = get_logger(__name__)

CACHE_OPERATION = "secret"


def parse_spec(spec: str, default_field: str = DEFAULT_FIELD) -> Tuple[str, str]:
    """Split 'NAME' or 'NAME:field' into (name, field)."""
    name, sep, field = spec.partition(":")
    name = name.strip()
    field = field.strip() if sep else ""
    return name, field or default_field


@dataclass
class ResolveOutcome:
    """Result of resolving one secret inside a batch."""
    name: str
    field: str
    value: Optional[str] = None
    error: Optional[DotsecretsError] = None

    @property
    def spec(self) -> str:
        return f"{self.name}:{self.field}"

    @property
    def ok(self) -> bool:
        return self.error is None


def successful_values(outcomes: Dict[str, ResolveOutcome]) -> Dict[str, str]:
    """Collapse batch outcomes into {name: value}, dropping failures."""
    return {o.name: o.value for o in outcomes.values() if o.ok}


class SecretResolver:
    """Turns secret identifiers into values via the cache and a provider."""

    def __init__(
        self,
        provider: SecretProvider,
        cache: CacheManager,
        default_vault: str = DEFAULT_VAULT,
        default_field: str = DEFAULT_FIELD,
    ):
        self.provider = provider
        self.cache = cache
        self.default_vault = default_vault
        self.default_field = default_field

    def _cache_args(self, name: str, field: str, vault: str) -> Tuple:
        # account is part of the key: two accounts may share vault and item names
        return (name, field, vault, getattr(self.provider, "account", None))

    def resolve(
        self,
        name: str,
        field: Optional[str] = None,
        vault: Optional[str] = None,
        use_cache: bool = True,
    ) -> str:
        """Resolve one secret field.

        Raises:
            SecretNotFoundError: If the provider has no such secret/field
            NotSignedInError: If the provider session is unusable
        """
        field = field or self.default_field
        vault = vault or self.default_vault
        args = self._cache_args(name, field, vault)

        if use_cache:
            cached = self.cache.get(CACHE_OPERATION, *args)
            if cached is not None:
                logger.debug(f"Cache hit: {name}:{field} ({vault})")
                return cached

        value = self.provider.fetch_secret(name, field, vault)
        if use_cache:
            self.cache.set(value, CACHE_OPERATION, *args)
        return value

    def get_or_default(
        self,
        name: str,
        default: str,
        field: Optional[str] = None,
        vault: Optional[str] = None,
    ) -> str:
        """Resolve a secret, returning ``default`` on any resolution error."""
        try:
            return self.resolve(name, field, vault)
        except DotsecretsError as e:
            logger.debug(f"Using default for {name}: {type(e).__name__}")
            return default

    def exists(self, name: str, vault: Optional[str] = None) -> bool:
        """True if the secret resolves with the default field."""
        try:
            self.resolve(name, vault=vault)
            return True
        except DotsecretsError:
            return False

    def _resolve_outcome(self, spec: str, vault: Optional[str]) -> ResolveOutcome:
        name, field = parse_spec(spec, self.default_field)
        try:
            return ResolveOutcome(name=name, field=field, value=self.resolve(name, field, vault))
        except NotSignedInError:
            raise
        except DotsecretsError as e:
            logger.debug(f"Batch: {name}:{field} failed ({type(e).__name__})")
            return ResolveOutcome(name=name, field=field, error=e)

    def batch_resolve(
        self,
        vault: Optional[str],
        specs: Iterable[str],
        max_workers: int = 1,
    ) -> Dict[str, ResolveOutcome]:
        """Resolve many 'NAME[:field]' specs, continuing past individual failures.

        Every spec gets an outcome keyed by "NAME:field", so two fields of
        one secret never collide. Use ``successful_values`` for the lenient
        {name: value} view. A missing session still aborts the whole batch.
        """
        specs = [s for s in specs if s and s.strip()]
        if max_workers > 1 and len(specs) > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                outcomes = list(pool.map(lambda s: self._resolve_outcome(s, vault), specs))
        else:
            outcomes = [self._resolve_outcome(s, vault) for s in specs]

        failed = sum(1 for o in outcomes if not o.ok)
        if failed:
            logger.debug(f"Batch resolved {len(outcomes) - failed}/{len(outcomes)} secrets")
        return {o.spec: o for o in outcomes}

    def warm_cache(
        self,
        vault: Optional[str] = None,
        specs: Optional[Iterable[str]] = None,
        max_workers: int = 1,
    ) -> int:
        """Preload the cache before bulk processing.

        Args:
            vault: Vault to warm (default vault if None)
            specs: 'NAME[:field]' specs; every item in the vault when None
            max_workers: Bounded parallelism for provider calls

        Returns:
            Number of secrets now cached
        """
        vault = vault or self.default_vault
        if specs is None:
            specs = self.provider.list_secrets(vault)

        outcomes = self.batch_resolve(vault, specs, max_workers=max_workers)
        warmed = sum(1 for o in outcomes.values() if o.ok)
        logger.info(f"Warmed {warmed} secrets in cache")
        return warmed

    def load_environment(
        self,
        specs: Iterable[str],
        vault: Optional[str] = None,
    ) -> Tuple[Dict[str, str], List[str]]:
        """Resolve 'VARIABLE:SECRET[:field]' specs into environment pairs.

        Returns:
            Tuple of ({VARIABLE: value}, [VARIABLE names that failed])
        """
        env: Dict[str, str] = {}
        missing: List[str] = []
        for spec in specs:
            variable, _, secret_spec = spec.partition(":")
            variable = variable.strip()
            if not variable:
                continue
            name, field = parse_spec(secret_spec or variable, self.default_field)
            try:
                env[variable] = self.resolve(name, field, vault)
            except NotSignedInError:
                raise
            except DotsecretsError:
                missing.append(variable)
        return env, missing
