"""Secret store providers.

dotsecrets talks to secret stores through one interface:
- OnePassword: the `op` CLI (production)
- InMemory: dictionary-backed fake for tests and offline runs
"""
from .base import SecretProvider
from .memory import InMemoryProvider
from .onepassword import OnePasswordProvider

__all__ = ['SecretProvider', 'InMemoryProvider', 'OnePasswordProvider']
