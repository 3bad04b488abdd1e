"""Pick the secret store account alias for the current machine."""
import getpass
import os
import re
import socket
from pathlib import Path
from typing import Mapping, Optional

from dotsecrets.core.config import SecretsSettings
from dotsecrets.core.logger import get_logger

logger = get_logger(__name__)

OVERRIDE_VARS = ("DOTSECRETS_ACCOUNT", "OP_ACCOUNT_OVERRIDE")
WORK_ENV_VARS = ("WORK_ENV", "CORPORATE_ENV", "COMPANY_NAME")
DEFAULT_WORK_HOSTNAME_PATTERNS = ["work", "corp", "company", "office"]
DEFAULT_PERSONAL_HOSTNAME_PATTERNS = ["home", "personal"]
WORK_DIRECTORIES = ["~/work", "~/Work", "/opt/company"]


def _matches_any(value: str, patterns) -> bool:
    return any(re.search(p, value) for p in patterns)


def detect_account_alias(
    settings: Optional[SecretsSettings] = None,
    environ: Optional[Mapping[str, str]] = None,
    username: Optional[str] = None,
    hostname: Optional[str] = None,
) -> str:
    """Return 'work', 'personal' or an explicit override.

    Checks, in order: override env vars, configured usernames, hostname
    patterns, work-only directories, work env vars. Falls back to the
    settings' default account.
    """
    settings = settings or SecretsSettings()
    environ = os.environ if environ is None else environ
    rules = settings.detection

    for var in OVERRIDE_VARS:
        if environ.get(var):
            return environ[var]

    username = username if username is not None else getpass.getuser()
    if username in rules.get("work_usernames", []):
        return "work"
    if _matches_any(username, rules.get("personal_username_patterns", [])):
        return "personal"

    hostname = hostname if hostname is not None else socket.gethostname().split(".")[0]
    if _matches_any(hostname, rules.get("work_hostname_patterns", DEFAULT_WORK_HOSTNAME_PATTERNS)):
        return "work"
    if _matches_any(hostname, rules.get("personal_hostname_patterns", DEFAULT_PERSONAL_HOSTNAME_PATTERNS)):
        return "personal"

    work_dirs = rules.get("work_directories", WORK_DIRECTORIES)
    if any(Path(d).expanduser().is_dir() for d in work_dirs):
        return "work"

    if any(environ.get(var) for var in WORK_ENV_VARS):
        return "work"

    logger.debug(f"No account signal found, using {settings.default_account}")
    return settings.default_account
