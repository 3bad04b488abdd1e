"""Template lint checks reported by validate."""
import re
from typing import Iterable, List

from dotsecrets.core.formats import Token, detect_all_formats

# Known misspellings of frequently used secret names
COMMON_TYPOS = {
    "GITHUB_TOKNE": "GITHUB_TOKEN",
    "GIHUB_TOKEN": "GITHUB_TOKEN",
    "GITHUB_TOKE": "GITHUB_TOKEN",
    "AWS_ACESS_KEY": "AWS_ACCESS_KEY_ID",
    "AWS_ACCESS_KEY": "AWS_ACCESS_KEY_ID",
    "AWS_SECERT": "AWS_SECRET_ACCESS_KEY",
    "AWS_SECRET_KEY": "AWS_SECRET_ACCESS_KEY",
}

# Bare $lowercase is left out: shell templates are full of it
LOWERCASE_PLACEHOLDER = re.compile(
    r"\$\{[a-z_][a-z0-9_]*\}|%%[a-z_][a-z0-9_]*%%|\{\{[a-z_][a-z0-9_]*\}\}"
)


def lint_template(content: str, tokens: Iterable[Token]) -> List[str]:
    """Return human-readable issues found in a template."""
    issues = []

    formats = detect_all_formats(content)
    if len(formats) > 1:
        names = ", ".join(fmt.value for fmt in formats)
        issues.append(f"Mixed template formats detected ({names}); only the first is processed")

    if LOWERCASE_PLACEHOLDER.search(content):
        issues.append("Lowercase placeholders detected (should be UPPERCASE?)")

    for token in tokens:
        if token.name in COMMON_TYPOS:
            issues.append(f"Possible typo: {token.name} (did you mean {COMMON_TYPOS[token.name]}?)")

    return issues
