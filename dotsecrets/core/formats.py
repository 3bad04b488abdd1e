"""Placeholder grammars: detection, token extraction and substitution.

Five grammars are understood, tried in this fixed order:

    env           ${SECRET_NAME}  or ${SECRET_NAME:field}
    env-simple    $SECRET_NAME
    go            {{ op://Vault/SECRET_NAME/field }}  (any scheme)
    custom        %%SECRET_NAME%%  or %%SECRET_NAME:field%%
    double-brace  {{SECRET_NAME}}  or {{SECRET_NAME:field}}

Content matching more than one grammar resolves to the earliest one in that order.
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Match, Optional, Pattern, Union

from dotsecrets.core.errors import UnsupportedFormatError


class TemplateFormat(Enum):
    ENV_BRACED = "env"
    ENV_SIMPLE = "env-simple"
    GO_STYLE = "go"
    CUSTOM = "custom"
    DOUBLE_BRACE = "double-brace"


@dataclass(frozen=True)
class Token:
    """A secret reference found in a template."""
    name: str
    field: Optional[str] = None
    vault: Optional[str] = None

    @property
    def spec(self) -> str:
        """NAME or NAME:field, the form accepted by batch resolution."""
        return f"{self.name}:{self.field}" if self.field else self.name

    def __str__(self) -> str:
        if self.vault:
            return f"{self.vault}/{self.spec}"
        return self.spec


def sort_tokens(tokens) -> List[Token]:
    """Stable display order for a token set."""
    return sorted(tokens, key=lambda t: (t.name, t.field or "", t.vault or ""))


_NAME = r"[A-Z_][A-Z0-9_]*"
_FIELD = r"[A-Za-z][A-Za-z0-9_.\- ]*?"
_QUALIFIED = rf"\s*(?P<name>{_NAME})\s*(?::\s*(?P<field>{_FIELD})\s*)?"

_PATTERNS: Dict[TemplateFormat, Pattern] = {
    TemplateFormat.ENV_BRACED: re.compile(rf"\$\{{{_QUALIFIED}\}}"),
    # No field suffix here: "$HOME:/bin" style text is too common
    TemplateFormat.ENV_SIMPLE: re.compile(rf"\$(?P<name>{_NAME})(?![A-Za-z0-9_])"),
    TemplateFormat.GO_STYLE: re.compile(
        r"\{\{\s*(?P<scheme>[a-z][a-z0-9+.\-]*)://"
        r"(?P<vault>[^/{}\s]+)/(?P<name>[^/{}\s]+)/(?P<field>[^{}\s]+)\s*\}\}"
    ),
    TemplateFormat.CUSTOM: re.compile(rf"%%{_QUALIFIED}%%"),
    TemplateFormat.DOUBLE_BRACE: re.compile(rf"\{{\{{{_QUALIFIED}\}}\}}"),
}

# Detection order; DOUBLE_BRACE must stay after GO_STYLE
DETECTION_ORDER: List[TemplateFormat] = [
    TemplateFormat.ENV_BRACED,
    TemplateFormat.ENV_SIMPLE,
    TemplateFormat.GO_STYLE,
    TemplateFormat.CUSTOM,
    TemplateFormat.DOUBLE_BRACE,
]

_missing = set(TemplateFormat) - set(_PATTERNS) | set(TemplateFormat) - set(DETECTION_ORDER)
if _missing:
    raise UnsupportedFormatError(sorted(f.value for f in _missing))


def coerce_format(fmt: Union[TemplateFormat, str]) -> TemplateFormat:
    """Accept a TemplateFormat or its CLI name ('env', 'go', ...).

    Raises:
        UnsupportedFormatError: For anything else
    """
    if isinstance(fmt, TemplateFormat):
        return fmt
    if isinstance(fmt, str):
        try:
            return TemplateFormat(fmt.strip().lower())
        except ValueError:
            pass
    raise UnsupportedFormatError(fmt)


def _pattern(fmt: Union[TemplateFormat, str]) -> Pattern:
    return _PATTERNS[coerce_format(fmt)]


def _token_from_match(match: Match, fmt: TemplateFormat) -> Token:
    groups = match.groupdict()
    field = groups.get("field")
    field = field.strip() if field else None
    vault = groups.get("vault") if fmt is TemplateFormat.GO_STYLE else None
    return Token(name=groups["name"].strip(), field=field or None, vault=vault)


def detect_format(content: str) -> Optional[TemplateFormat]:
    """Classify content into the first placeholder grammar it contains.

    Returns:
        The detected TemplateFormat, or None if the content has no placeholders
    """
    for fmt in DETECTION_ORDER:
        if _PATTERNS[fmt].search(content):
            return fmt
    return None


def detect_all_formats(content: str) -> List[TemplateFormat]:
    """Return every grammar present in content, in detection order."""
    return [fmt for fmt in DETECTION_ORDER if _PATTERNS[fmt].search(content)]


def extract_tokens(content: str, fmt: Union[TemplateFormat, str]) -> FrozenSet[Token]:
    """Collect the distinct tokens referenced in content for one grammar.

    Raises:
        UnsupportedFormatError: If fmt is not a known grammar
    """
    fmt = coerce_format(fmt)
    return frozenset(
        _token_from_match(match, fmt) for match in _PATTERNS[fmt].finditer(content)
    )


def substitute(
    content: str,
    fmt: Union[TemplateFormat, str],
    lookup: Callable[[Token], Optional[str]],
) -> str:
    """Replace every placeholder of one grammar in a single pass.

    ``lookup`` returns the replacement text for a token, or None to keep the
    placeholder verbatim. Replacement text is inserted literally and is never
    rescanned for placeholders.
    """
    fmt = coerce_format(fmt)

    def _swap(match: Match) -> str:
        value = lookup(_token_from_match(match, fmt))
        return match.group(0) if value is None else value

    return _PATTERNS[fmt].sub(_swap, content)


def replace_token(
    content: str,
    token: Token,
    value: str,
    fmt: Union[TemplateFormat, str],
) -> str:
    """Replace all occurrences of one token, leaving every other placeholder alone."""
    return substitute(content, fmt, lambda found: value if found == token else None)


def placeholder(token: Token, fmt: Union[TemplateFormat, str], scheme: str = "op") -> str:
    """Render the canonical placeholder text for a token."""
    fmt = coerce_format(fmt)
    spec = token.spec
    if fmt is TemplateFormat.ENV_BRACED:
        return f"${{{spec}}}"
    if fmt is TemplateFormat.ENV_SIMPLE:
        return f"${token.name}"
    if fmt is TemplateFormat.GO_STYLE:
        return f"{{{{ {scheme}://{token.vault}/{token.name}/{token.field} }}}}"
    if fmt is TemplateFormat.CUSTOM:
        return f"%%{spec}%%"
    if fmt is TemplateFormat.DOUBLE_BRACE:
        return f"{{{{{spec}}}}}"
    raise UnsupportedFormatError(fmt)
