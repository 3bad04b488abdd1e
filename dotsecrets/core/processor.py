"""Template processing pipeline: detect, extract, resolve, replace, emit.

Each file is all-or-nothing under the strict policy: if any placeholder
cannot be resolved the destination is left untouched.
"""
import difflib
import os
import shutil
import stat
import sys
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, TextIO, Union

from dotsecrets.core.discovery import default_output_path, looks_binary
from dotsecrets.core.errors import (
    BinaryFileError,
    DotsecretsError,
    NotSignedInError,
    UnresolvedSecretsError,
    UnsupportedFormatError,
)
from dotsecrets.core.formats import (
    TemplateFormat,
    Token,
    coerce_format,
    detect_format,
    extract_tokens,
    sort_tokens,
    substitute,
)
from dotsecrets.core.lint import lint_template
from dotsecrets.core.logger import get_logger
from dotsecrets.core.resolver import SecretResolver

logger = get_logger(__name__)

BACKUP_SUFFIX = ".backup"


@dataclass
class ProcessingResult:
    """Outcome of running one template through the pipeline."""
    content: str
    format: Optional[TemplateFormat]
    tokens: List[Token] = field(default_factory=list)
    unresolved: List[Token] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    preview: Optional[str] = None
    source: Optional[Path] = None
    output_path: Optional[Path] = None
    written: bool = False


@dataclass
class ValidationReport:
    """Read-only inspection of a template."""
    path: Path
    format: Optional[TemplateFormat]
    tokens: List[Token] = field(default_factory=list)
    missing: List[Token] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)
    checked: bool = True

    @property
    def resolvable(self) -> Optional[bool]:
        """True/False once secrets were checked, None when checks were skipped."""
        if not self.checked:
            return None
        return not self.missing


@dataclass
class RunSummary:
    """Per-file results of a multi-file run."""
    succeeded: List[Path] = field(default_factory=list)
    skipped: List[Path] = field(default_factory=list)
    failed: Dict[Path, str] = field(default_factory=dict)
    results: Dict[Path, ProcessingResult] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


def redact(token: Token, value: str) -> str:
    return f"<{token.name}: {len(value)} chars>"


def read_template(path: Union[str, Path]) -> str:
    """Read a text template, refusing binary content.

    Raises:
        FileNotFoundError: If path does not exist
        BinaryFileError: If the content does not look like UTF-8 text
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Template not found: {path}")
    data = path.read_bytes()
    if looks_binary(data):
        raise BinaryFileError(path)
    return data.decode("utf-8")


def write_atomic(path: Path, content: str, mode: Optional[int] = None) -> None:
    """Write via a sibling temp file and rename, applying ``mode`` if given."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        if mode is not None:
            os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class TemplateProcessor:
    """Runs templates through detection, resolution and substitution."""

    def __init__(
        self,
        resolver: SecretResolver,
        allow_missing: bool = False,
        dry_run: bool = False,
        debug: bool = False,
        debug_stream: Optional[TextIO] = None,
        backup: bool = False,
        vault: Optional[str] = None,
        fmt: Optional[Union[TemplateFormat, str]] = None,
    ):
        """Initialize template processor.

        Args:
            resolver: Resolves tokens to secret values
            allow_missing: Keep unresolved placeholders instead of failing the file
            dry_run: Build a redacted preview, never write
            debug: Trace every token to debug_stream (identifiers only)
            debug_stream: Diagnostic stream (default: stderr)
            backup: Copy an existing destination to <name>.backup before overwrite
            vault: Vault for grammars that do not name one
            fmt: Force a grammar instead of auto-detecting ('auto' or None detects)
        """
        self.resolver = resolver
        self.allow_missing = allow_missing
        self.dry_run = dry_run
        self.debug = debug
        self.debug_stream = debug_stream
        self.backup = backup
        self.vault = vault
        self.fmt = None if fmt in (None, "auto") else coerce_format(fmt)

    def _trace(self, message: str) -> None:
        if self.debug:
            print(f"[DEBUG] {message}", file=self.debug_stream or sys.stderr)

    def _resolve_tokens(self, tokens: List[Token], fmt: TemplateFormat):
        values: Dict[Token, str] = {}
        unresolved: List[Token] = []
        for token in tokens:
            vault = token.vault or self.vault
            self._trace(f"{fmt.value}: resolving {token}")
            try:
                values[token] = self.resolver.resolve(token.name, token.field, vault)
                self._trace(f"{fmt.value}: {token} resolved")
            except NotSignedInError:
                raise
            except DotsecretsError as e:
                unresolved.append(token)
                self._trace(f"{fmt.value}: {token} unresolved ({type(e).__name__})")
        return values, unresolved

    def process_content(
        self,
        content: str,
        source: Optional[Path] = None,
        allow_missing: Optional[bool] = None,
    ) -> ProcessingResult:
        """Resolve every placeholder in content.

        Raises:
            UnresolvedSecretsError: Strict policy and at least one token failed
            NotSignedInError: Provider session unusable
        """
        allow_missing = self.allow_missing if allow_missing is None else allow_missing

        fmt = self.fmt or detect_format(content)
        if fmt is None:
            self._trace(f"no placeholders detected{f' in {source}' if source else ''}")
            return ProcessingResult(content=content, format=None, source=source)

        tokens = sort_tokens(extract_tokens(content, fmt))
        self._trace(f"format {fmt.value}, {len(tokens)} token(s)")

        values, unresolved = self._resolve_tokens(tokens, fmt)
        if unresolved and not allow_missing:
            raise UnresolvedSecretsError((t.spec for t in unresolved), path=source)

        # Single pass: a substituted value is never rescanned for placeholders
        resolved = substitute(content, fmt, values.get)

        preview = None
        if self.dry_run:
            if self.debug:
                preview = resolved
            else:
                preview = substitute(
                    content, fmt, lambda t: redact(t, values[t]) if t in values else None
                )

        return ProcessingResult(
            content=resolved,
            format=fmt,
            tokens=tokens,
            unresolved=unresolved,
            warnings=[f"Secret not found, placeholder kept: {t}" for t in unresolved],
            preview=preview,
            source=source,
        )

    def _backup(self, path: Path) -> None:
        backup_path = path.with_name(path.name + BACKUP_SUFFIX)
        shutil.copy2(path, backup_path)
        logger.debug(f"Created backup: {backup_path}")

    def process_file(
        self,
        input_path: Union[str, Path],
        output_path: Optional[Union[str, Path]] = None,
    ) -> ProcessingResult:
        """Process one template file.

        Args:
            input_path: Template to read
            output_path: Destination (default: input without .template/.tmpl/.tpl)

        Raises:
            BinaryFileError: Input is not text; nothing is written
            UnresolvedSecretsError: Strict policy failure; nothing is written
        """
        source = Path(input_path)
        content = read_template(source)
        output = Path(output_path) if output_path else default_output_path(source)

        result = self.process_content(content, source=source)
        result.output_path = output

        if self.dry_run:
            return result
        # No placeholders: copy through unchanged, never rewrite in place
        if result.format is None and output.resolve() == source.resolve():
            return result

        reference = output if output.exists() else source
        mode = stat.S_IMODE(reference.stat().st_mode)

        if self.backup and output.exists():
            self._backup(output)

        write_atomic(output, result.content, mode)
        result.written = True
        logger.debug(f"Wrote processed template to: {output}")
        return result

    def process_many(self, paths: List[Path]) -> RunSummary:
        """Process several files; a failing file never stops the rest.

        Missing sessions and format-table bugs still abort the run.
        """
        summary = RunSummary()
        for path in paths:
            path = Path(path)
            try:
                result = self.process_file(path)
            except (NotSignedInError, UnsupportedFormatError):
                raise
            except (DotsecretsError, OSError) as e:
                summary.failed[path] = str(e)
                continue
            summary.results[path] = result
            if result.format is None:
                summary.skipped.append(path)
            else:
                summary.succeeded.append(path)
        return summary

    def validate(self, path: Union[str, Path], check_secrets: bool = True) -> ValidationReport:
        """Inspect a template without writing anything."""
        path = Path(path)
        content = read_template(path)
        fmt = self.fmt or detect_format(content)
        if fmt is None:
            return ValidationReport(path=path, format=None, checked=check_secrets)

        tokens = sort_tokens(extract_tokens(content, fmt))
        missing: List[Token] = []
        if check_secrets:
            _, missing = self._resolve_tokens(tokens, fmt)

        return ValidationReport(
            path=path,
            format=fmt,
            tokens=tokens,
            missing=missing,
            issues=lint_template(content, tokens),
            checked=check_secrets,
        )

    def diff(self, path: Union[str, Path]) -> str:
        """Unified diff of a template against its resolved form.

        Unresolved placeholders are kept. Values are shown in clear text.
        """
        path = Path(path)
        original = read_template(path)
        resolved = self.process_content(original, source=path, allow_missing=True).content
        return "".join(
            difflib.unified_diff(
                original.splitlines(keepends=True),
                resolved.splitlines(keepends=True),
                fromfile=str(path),
                tofile=f"{path} (resolved)",
            )
        )
