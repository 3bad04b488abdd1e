"""Locate template files and derive their output paths."""
from pathlib import Path
from typing import Iterable, List, Optional

from dotsecrets.core.formats import detect_format
from dotsecrets.core.logger import get_logger

logger = get_logger(__name__)

TEMPLATE_EXTENSIONS = (".template", ".tmpl", ".tpl")

# Searched by inject-all, relative to the home directory
TEMPLATE_LOCATIONS = [
    ".aws",
    ".config",
    ".ssh",
    "configs",
    "templates",
    ".templates",
]

BINARY_SNIFF_BYTES = 8192


def looks_binary(data: bytes) -> bool:
    """Encoding check: NUL bytes or invalid UTF-8 mean binary."""
    if b"\x00" in data[:BINARY_SNIFF_BYTES]:
        return True
    try:
        data.decode("utf-8")
    except UnicodeDecodeError:
        return True
    return False


def is_template_file(path: Path) -> bool:
    return Path(path).suffix in TEMPLATE_EXTENSIONS


def default_output_path(path: Path) -> Path:
    """config.yml.template -> config.yml; anything else is processed in place."""
    path = Path(path)
    if path.suffix in TEMPLATE_EXTENSIONS:
        return path.with_suffix("")
    return path


def has_placeholders(path: Path) -> bool:
    """True for readable text files containing any placeholder grammar."""
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        logger.debug(f"Skipping unreadable file {path}: {e}")
        return False
    if looks_binary(data):
        return False
    return detect_format(data.decode("utf-8")) is not None


def find_templates(root: Path, recursive: bool = True, force: bool = False) -> List[Path]:
    """Collect template files under root.

    Args:
        root: Directory to search
        recursive: Descend into subdirectories
        force: Also include non-template-named files that contain placeholders

    Returns:
        Sorted list of matching files
    """
    root = Path(root)
    candidates: Iterable[Path] = root.rglob("*") if recursive else root.glob("*")

    found = []
    for path in candidates:
        if not path.is_file():
            continue
        if is_template_file(path) or (force and has_placeholders(path)):
            found.append(path)
    return sorted(found)


def find_common_templates(home: Optional[Path] = None, locations: Optional[List[str]] = None) -> List[Path]:
    """Collect template files from the usual dotfile locations under home."""
    home = Path(home) if home else Path.home()
    found: List[Path] = []
    for location in locations or TEMPLATE_LOCATIONS:
        directory = home / location
        if directory.is_dir():
            found.extend(find_templates(directory, recursive=True))
    return found
