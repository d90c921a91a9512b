"""File handler module: path validation, encoding-aware reads and atomic writes.

Backing files of the content store and local images referenced from
drafts all go through these helpers.
"""

import logging
import os
import tempfile
from pathlib import Path

from charset_normalizer import from_bytes

logger = logging.getLogger(__name__)

# =============================================================================
# Path Validation
# =============================================================================


def validate_file_path(path_str: str) -> Path:
    """Validate and resolve an input file path.

    Args:
        path_str: Absolute path string to an existing file.

    Returns:
        Resolved Path object pointing to the real file.

    Raises:
        ValueError: If path is relative, doesn't exist, or is not a file.
    """
    path = Path(path_str)
    if not path.is_absolute():
        raise ValueError(f"Path must be absolute: {path_str}")
    resolved = path.resolve()
    if not resolved.exists():
        raise ValueError(f"File not found: {path_str}")
    if not resolved.is_file():
        raise ValueError(f"Path is not a file: {path_str}")
    return resolved


def ensure_within(path: Path, base_dir: Path) -> Path:
    """Resolve *path* and check it lives under *base_dir*.

    Raises:
        ValueError: If the resolved path escapes *base_dir*.
    """
    resolved = path.resolve()
    base_resolved = base_dir.resolve()
    if not resolved.is_relative_to(base_resolved):
        raise ValueError(
            f"Path is outside base directory: {resolved} not under {base_resolved}"
        )
    return resolved


# =============================================================================
# File Read/Write
# =============================================================================


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file with automatic encoding detection.

    Reads raw bytes, then asks charset-normalizer for the encoding.
    Empty files and failed detection default to UTF-8.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")

    result = from_bytes(raw).best()
    if result is None:
        encoding = "utf-8"
        content = raw.decode(encoding, errors="replace")
    else:
        encoding = result.encoding
        # ascii is a strict subset of utf-8
        if encoding == "ascii":
            encoding = "utf-8"
        content = str(result)
    return (content, encoding)


def atomic_write(path: Path, data: bytes) -> int:
    """Write *data* to *path* so readers never see a partial file.

    Writes a temp file in the target directory, then ``os.replace()``s it
    over the target.  Parent directories are created as needed.

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    return len(data)


def write_text_atomic(path: Path, content: str, encoding: str = "utf-8") -> int:
    return atomic_write(path, content.encode(encoding))


def remove_file_quietly(path: Path) -> bool:
    """Delete *path*; failures are logged, never raised.

    Returns:
        True if the file was removed.
    """
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning("Could not delete %s: %s", path, e)
        return False
