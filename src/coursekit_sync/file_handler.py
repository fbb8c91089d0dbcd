"""File handler module: encoding-aware reads and byte-exact copies.

Discovery reads content through ``read_file_with_encoding`` so that
source trees authored on different platforms decode consistently; the
publish executor copies files byte-for-byte with ``copy_file``.
"""

import os
import shutil
import tempfile
from pathlib import Path

from charset_normalizer import from_bytes

# =============================================================================
# File Read/Copy
# =============================================================================


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file with automatic encoding detection.

    Reads raw bytes first, then uses charset-normalizer to detect encoding.
    Defaults to UTF-8 for empty files or when detection fails.

    Args:
        path: Path to the file to read.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")

    # Plain UTF-8 is by far the common case; skip detection for it.
    try:
        return (raw.decode("utf-8"), "utf-8")
    except UnicodeDecodeError:
        pass

    result = from_bytes(raw).best()
    if result is None:
        # Detection failed, fall back to utf-8
        encoding = "utf-8"
        content = raw.decode(encoding, errors="replace")
    else:
        encoding = result.encoding
        # Normalize ascii to utf-8 (ascii is a strict subset of utf-8)
        if encoding == "ascii":
            encoding = "utf-8"
        content = str(result)
    return (content, encoding)


def copy_file(source: Path, target: Path) -> int:
    """Copy *source* to *target* byte-for-byte.

    Parent directories are created as needed.  The bytes land in a temp
    file next to *target* first and are moved into place with
    ``os.replace()``, so readers never see a partial file.

    Args:
        source: Existing file to copy.
        target: Destination path (overwritten if present).

    Returns:
        Number of bytes written.
    """
    data = source.read_bytes()
    target.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(
        dir=str(target.parent), suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        shutil.copymode(source, tmp_path)
        os.replace(tmp_path, target)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    return len(data)
