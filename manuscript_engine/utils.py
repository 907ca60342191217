"""
Shared utility functions for the manuscript engine.

All writes use atomic temp-file-then-os.replace() so that a crash or a
rejected save never leaves a half-written sidecar or descriptor behind.
"""

import hashlib
import logging
import os
import tempfile

import yaml

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Text and YAML I/O (atomic writes)
# ---------------------------------------------------------------------------

def safe_write_text(path, text):
    """Atomically write *text* to *path*.

    Uses a temporary file in the same directory followed by
    ``os.replace()`` so that readers never see a partially-written file.

    Parameters
    ----------
    path : str or pathlib.Path
        Absolute path to the target file.
    text : str
        Content to write (UTF-8).
    """
    path = str(path)
    parent = os.path.dirname(path)
    os.makedirs(parent, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(dir=parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
            fh.write(text)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def dump_yaml(data) -> str:
    """Render *data* as block-style YAML, keeping dict insertion order."""
    return yaml.safe_dump(
        data,
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
        width=120,
    )


def safe_write_yaml(path, data):
    """Atomically write *data* as YAML to *path*."""
    safe_write_text(path, dump_yaml(data))


def read_yaml(path):
    """Parse the YAML file at *path*.

    Raises
    ------
    FileNotFoundError
        When the file does not exist.
    yaml.YAMLError
        When the content is not valid YAML.
    """
    with open(path, "r", encoding="utf-8") as fh:
        return yaml.safe_load(fh)


def read_text(path) -> str:
    with open(path, "r", encoding="utf-8") as fh:
        return fh.read()


# ---------------------------------------------------------------------------
# Hashing and names
# ---------------------------------------------------------------------------

def file_hash(path) -> str:
    """Hash the bytes of the file at *path* in ``sha256:<hex>`` form."""
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(65536), b""):
            digest.update(chunk)
    return "sha256:" + digest.hexdigest()


def stem(name: str) -> str:
    """File name without its last extension (dotfiles keep their name)."""
    base = os.path.basename(name)
    dot = base.rfind(".")
    return base[:dot] if dot > 0 else base


def extract_display_name(path) -> str:
    """Return the first ``# `` heading of a text file, else its stem."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            for line in fh:
                stripped = line.strip()
                if stripped.startswith("# "):
                    return stripped[2:].strip()
    except (OSError, UnicodeDecodeError):
        logger.debug("Could not read %s for a display name", path, exc_info=True)
    return stem(str(path))
