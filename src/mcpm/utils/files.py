# ABOUTME: Whole-file atomic writes for agent configs and the registry
# ABOUTME: Readers see either the old or the new content, never a partial file
import os
import tempfile
from pathlib import Path


def atomic_write_text(path: Path, text: str) -> None:
    """Write text to a sibling temp file, then rename it over path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w", delete=False, dir=str(path.parent), encoding="utf-8", prefix=f".{path.name}."
    ) as tf:
        tf.write(text)
        tmp_name = tf.name
    try:
        os.replace(tmp_name, path)
    except OSError:
        os.unlink(tmp_name)
        raise
