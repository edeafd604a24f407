import os
import tempfile
from pathlib import Path


def read_text(path):
    """Read a whole file as UTF-8 text, return None if file doesn't exist."""
    path = Path(path)
    if path.exists():
        return path.read_text(encoding='utf-8')
    return None


def ensure_directories(*paths):
    """Create directories if they don't exist."""
    for path in paths:
        Path(path).mkdir(parents=True, exist_ok=True)


def write_text_atomic(path, content):
    """Replace the whole file with content.

    Writes to a temp file in the target directory first, then renames it over
    the target so readers never observe a half-written file.
    """
    path = Path(path)
    ensure_directories(path.parent)
    fd, tmp_name = tempfile.mkstemp(prefix=f'.{path.name}.', suffix='.tmp', dir=str(path.parent))
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as handle:
            handle.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise
