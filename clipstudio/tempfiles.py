"""Unique temporary paths with explicit release."""

import logging
import tempfile
import time
import uuid
import warnings
from contextlib import contextmanager
from pathlib import Path

from clipstudio.ffutil import CleanupWarning

logger = logging.getLogger(__name__)


class TempFileProvider:
    """Hands out unique paths under *root* and deletes them on release.

    Paths are only reserved by name; the file is created by whoever writes it.
    Names embed a millisecond timestamp and a random suffix so concurrent
    pipelines sharing one directory never collide.
    """

    def __init__(self, root: Path | None = None):
        self.root = Path(root) if root is not None else Path(tempfile.gettempdir())

    def allocate(self, prefix: str = "clipstudio", suffix: str = "") -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        token = f"{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"
        return self.root / f"{prefix}_{token}{suffix}"

    def release(self, path: Path) -> None:
        """Delete *path* if it exists. Failures are reported, never raised."""
        try:
            Path(path).unlink(missing_ok=True)
        except OSError as e:
            msg = f"could not remove temporary file {path}: {e}"
            logger.warning(msg)
            warnings.warn(msg, CleanupWarning, stacklevel=2)

    @contextmanager
    def guard_output(self, path: Path):
        """Remove *path* if the wrapped block fails after creating or rewriting it.

        A file that was already there and is left untouched by the failed run
        is kept.
        """
        path = Path(path)
        before = _fingerprint(path)
        try:
            yield path
        except BaseException:
            after = _fingerprint(path)
            if after is not None and after != before:
                logger.debug("Removing partial output %s", path)
                self.release(path)
            raise


def _fingerprint(path: Path) -> tuple[int, int] | None:
    try:
        st = path.stat()
    except FileNotFoundError:
        return None
    return st.st_mtime_ns, st.st_size
