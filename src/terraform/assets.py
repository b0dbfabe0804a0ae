"""Read-only artifact store for platform module trees.

Entries are addressed by POSIX-style logical keys relative to the store
root: a platform name for a whole module tree, or a file name such as
``config.tf``. The bundled store lives next to this module under ``data/``.
"""

import logging
import os
import shutil
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent / 'data'


class AssetNotFoundError(Exception):
    """Requested key is not present in the store."""

    def __init__(self, key: str, root: Path):
        self.key = key
        self.root = root
        super().__init__(f"asset not found: {key!r} in {root}")


class ArtifactStore:
    """Key-path-addressed view over a directory tree."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def __repr__(self) -> str:
        return f"ArtifactStore({str(self.root)!r})"

    def _resolve(self, key: str) -> Path:
        """Map a logical key to a path inside the root.

        The root itself has no key, so '' and '.' are not found.
        """
        logical = PurePosixPath(key)
        if not logical.parts or logical.is_absolute() or '..' in logical.parts:
            raise AssetNotFoundError(key, self.root)
        path = self.root.joinpath(*logical.parts)
        if not path.exists():
            raise AssetNotFoundError(key, self.root)
        return path

    def exists(self, key: str) -> bool:
        try:
            self._resolve(key)
        except AssetNotFoundError:
            return False
        return True

    def is_dir(self, key: str) -> bool:
        return self._resolve(key).is_dir()

    def list(self, key: str) -> list[str]:
        """Names of the entries directly under a directory key."""
        return sorted(p.name for p in self._resolve(key).iterdir())

    def unpack(self, base: Path, key: str) -> None:
        """Extract key to base.

        A directory key has its children extracted into base, so
        ``unpack('.', 'aws')`` writes the contents of ``aws/`` directly
        into the current directory. A file key is copied to base itself.
        Existing files are overwritten.
        """
        source = self._resolve(key)
        base = Path(base)
        if source.is_dir():
            base.mkdir(mode=0o777, parents=True, exist_ok=True)
            for name in sorted(os.listdir(source)):
                self.unpack(base / name, str(PurePosixPath(key) / name))
            return

        base.parent.mkdir(mode=0o777, parents=True, exist_ok=True)
        logger.debug(f"Unpacking {key} -> {base}")
        shutil.copyfile(source, base)


def default_store() -> ArtifactStore:
    """Store backed by the data bundled with the package."""
    return ArtifactStore(DATA_DIR)
