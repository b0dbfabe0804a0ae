"""Module staging: extract a platform's module tree into a directory."""

import logging
from pathlib import Path, PurePosixPath

from terraform.assets import ArtifactStore, AssetNotFoundError
from terraform.errors import UnpackError

logger = logging.getLogger(__name__)

# Auxiliary files staged next to every platform's modules
CONFIG_FILE_NAME = 'config.tf'
CLI_CONFIG_FILE_NAME = 'terraform.rc'


def unpack(platform: str, dest: Path, store: ArtifactStore) -> None:
    """Extract the platform module tree and auxiliary files into dest.

    A platform is a directory directly under the store root.

    Not transactional: files written before a failure stay in place.
    """
    dest = Path(dest)
    if len(PurePosixPath(platform).parts) != 1 or not store.is_dir(platform):
        raise AssetNotFoundError(platform, store.root)
    store.unpack(dest, platform)
    store.unpack(dest / CONFIG_FILE_NAME, CONFIG_FILE_NAME)
    store.unpack(dest / CLI_CONFIG_FILE_NAME, CLI_CONFIG_FILE_NAME)


def unpack_modules(platform: str, dest: Path, store: ArtifactStore) -> None:
    """Stage modules for platform, wrapping failures as UnpackError."""
    logger.info(f"Unpacking {platform} modules into {dest}")
    try:
        unpack(platform, dest, store)
    except (AssetNotFoundError, OSError) as e:
        raise UnpackError(str(e)) from e
