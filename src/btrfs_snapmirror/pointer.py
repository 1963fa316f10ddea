"""Chain pointer: the snapshot used as basis for the next incremental send.

The pointer is a relative symlink named ``top`` inside a volume's snapshot
area. It is only resolved against the live snapshot listing, so a link to a
snapshot that has disappeared reads as "no basis" and forces a full send.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from filelock import FileLock

from . import __util__
from .snapshot import Snapshot, decode

logger = logging.getLogger(__name__)

POINTER_NAME = "top"
LOCK_NAME = ".btrfs-snapmirror.top.lock"


class PointerError(__util__.AbortError):
    """The chain pointer could not be updated."""


@dataclass(frozen=True)
class ChainPointer:
    """Pointer state read from a snapshot area.

    Attributes:
        area: Snapshot area holding the pointer
        target_name: Raw link target, even if it no longer exists
    """

    area: Path
    target_name: Optional[str] = None

    def resolve(self, snapshots: list[Snapshot]) -> Optional[Snapshot]:
        """Return the target snapshot if it is present in ``snapshots``."""
        if self.target_name is None:
            return None
        target = decode(self.target_name)
        if target is None:
            logger.warning(
                "Chain pointer in %s names a non-snapshot: %s",
                self.area,
                self.target_name,
            )
            return None
        if target not in snapshots:
            logger.warning(
                "Chain pointer in %s is dangling: %s", self.area, self.target_name
            )
            return None
        return target


def read_pointer(area: Path) -> ChainPointer:
    """Read the chain pointer of the snapshot area ``area``."""
    link = Path(area) / POINTER_NAME
    try:
        target = os.readlink(link)
    except FileNotFoundError:
        return ChainPointer(area=Path(area))
    except OSError as e:
        logger.warning("Unreadable chain pointer %s: %s", link, e)
        return ChainPointer(area=Path(area))
    return ChainPointer(area=Path(area), target_name=Path(target).name)


def write_pointer(area: Path, snapshot: Snapshot) -> ChainPointer:
    """Atomically point the chain pointer of ``area`` at ``snapshot``."""
    area = Path(area)
    link = area / POINTER_NAME
    tmp_link = area / f".{POINTER_NAME}.{os.getpid()}"
    logger.debug("Updating chain pointer %s -> %s", link, snapshot.name)
    try:
        with FileLock(str(area / LOCK_NAME)):
            if tmp_link.is_symlink():
                tmp_link.unlink()
            os.symlink(snapshot.name, tmp_link)
            os.replace(tmp_link, link)
    except OSError as e:
        logger.error("Error updating chain pointer %s: %s", link, e)
        raise PointerError(f"cannot update chain pointer {link}: {e}") from e
    return ChainPointer(area=area, target_name=snapshot.name)
