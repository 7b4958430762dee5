"""Image asset files referenced by items.

Items store image paths relative to the public directory
(``images/<file>``); absolute URLs point elsewhere and are never touched.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from pathlib import Path

logger = logging.getLogger(__name__)

IMAGES_SUBDIR = "images"
_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*]')


def clean_file_name(filename: str) -> str:
    """Make an uploaded file name safe to store under the images directory."""
    if not filename:
        return ""
    cleaned = filename.replace(" ", "_")
    cleaned = _UNSAFE_CHARS.sub("", cleaned)
    cleaned = re.sub(r"\.+", ".", cleaned)
    cleaned = re.sub(r"_+", "_", cleaned)
    return cleaned.strip("_")


def image_path_for(filename: str) -> str:
    cleaned = clean_file_name(filename)
    if not cleaned:
        return ""
    return f"{IMAGES_SUBDIR}/{cleaned}"


class ImageAssets:
    """Delete-if-unreferenced side effects on the images directory."""

    def __init__(self, public_dir: str | Path) -> None:
        self.public_dir = Path(public_dir)

    @property
    def images_dir(self) -> Path:
        return self.public_dir / IMAGES_SUBDIR

    def resolve(self, image_path: str) -> Path | None:
        """Map a stored image path to a file inside the public directory."""
        if not image_path or "://" in image_path:
            return None
        root = self.public_dir.resolve()
        candidate = (root / image_path.lstrip("/")).resolve()
        if candidate == root or root not in candidate.parents:
            return None
        return candidate

    def delete(self, image_path: str) -> bool:
        target = self.resolve(image_path)
        if target is None:
            logger.debug("image path %r is not a local asset; skipped", image_path)
            return False
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        except OSError:
            logger.warning("could not delete image asset %s", target, exc_info=True)
            return False
        logger.info("deleted image asset %s", target)
        return True

    def cleanup_orphans(self, used_paths: Iterable[str]) -> dict[str, int]:
        """Delete files in the images directory that no item references."""
        used = {path.lstrip("/") for path in used_paths}
        deleted = 0
        if self.images_dir.is_dir():
            for entry in sorted(self.images_dir.iterdir()):
                if not entry.is_file():
                    continue
                if f"{IMAGES_SUBDIR}/{entry.name}" in used:
                    continue
                try:
                    entry.unlink()
                except OSError:
                    logger.warning("could not delete orphaned image %s", entry, exc_info=True)
                    continue
                deleted += 1
        logger.info("image cleanup: %s deleted, %s referenced", deleted, len(used))
        return {"deleted_count": deleted, "used_images_count": len(used)}
