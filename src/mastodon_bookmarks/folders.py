"""User-defined folders of bookmarks.

Folders hold bookmark ids, not bookmarks. An id may outlive the bookmark it
names (the post was unbookmarked or deleted upstream); lookups simply skip
such ids. Every mutation is persisted immediately under ``savedFolders``.

Operations on an unknown folder id are ignored and reported through a False
return value rather than an exception, since the caller's view of the folder
list may be out of date.
"""

import logging

from .errors import DecodeError
from .models import Folder, InvalidInput, Status
from .parser import folder_to_dict, parse_folders
from .store import FOLDERS_KEY, JsonStore, StoreCorrupt

logger = logging.getLogger(__name__)


class FolderRegistry:
    def __init__(self, store: JsonStore):
        self.store = store
        self.folders: list[Folder] = []
        self._load()

    def _load(self) -> None:
        try:
            payload = self.store.load(FOLDERS_KEY)
            if payload is None:
                return
            self.folders = parse_folders(payload)
        except (StoreCorrupt, DecodeError) as e:
            logger.warning("Failed to load folders: %s", e)
            return
        logger.info("Loaded %d folders from storage", len(self.folders))

    def _save(self) -> None:
        self.store.save(FOLDERS_KEY, [folder_to_dict(f) for f in self.folders])
        logger.debug("Saved %d folders", len(self.folders))

    def get(self, folder_id: str) -> Folder | None:
        for folder in self.folders:
            if folder.id == folder_id:
                return folder
        return None

    def create(self, name: str) -> Folder:
        name = _clean_name(name)
        folder = Folder(name=name)
        self.folders.append(folder)
        self._save()
        logger.info("Created folder %r (%s)", name, folder.id)
        return folder

    def rename(self, folder_id: str, new_name: str) -> bool:
        new_name = _clean_name(new_name)
        folder = self.get(folder_id)
        if folder is None:
            logger.debug("Rename ignored, no folder %s", folder_id)
            return False
        folder.name = new_name
        self._save()
        return True

    def delete(self, positions) -> list[Folder]:
        """Remove the folders at the given positions of the current ordering.

        Out-of-range positions are skipped. Returns the removed folders.
        """
        wanted = {p for p in positions if 0 <= p < len(self.folders)}
        skipped = set(positions) - wanted
        if skipped:
            logger.warning("Ignoring out-of-range folder positions: %s", sorted(skipped))

        removed = [f for i, f in enumerate(self.folders) if i in wanted]
        self.folders = [f for i, f in enumerate(self.folders) if i not in wanted]
        if removed:
            self._save()
        return removed

    def add_bookmark(self, folder_id: str, bookmark_id: str) -> bool:
        folder = self.get(folder_id)
        if folder is None:
            return False
        if bookmark_id not in folder.bookmark_ids:
            folder.bookmark_ids.append(bookmark_id)
            self._save()
        return True

    def remove_bookmark(self, folder_id: str, bookmark_id: str) -> bool:
        folder = self.get(folder_id)
        if folder is None:
            return False
        if bookmark_id in folder.bookmark_ids:
            folder.bookmark_ids = [b for b in folder.bookmark_ids if b != bookmark_id]
            self._save()
        return True

    def contains(self, folder_id: str, bookmark_id: str) -> bool:
        folder = self.get(folder_id)
        return folder is not None and bookmark_id in folder.bookmark_ids

    def folders_containing(self, bookmark_id: str) -> list[Folder]:
        return [f for f in self.folders if bookmark_id in f.bookmark_ids]


def members_of(folder: Folder, collection: list[Status]) -> list[Status]:
    """Bookmarks of ``collection`` that belong to ``folder``, in collection order."""
    ids = set(folder.bookmark_ids)
    return [status for status in collection if status.id in ids]


def _clean_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise InvalidInput("Folder name must not be empty")
    return name
