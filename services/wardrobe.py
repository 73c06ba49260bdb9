"""
Session wardrobe

Garments the user uploaded in this session. Nothing here is persisted.
"""

import os
import uuid
from typing import Dict, List, Optional

from models.schemas import UploadedImage, WardrobeItem
from .image_codec import file_to_data_url

# No built-in garments; the wardrobe only holds user uploads.
DEFAULT_WARDROBE: List[WardrobeItem] = []


def garment_name_from_filename(filename):
    """'red_summer-dress.png' -> 'Red summer dress'"""
    stem = os.path.splitext(os.path.basename(filename or ""))[0]
    name = " ".join(stem.replace("_", " ").replace("-", " ").split())
    return name.capitalize() if name else "Custom garment"


class Wardrobe:
    """Ordered collection of WardrobeItem objects"""

    def __init__(self, items=None):
        self._items: Dict[str, WardrobeItem] = {}
        for item in items if items is not None else DEFAULT_WARDROBE:
            self._items[item.id] = item

    def add(self, upload: UploadedImage, name=None) -> WardrobeItem:
        """
        Create a wardrobe item from an uploaded garment image.

        Args:
            upload: The garment image
            name: Display name (defaults to one derived from the filename)

        Returns:
            The new WardrobeItem
        """
        item = WardrobeItem(
            id=f"custom-{uuid.uuid4().hex[:12]}",
            name=(name or "").strip() or garment_name_from_filename(upload.filename),
            url=file_to_data_url(upload),
            file=upload,
        )
        self._items[item.id] = item
        return item

    def get(self, item_id) -> Optional[WardrobeItem]:
        return self._items.get(item_id)

    def remove(self, item_id) -> bool:
        return self._items.pop(item_id, None) is not None

    def clear(self):
        self._items.clear()

    def __iter__(self):
        return iter(list(self._items.values()))

    def __len__(self):
        return len(self._items)

    def __contains__(self, item_id):
        return item_id in self._items

    def to_list(self):
        return [item.to_dict() for item in self._items.values()]
