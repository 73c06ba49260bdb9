"""
Data schemas for the try-on studio

All of these live only for the lifetime of a browser session.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class ScreenStatus(str, Enum):
    """Loading state of a single screen"""
    IDLE = "idle"
    PENDING = "pending"
    ERROR = "error"


class BodyDirection(str, Enum):
    """Direction of a relative physique adjustment"""
    MORE = "more"
    LESS = "less"


@dataclass
class UploadedImage:
    """An image file received from the browser, held in memory"""
    filename: str
    data: bytes
    mime_type: str
    image_type: str = "photo"  # "photo" or "garment"

    @property
    def file_size(self) -> int:
        return len(self.data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "mime_type": self.mime_type,
            "file_size": self.file_size,
            "image_type": self.image_type,
        }


@dataclass
class WardrobeItem:
    """A garment the user uploaded during the session"""
    id: str
    name: str
    url: str  # data URL
    file: Optional[UploadedImage] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
        }


@dataclass
class GenerationProgress:
    """Progress update pushed to the browser over Socket.IO"""
    step: str
    message: str
    progress_percent: int
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step,
            "message": self.message,
            "progress_percent": self.progress_percent,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }
