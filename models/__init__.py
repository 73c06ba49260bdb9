"""
Data models for the try-on studio
"""

from .schemas import (
    ScreenStatus,
    BodyDirection,
    UploadedImage,
    WardrobeItem,
    GenerationProgress
)

__all__ = [
    'ScreenStatus',
    'BodyDirection',
    'UploadedImage',
    'WardrobeItem',
    'GenerationProgress'
]
