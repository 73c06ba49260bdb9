"""
Try-On Studio Services

This package contains service modules for the try-on studio:
- config: Settings loaded from the environment
- errors: Error taxonomy and user-facing messages
- image_codec: Data URL encoding and upload conversion
- gemini_generator: Gemini image generation
- screens: Upload and canvas screen state
- wardrobe: Session wardrobe
- session_manager: Per-tab studio sessions
"""

__all__ = [
    'config',
    'errors',
    'image_codec',
    'gemini_generator',
    'screens',
    'wardrobe',
    'session_manager',
]
