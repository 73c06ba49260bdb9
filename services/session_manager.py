"""
Session Management for the try-on studio

Each browser tab gets a StudioSession holding its two screens and its
wardrobe. All sessions share the injected GenerationClient.
"""

import threading
import uuid
from datetime import datetime, timedelta
from typing import Dict, Optional

from .screens import CanvasScreen, StartScreen
from .wardrobe import Wardrobe


class StudioSession:
    """Per-tab state: upload screen, canvas and wardrobe"""

    def __init__(self, session_id: str, generator):
        self.session_id = session_id
        self.lock = threading.RLock()
        self.start = StartScreen(generator, self.lock)
        self.canvas = CanvasScreen(generator, self.lock)
        self.wardrobe = Wardrobe()
        self.created_at = datetime.now()
        self.last_updated = self.created_at

    def touch(self):
        self.last_updated = datetime.now()

    def proceed_to_styling(self) -> Optional[str]:
        """Hand the finished model from the upload screen to the canvas."""
        model_url = self.start.finalize()
        if model_url:
            self.canvas.load_model(model_url)
            self.touch()
        return model_url

    def start_over(self):
        """Clear the canvas, the wardrobe and the upload screen."""
        with self.lock:
            self.canvas.start_over()
            self.start.reset()
            self.wardrobe.clear()
            self.touch()

    @property
    def screen(self) -> str:
        """Which screen the browser should show"""
        return "canvas" if self.canvas.display_image_url else "start"

    def to_dict(self):
        with self.lock:
            return {
                'session_id': self.session_id,
                'screen': self.screen,
                'start': self.start.to_dict(),
                'canvas': self.canvas.to_dict(),
                'wardrobe': self.wardrobe.to_list(),
                'created_at': self.created_at.isoformat(),
                'last_updated': self.last_updated.isoformat(),
            }


class SessionManager:
    """Manages studio sessions"""

    def __init__(self, generator, session_timeout_minutes: int = 60):
        """
        Initialize session manager.

        Args:
            generator: GenerationClient shared by every session
            session_timeout_minutes: Minutes of inactivity before a session expires
        """
        self.generator = generator
        self.sessions: Dict[str, StudioSession] = {}
        self.session_timeout = timedelta(minutes=session_timeout_minutes)
        self._lock = threading.Lock()

    def create_session(self) -> StudioSession:
        """Create a new session, dropping any that expired without being revisited."""
        self.cleanup_expired_sessions()

        session_id = str(uuid.uuid4())
        session = StudioSession(session_id, self.generator)
        with self._lock:
            self.sessions[session_id] = session
        return session

    def get_session(self, session_id: str) -> Optional[StudioSession]:
        """
        Get an existing session.

        Returns:
            StudioSession if found and not expired, None otherwise
        """
        with self._lock:
            session = self.sessions.get(session_id)
            if session is None:
                return None

            if datetime.now() - session.last_updated > self.session_timeout:
                del self.sessions[session_id]
                return None

        return session

    def get_or_create_session(self, session_id: Optional[str] = None) -> tuple[StudioSession, bool]:
        """
        Get existing session or create new one.

        Returns:
            Tuple of (StudioSession, is_new)
        """
        if session_id:
            session = self.get_session(session_id)
            if session:
                return session, False

        return self.create_session(), True

    def cleanup_expired_sessions(self) -> int:
        """
        Remove all expired sessions.

        Returns:
            Number of sessions cleaned up
        """
        now = datetime.now()
        with self._lock:
            expired_ids = [
                sid for sid, session in self.sessions.items()
                if now - session.last_updated > self.session_timeout
            ]
            for sid in expired_ids:
                del self.sessions[sid]

        return len(expired_ids)

    def get_session_count(self) -> int:
        """Get number of active sessions"""
        with self._lock:
            return len(self.sessions)
