"""
Screen state for the studio UI

Each screen owns an explicit ScreenStatus instead of loose loading flags, and
a generation token. Every request captures the token when it starts; reset()
and start_over() advance it, so a result that arrives after the user moved on
is dropped instead of overwriting the fresh state.

Actions return False when they are ignored (a request is already in flight or
the screen is not in a state that allows the action) and True otherwise. The
outcome of an accepted action is read back from the screen's state.

The lock only guards state reads and writes; it is never held across a call
to the generation service.
"""

import logging
import threading
from typing import Callable, List, Optional

from models.schemas import ScreenStatus
from .errors import MalformedInputError, TryOnError, get_friendly_error_message
from .image_codec import file_to_data_url, prepare_upload

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, str, int], None]


def _notify(progress_callback, step, message, percent):
    if progress_callback is not None:
        progress_callback(step, message, percent)


class Screen:
    """State shared by both screens"""

    def __init__(self, generator, lock=None):
        self._generator = generator
        self._lock = lock or threading.RLock()
        self._token = 0
        self.status = ScreenStatus.IDLE
        self.error: Optional[str] = None
        self.error_kind: Optional[str] = None
        self.loading_message = ""

    @property
    def is_pending(self) -> bool:
        return self.status is ScreenStatus.PENDING

    @property
    def generation_token(self) -> int:
        return self._token

    def _begin(self, loading_message):
        """Enter PENDING and hand out the token for this request. Caller holds the lock."""
        self._token += 1
        self.status = ScreenStatus.PENDING
        self.error = None
        self.error_kind = None
        self.loading_message = loading_message
        return self._token

    def _is_stale(self, token, operation):
        if token != self._token:
            logger.info("Discarding stale %s result (token %d, current %d)", operation, token, self._token)
            return True
        return False

    def _fail(self, error, context):
        self.status = ScreenStatus.ERROR
        self.loading_message = ""
        self.error_kind = error.__class__.__name__
        if isinstance(error, MalformedInputError) and context is None:
            self.error = str(error)
        else:
            self.error = get_friendly_error_message(error, context)

    def _log_failure(self, operation, error):
        if isinstance(error, TryOnError):
            logger.warning("%s failed: %s", operation, error)
        else:
            logger.exception("%s failed unexpectedly", operation)

    def _invalidate(self):
        self._token += 1
        self.status = ScreenStatus.IDLE
        self.error = None
        self.error_kind = None
        self.loading_message = ""


class StartScreen(Screen):
    """
    Upload / compare screen.

    Holds the user's photo, the generated model image and the body adjustment
    panel. The adjustment panel tracks its own status next to the screen's.
    """

    def __init__(self, generator, lock=None):
        super().__init__(generator, lock)
        self.user_image_url: Optional[str] = None
        self.generated_model_url: Optional[str] = None
        self.adjust_status = ScreenStatus.IDLE

    @property
    def is_adjusting(self) -> bool:
        return self.adjust_status is ScreenStatus.PENDING

    def select_photo(self, upload, progress_callback: Optional[ProgressCallback] = None) -> bool:
        """
        Take a new photo and generate the model image from it.

        Args:
            upload: UploadedImage as received from the browser
            progress_callback: Optional callable(step, message, percent)
        """
        try:
            photo = prepare_upload(upload)
        except MalformedInputError as e:
            with self._lock:
                if self.is_pending or self.is_adjusting:
                    return False
                self._fail(e, None)
            return True

        with self._lock:
            if self.is_pending or self.is_adjusting:
                return False
            token = self._begin("Generating your model...")
            self.user_image_url = file_to_data_url(photo)
            self.generated_model_url = None

        _notify(progress_callback, "generating_model", "Generating your model...", 10)

        try:
            result = self._generator.generate_model_image(photo)
        except Exception as e:
            self._log_failure("generate_model_image", e)
            with self._lock:
                if self._is_stale(token, "generate_model_image"):
                    return True
                self._fail(e, "Failed to create model")
                self.user_image_url = None
            _notify(progress_callback, "error", self.error, 0)
            return True

        with self._lock:
            if self._is_stale(token, "generate_model_image"):
                return True
            self.generated_model_url = result
            self.status = ScreenStatus.IDLE
            self.loading_message = ""

        _notify(progress_callback, "complete", "Model ready", 100)
        return True

    def adjust_body(self, direction, progress_callback: Optional[ProgressCallback] = None) -> bool:
        """
        Nudge the generated model's physique "more" or "less" toned.

        Ignored unless a model exists and nothing else is in flight.
        """
        with self._lock:
            if not self.generated_model_url or self.is_pending or self.is_adjusting:
                return False
            token = self._token
            base_image = self.generated_model_url
            self.error = None
            self.error_kind = None
            if self.status is ScreenStatus.ERROR:
                self.status = ScreenStatus.IDLE
            self.adjust_status = ScreenStatus.PENDING

        _notify(progress_callback, "adjusting", "Adjusting physique...", 10)

        try:
            result = self._generator.adjust_body_shape(base_image, direction)
        except Exception as e:
            self._log_failure("adjust_body_shape", e)
            with self._lock:
                if self._is_stale(token, "adjust_body_shape"):
                    return True
                self.adjust_status = ScreenStatus.IDLE
                self._fail(e, "Failed to adjust body shape")
            _notify(progress_callback, "error", self.error, 0)
            return True

        with self._lock:
            if self._is_stale(token, "adjust_body_shape"):
                return True
            self.adjust_status = ScreenStatus.IDLE
            self.generated_model_url = result

        _notify(progress_callback, "complete", "Physique adjusted", 100)
        return True

    def reset(self):
        """Back to the upload prompt ("Try Again" / "Use Different Photo")."""
        with self._lock:
            self._invalidate()
            self.user_image_url = None
            self.generated_model_url = None
            self.adjust_status = ScreenStatus.IDLE

    def finalize(self) -> Optional[str]:
        """Return the finished model image, or None when there is none yet."""
        with self._lock:
            if self.is_pending or self.is_adjusting or self.status is ScreenStatus.ERROR:
                return None
            return self.generated_model_url

    def to_dict(self):
        with self._lock:
            return {
                'status': self.status.value,
                'adjust_status': self.adjust_status.value,
                'user_image_url': self.user_image_url,
                'generated_model_url': self.generated_model_url,
                'loading_message': self.loading_message,
                'error': self.error,
                'error_kind': self.error_kind,
            }


class CanvasScreen(Screen):
    """Styling canvas: current image, pose changes and garment try-on"""

    def __init__(self, generator, lock=None):
        super().__init__(generator, lock)
        self.display_image_url: Optional[str] = None
        self.current_pose_instruction = ""
        self.applied_items: List[str] = []

    def load_model(self, model_image_url):
        with self._lock:
            self._invalidate()
            self.display_image_url = model_image_url
            self.current_pose_instruction = ""
            self.applied_items = []

    def _run(self, operation, loading_message, context, call, progress_callback, on_success=None):
        """
        Run one generation against the displayed image.

        Returns:
            tuple: (accepted, new_image_url or None)
        """
        with self._lock:
            if not self.display_image_url or self.is_pending:
                return False, None
            token = self._begin(loading_message)
            base_image = self.display_image_url

        _notify(progress_callback, operation, loading_message, 10)

        try:
            result = call(base_image)
        except Exception as e:
            self._log_failure(operation, e)
            with self._lock:
                if self._is_stale(token, operation):
                    return True, None
                self._fail(e, context)
            _notify(progress_callback, "error", self.error, 0)
            return True, None

        with self._lock:
            if self._is_stale(token, operation):
                return True, None
            self.display_image_url = result
            self.status = ScreenStatus.IDLE
            self.loading_message = ""
            if on_success is not None:
                on_success()

        _notify(progress_callback, "complete", "Image ready", 100)
        return True, result

    def select_pose(self, instruction, progress_callback: Optional[ProgressCallback] = None) -> bool:
        instruction = (instruction or "").strip()
        if not instruction:
            return False

        def remember_pose():
            self.current_pose_instruction = instruction

        accepted, _ = self._run(
            "generate_pose_variation",
            "Changing pose...",
            "Failed to change pose",
            lambda image: self._generator.generate_pose_variation(image, instruction),
            progress_callback,
            on_success=remember_pose,
        )
        return accepted

    def try_on(self, item, progress_callback: Optional[ProgressCallback] = None) -> bool:
        """Dress the current image in a wardrobe item."""
        garment = item.file if item.file is not None else item.url
        accepted, _ = self._run(
            "generate_virtual_try_on_image",
            f"Adding {item.name}...",
            "Failed to apply garment",
            lambda image: self._generator.generate_virtual_try_on_image(image, garment),
            progress_callback,
            on_success=lambda: self.applied_items.append(item.id),
        )
        return accepted

    def start_over(self):
        with self._lock:
            self._invalidate()
            self.display_image_url = None
            self.current_pose_instruction = ""
            self.applied_items = []

    def to_dict(self):
        with self._lock:
            return {
                'status': self.status.value,
                'display_image_url': self.display_image_url,
                'current_pose_instruction': self.current_pose_instruction,
                'applied_items': list(self.applied_items),
                'loading_message': self.loading_message,
                'error': self.error,
                'error_kind': self.error_kind,
            }
