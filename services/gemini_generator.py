"""
Gemini Image Generation Service

Wraps the four try-on prompts around a single generate_content call to
Gemini's image model and normalizes every response into either a data URL
or one of the errors in services.errors.

The client is constructed explicitly (see GenerationClient.from_settings) and
handed to whoever needs it; there is no module-level instance.
"""

import logging
from enum import Enum

from google import genai
from google.genai import types

from models.schemas import BodyDirection, UploadedImage
from .config import DEFAULT_MODEL
from .errors import (
    BlockedContentError,
    GenerationInterruptedError,
    InitializationError,
    MalformedInputError,
    NoImageReturnedError,
)
from .image_codec import bytes_to_data_url, data_url_to_bytes, file_to_data_url

logger = logging.getLogger(__name__)

RESPONSE_MODALITIES = ["IMAGE", "TEXT"]

MODEL_IMAGE_PROMPT = """Objective: From the input image, create a photorealistic, athletic version of the person.
**CRITICAL RULES:**
1.  **Identity:** The subject's face and hair MUST remain unchanged. Preserve their identity.
2.  **Physique:** Refine the body to a natural, amateur athletic build with a flat, toned stomach.
3.  **Pose & Lighting:** Re-pose the subject in a natural 3/4 view with soft studio lighting.
4.  **Output:** Return ONLY the final image."""

TRY_ON_PROMPT = """You are an expert AI fashion stylist. Your task is to realistically place the provided garment onto the person in the model image.

**Instructions:**
1.  **Analyze both images:** Carefully examine the model's pose, body shape, and the lighting in their photo. Also, analyze the garment's shape, texture, and how it drapes.
2.  **Apply the Garment:** Seamlessly fit the garment onto the model. It must look natural, with realistic folds, shadows, and highlights that match the lighting on the model.
3.  **Preserve Identity & Pose:** Do NOT alter the model's face, body, pose, or the background. Only add the garment.
4.  **Output:** Return only the final photorealistic image of the model wearing the garment."""

POSE_PROMPT_TEMPLATE = """Carefully analyze the provided image. Your task is to regenerate the image with the person in a new pose as described, while maintaining their identity, clothing, and the background style.

**Instructions:**
1.  **Preserve Identity:** Do NOT change the person's face, hair, or distinct features. Their identity must remain the same.
2.  **Maintain Appearance:** Keep the person's clothing and the style of the background consistent with the original image.
3.  **Change Pose:** Modify the person's pose to: "{pose_instruction}".
4.  **Output:** Return only the newly generated photorealistic image."""

BODY_ADJUSTMENT_PROMPT_TEMPLATE = """You are a precise AI photo editor. The user wants to subtly adjust the abdominal muscles on the person in the image.

**Instruction:**
*   **Direction:** "{direction}"
*   If the direction is "more", slightly **increase** the definition of the six-pack abs, making them a bit more visible and toned.
*   If the direction is "less", slightly **decrease** the definition of the abs, making the stomach flatter and smoother.
*   **CRITICAL:** The change MUST be subtle and photorealistic.
*   **NON-NEGOTIABLE:** Do NOT change anything else. The face, hair, body shape, clothing, lighting, and background must remain absolutely identical.

Return ONLY the edited image."""


def _enum_name(value):
    if isinstance(value, Enum):
        return value.value
    return str(value)


def image_to_part(image):
    """
    Convert an uploaded file or a data URL into an inline-data request part.

    Uploads are first re-encoded as data URLs so every image goes through
    the same decoding path.
    """
    if isinstance(image, UploadedImage):
        image = file_to_data_url(image)
    image_bytes, mime_type = data_url_to_bytes(image)
    return types.Part.from_bytes(data=image_bytes, mime_type=mime_type)


def handle_api_response(response):
    """
    Extract the generated image from a generate_content response.

    Args:
        response: types.GenerateContentResponse

    Returns:
        str: Data URL of the first inline image found in any candidate

    Raises:
        BlockedContentError: If the prompt was blocked
        GenerationInterruptedError: If no image came back and generation did not finish with STOP
        NoImageReturnedError: If the model answered with text only (or nothing)
    """
    feedback = response.prompt_feedback
    if feedback is not None and feedback.block_reason:
        raise BlockedContentError(_enum_name(feedback.block_reason), feedback.block_reason_message)

    candidates = response.candidates or []

    # Find the first image part in any candidate
    for candidate in candidates:
        if candidate.content is None or not candidate.content.parts:
            continue
        for part in candidate.content.parts:
            inline_data = part.inline_data
            if inline_data is not None and inline_data.data:
                return bytes_to_data_url(inline_data.data, inline_data.mime_type or "image/png")

    finish_reason = candidates[0].finish_reason if candidates else None
    if finish_reason and _enum_name(finish_reason) != "STOP":
        raise GenerationInterruptedError(_enum_name(finish_reason))

    text_feedback = (response.text or "").strip() if candidates else ""
    raise NoImageReturnedError(text_feedback or None)


class GenerationClient:
    """Try-on operations backed by one Gemini image model"""

    def __init__(self, api_key=None, model=DEFAULT_MODEL, client=None):
        """
        Args:
            api_key: Google API key; when missing every call raises InitializationError
            model: Gemini model identifier
            client: Pre-built genai.Client (tests inject a fake here)
        """
        self.model = model
        self._client = client

        if self._client is None:
            if api_key:
                self._client = genai.Client(api_key=api_key)
            else:
                logger.error("API key not found. Please set the GOOGLE_API_KEY environment variable.")

    @classmethod
    def from_settings(cls, settings):
        return cls(api_key=settings.api_key, model=settings.model)

    @property
    def is_initialized(self) -> bool:
        return self._client is not None

    def _get_client(self):
        if self._client is None:
            raise InitializationError()
        return self._client

    def _generate(self, operation, parts):
        client = self._get_client()
        contents = [types.Content(role="user", parts=parts)]
        config = types.GenerateContentConfig(response_modalities=RESPONSE_MODALITIES)

        logger.info("Running %s with %s (%d parts)", operation, self.model, len(parts))
        response = client.models.generate_content(
            model=self.model,
            contents=contents,
            config=config,
        )

        try:
            image_url = handle_api_response(response)
        except (BlockedContentError, GenerationInterruptedError, NoImageReturnedError) as e:
            logger.warning("%s returned no image: %s", operation, e)
            raise

        logger.info("%s produced an image (%d chars)", operation, len(image_url))
        return image_url

    def generate_model_image(self, photo):
        """
        Create the athletic model image from the user's photo.

        Args:
            photo: UploadedImage or data URL
        """
        self._get_client()
        parts = [image_to_part(photo), types.Part.from_text(text=MODEL_IMAGE_PROMPT)]
        return self._generate("generate_model_image", parts)

    def generate_virtual_try_on_image(self, model_image_url, garment):
        """
        Dress the model in the garment.

        Args:
            model_image_url: Data URL of the current model image
            garment: UploadedImage or data URL of the garment
        """
        self._get_client()
        parts = [
            image_to_part(model_image_url),
            image_to_part(garment),
            types.Part.from_text(text=TRY_ON_PROMPT),
        ]
        return self._generate("generate_virtual_try_on_image", parts)

    def generate_pose_variation(self, model_image_url, pose_instruction):
        """Re-pose the model according to a free-text instruction."""
        self._get_client()
        pose_instruction = (pose_instruction or "").strip()
        if not pose_instruction:
            raise MalformedInputError("Pose instruction must not be empty")

        prompt = POSE_PROMPT_TEMPLATE.format(pose_instruction=pose_instruction)
        parts = [image_to_part(model_image_url), types.Part.from_text(text=prompt)]
        return self._generate("generate_pose_variation", parts)

    def adjust_body_shape(self, model_image_url, direction):
        """Make the abdominal definition slightly "more" or "less" pronounced."""
        self._get_client()
        try:
            direction = BodyDirection(direction)
        except ValueError:
            raise MalformedInputError(
                f"Invalid body adjustment direction: {direction!r}. Use 'more' or 'less'."
            ) from None

        prompt = BODY_ADJUSTMENT_PROMPT_TEMPLATE.format(direction=direction.value)
        parts = [image_to_part(model_image_url), types.Part.from_text(text=prompt)]
        return self._generate("adjust_body_shape", parts)
