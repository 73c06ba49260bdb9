"""
Image encoding service

Every image that travels between the browser and the generation service is a
data URL (data:<mime>;base64,<payload>). This module converts uploads into
data URLs, decodes data URLs back into raw bytes for the Gemini request, and
converts formats Gemini does not accept (HEIC from iPhones, TIFF, ICO) to JPEG.
"""

import base64
import binascii
import mimetypes
import re
from io import BytesIO
from typing import Optional

from PIL import Image, UnidentifiedImageError
from werkzeug.utils import secure_filename
from pillow_heif import register_heif_opener

from models.schemas import UploadedImage
from .errors import MalformedInputError

# Register HEIF/HEIC support
register_heif_opener()

_HEADER_RE = re.compile(r"^data:(?P<mime>[^;,]+)((?:;[^;,]+)*);base64$", re.IGNORECASE)

FORMAT_TO_MIME = {
    'JPEG': 'image/jpeg',
    'PNG': 'image/png',
    'GIF': 'image/gif',
    'BMP': 'image/bmp',
    'WEBP': 'image/webp',
    'HEIC': 'image/heic',
    'HEIF': 'image/heif',
    'AVIF': 'image/avif',
    'TIFF': 'image/tiff',
    'ICO': 'image/x-icon',
}


def parse_data_url(data_url):
    """
    Split a data URL into its MIME type and base64 payload.

    Args:
        data_url: String of the form data:<mime>;base64,<payload>

    Returns:
        tuple: (mime_type, base64_payload)

    Raises:
        MalformedInputError: If the string is not a base64 data URL
    """
    if not isinstance(data_url, str):
        raise MalformedInputError("Invalid data URL")

    header, sep, payload = data_url.partition(',')
    if not sep:
        raise MalformedInputError("Invalid data URL")

    match = _HEADER_RE.match(header.strip())
    if not match:
        raise MalformedInputError("Could not parse MIME type from data URL")

    return match.group('mime').lower(), payload


def data_url_to_bytes(data_url):
    """
    Decode a data URL into raw bytes.

    Returns:
        tuple: (image_bytes, mime_type)
    """
    mime_type, payload = parse_data_url(data_url)
    try:
        image_bytes = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedInputError(f"Data URL payload is not valid base64: {e}") from e

    # Non-zero pad bits decode fine but re-encode differently
    if base64.b64encode(image_bytes).decode('ascii') != payload:
        raise MalformedInputError("Data URL payload is not canonical base64")

    if not image_bytes:
        raise MalformedInputError("Data URL payload is empty")

    return image_bytes, mime_type


def bytes_to_data_url(image_bytes, mime_type):
    """Encode raw bytes as a data URL."""
    encoded = base64.b64encode(image_bytes).decode('ascii')
    return f"data:{mime_type};base64,{encoded}"


def file_to_data_url(upload):
    """Read an uploaded image fully and re-encode it as a data URL."""
    return bytes_to_data_url(upload.data, upload.mime_type)


def detect_image_type(image_bytes, filename=None, declared_mime=None):
    """
    Detect the MIME type of an uploaded image.

    The browser-declared type wins; then the filename; then Pillow sniffing.
    """
    if declared_mime and declared_mime != 'application/octet-stream':
        return declared_mime.lower()

    if filename:
        mime_type, _ = mimetypes.guess_type(filename)
        if mime_type:
            return mime_type

    try:
        with Image.open(BytesIO(image_bytes)) as img:
            return FORMAT_TO_MIME.get(img.format, 'application/octet-stream')
    except (UnidentifiedImageError, OSError):
        return 'application/octet-stream'


def needs_conversion(mime_type: str) -> bool:
    """
    Check if image format needs conversion for Gemini compatibility.

    Args:
        mime_type: MIME type of the image

    Returns:
        True if conversion needed, False otherwise
    """
    return mime_type.lower() in {
        'image/heic',
        'image/heif',
        'image/tiff',
        'image/x-icon'
    }


def convert_to_jpeg(image_bytes: bytes, quality: int = 95) -> bytes:
    """
    Convert any image format Pillow can open to JPEG.

    Raises:
        MalformedInputError: If the bytes are not a readable image
    """
    try:
        with Image.open(BytesIO(image_bytes)) as img:
            # Flatten transparency onto white
            if img.mode in ('RGBA', 'LA', 'P'):
                if img.mode == 'P':
                    img = img.convert('RGBA')
                background = Image.new('RGB', img.size, (255, 255, 255))
                background.paste(img, mask=img.split()[-1])
                img = background
            elif img.mode != 'RGB':
                img = img.convert('RGB')

            output = BytesIO()
            img.save(output, 'JPEG', quality=quality, optimize=True)
            return output.getvalue()
    except (UnidentifiedImageError, OSError) as e:
        raise MalformedInputError(f"Failed to convert image to JPEG: {e}") from e


def prepare_upload(upload: UploadedImage) -> UploadedImage:
    """
    Validate an upload and convert it to a Gemini-friendly format if needed.

    Args:
        upload: Image as received from the browser

    Returns:
        UploadedImage ready to be encoded as a data URL

    Raises:
        MalformedInputError: If the upload is empty or not an image
    """
    if not upload.data:
        raise MalformedInputError("Uploaded file is empty")

    if not upload.mime_type.startswith('image/'):
        raise MalformedInputError("Please select an image file.")

    if not needs_conversion(upload.mime_type):
        return upload

    return UploadedImage(
        filename=upload.filename,
        data=convert_to_jpeg(upload.data),
        mime_type='image/jpeg',
        image_type=upload.image_type,
    )


def read_file_storage(file_storage, image_type="photo") -> Optional[UploadedImage]:
    """
    Read a werkzeug FileStorage from a multipart form fully into memory.

    No validation happens here; see prepare_upload.
    """
    if file_storage is None or not file_storage.filename:
        return None

    image_bytes = file_storage.read()
    return UploadedImage(
        filename=secure_filename(file_storage.filename) or f"{image_type}.jpg",
        data=image_bytes,
        mime_type=detect_image_type(image_bytes, file_storage.filename, file_storage.mimetype),
        image_type=image_type,
    )
