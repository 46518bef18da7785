"""
Photo validation for images fetched from the chat transport.

Uses Pillow (PIL) to make sure the bytes really are an image before they are
stored and linked from a public report.
"""

from PIL import Image, UnidentifiedImageError
import io
import logging

from .errors import ValidationError

logger = logging.getLogger("reporta.photo_utils")

MAX_UPLOAD_SIZE = 10 * 1024 * 1024  # 10 MB
MAX_IMAGE_DIMENSION = 8000  # pixels
ALLOWED_MIME_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}


def validate_image(file_data: bytes, content_type: str) -> None:
    """Raise ValidationError unless `file_data` is an acceptable image."""
    if not file_data:
        raise ValidationError("La imagen llegó vacía. Intenta enviarla de nuevo.")

    if len(file_data) > MAX_UPLOAD_SIZE:
        raise ValidationError(
            f"La imagen supera el límite de {MAX_UPLOAD_SIZE / (1024 * 1024):.0f} MB."
        )

    mime = (content_type or "").split(";")[0].strip().lower()
    if mime not in ALLOWED_MIME_TYPES:
        raise ValidationError("Ese tipo de archivo no es una foto. Envía una imagen JPG o PNG.")

    try:
        img = Image.open(io.BytesIO(file_data))
        img.verify()
        # verify() leaves the image unusable; reopen to read the size
        img = Image.open(io.BytesIO(file_data))
        width, height = img.size
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        logger.warning("Image validation failed: %s", exc)
        raise ValidationError("No pude leer la imagen. Intenta enviarla de nuevo.") from exc

    if width > MAX_IMAGE_DIMENSION or height > MAX_IMAGE_DIMENSION:
        raise ValidationError(f"La imagen supera {MAX_IMAGE_DIMENSION}px por lado.")
