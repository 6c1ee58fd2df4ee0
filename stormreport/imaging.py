"""
Imaging - decode, measure, and produce embeddable photo variants.

The assembler only records which variant a photo should use; this module
does the actual Pillow work when ingesting and when encoding the report.
"""

import io

from PIL import Image, ImageOps

from stormreport.models import ImageVariant, ImageDecodeError
from stormreport.config import PREVIEW_MAX_EDGE, PREVIEW_JPEG_QUALITY, FULL_JPEG_QUALITY

EXIF_ORIENTATION = 0x0112


def measure_image(image_bytes: bytes) -> tuple[int, int]:
    """
    Verifies the bytes decode as an image and returns (width, height).

    Width and height are reported after EXIF orientation is applied,
    which is how the photo will appear in the report.

    Raises:
        ImageDecodeError: If the data is corrupt or not an image.
    """
    try:
        img = Image.open(io.BytesIO(image_bytes))
        img.verify()
        img = ImageOps.exif_transpose(Image.open(io.BytesIO(image_bytes)))
        return img.size
    except Exception as e:
        raise ImageDecodeError(f"Invalid image - file is corrupted or not an image: {e}")


def render_variant(image_bytes: bytes, variant: ImageVariant) -> bytes:
    """
    Returns the bytes to embed for the requested variant.

    FULL passes the original through unless it carries an EXIF rotation,
    in which case the pixels are rotated upright and re-encoded at
    FULL_JPEG_QUALITY. PREVIEW downsamples so the longest edge is at most
    PREVIEW_MAX_EDGE and re-encodes as JPEG.

    Raises:
        ImageDecodeError: If the variant cannot be produced.
    """
    if variant == ImageVariant.FULL:
        return _upright_full(image_bytes)

    try:
        img = ImageOps.exif_transpose(Image.open(io.BytesIO(image_bytes)))
        img = img.convert("RGB")
        img.thumbnail((PREVIEW_MAX_EDGE, PREVIEW_MAX_EDGE), Image.Resampling.LANCZOS)

        buf = io.BytesIO()
        img.save(buf, format="JPEG", quality=PREVIEW_JPEG_QUALITY, optimize=True)
        return buf.getvalue()
    except Exception as e:
        raise ImageDecodeError(f"Preview generation failed: {e}")


def scale_to_fit(width: float, height: float, max_width: float, max_height: float) -> tuple[float, float]:
    """Largest size with the same aspect ratio that fits the box."""
    if width <= 0 or height <= 0:
        return max_width, max_height
    scale = min(max_width / width, max_height / height)
    return width * scale, height * scale


# --- Internal ---

def _upright_full(image_bytes: bytes) -> bytes:
    # reportlab does not read the orientation tag
    try:
        img = Image.open(io.BytesIO(image_bytes))
        if img.getexif().get(EXIF_ORIENTATION, 1) == 1:
            return image_bytes

        img = ImageOps.exif_transpose(img).convert("RGB")
        buf = io.BytesIO()
        img.save(buf, format="JPEG", quality=FULL_JPEG_QUALITY)
        return buf.getvalue()
    except Exception as e:
        raise ImageDecodeError(f"Full-resolution rendering failed: {e}")
