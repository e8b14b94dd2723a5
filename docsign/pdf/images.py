"""
Signature image decoding and pad-specific preparation.
"""
import base64
import binascii
import io
import logging
from dataclasses import dataclass
from typing import Union

from PIL import Image, ImageChops, UnidentifiedImageError

from docsign.pdf.errors import UnsupportedImageFormat

logger = logging.getLogger(__name__)

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"
JPEG_MAGIC = b"\xff\xd8\xff"

MIME_FORMATS = {
    "image/png": "png",
    "image/jpeg": "jpeg",
    "image/jpg": "jpeg",
    "image/pjpeg": "jpeg",
}


@dataclass(frozen=True)
class SignatureImage:
    """Decoded signature image ready to embed."""
    data: bytes
    format: str  # "png" or "jpeg"
    width: int  # pixels
    height: int  # pixels

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height if self.height else 0.0


def _sniff_format(data: bytes) -> str:
    if data[:8] == PNG_MAGIC:
        return "png"
    if data[:3] == JPEG_MAGIC:
        return "jpeg"
    raise UnsupportedImageFormat("Image bytes are neither PNG nor JPEG")


def _split_data_url(value: str) -> tuple:
    """Split a data URL into (format, raw bytes)."""
    header, sep, payload = value.partition(",")
    if not sep or ";base64" not in header:
        raise UnsupportedImageFormat("Malformed image data URL")

    mime = header[len("data:"):].split(";", 1)[0].strip().lower()
    image_format = MIME_FORMATS.get(mime)
    if image_format is None:
        raise UnsupportedImageFormat(f"Unsupported image type: {mime or 'unknown'}")

    try:
        data = base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as e:
        raise UnsupportedImageFormat(f"Invalid base64 image data: {e}")

    return image_format, data


def decode_signature_image(image: Union[bytes, str, None]) -> SignatureImage:
    """
    Decode a signature image from raw bytes, a data URL or bare base64.

    Data URLs are typed by their MIME prefix; raw bytes by their magic number.

    Raises:
        UnsupportedImageFormat: If the image is missing, undecodable, or not PNG/JPEG
    """
    if not image:
        raise UnsupportedImageFormat("No signature image data")

    if isinstance(image, str):
        if image.startswith("data:"):
            image_format, data = _split_data_url(image)
        else:
            try:
                data = base64.b64decode(image, validate=True)
            except (binascii.Error, ValueError) as e:
                raise UnsupportedImageFormat(f"Invalid base64 image data: {e}")
            image_format = _sniff_format(data)
    else:
        data = bytes(image)
        image_format = _sniff_format(data)

    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise UnsupportedImageFormat(f"Image data could not be decoded as {image_format}: {e}")

    return SignatureImage(data=data, format=image_format, width=width, height=height)


def prepare_wacom_image(
    image: SignatureImage,
    transparency_threshold: int = 240,
    max_width: int = 600,
    max_height: int = 300,
) -> SignatureImage:
    """
    Clean up a pen-pad capture before embedding.

    Pads deliver an opaque light background. Near-white pixels become fully
    transparent, light-grey pixels lose 100 alpha. Oversized captures are
    scaled down within max_width x max_height; the aspect ratio is kept.
    """
    with Image.open(io.BytesIO(image.data)) as src:
        img = src.convert("RGBA")

    img.thumbnail((max_width, max_height), Image.Resampling.LANCZOS)

    soft_threshold = max(transparency_threshold - 20, 0)
    r, g, b, alpha = img.split()

    def _all_above(limit: int) -> Image.Image:
        masks = [band.point(lambda v: 255 if v > limit else 0) for band in (r, g, b)]
        return ImageChops.multiply(ImageChops.multiply(masks[0], masks[1]), masks[2])

    light = _all_above(soft_threshold)
    white = _all_above(transparency_threshold)

    faded = alpha.point(lambda v: max(0, v - 100))
    alpha = Image.composite(faded, alpha, light)
    alpha = Image.composite(Image.new("L", img.size, 0), alpha, white)
    img.putalpha(alpha)

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")

    logger.debug(
        f"Prepared wacom signature: {image.width}x{image.height} -> {img.width}x{img.height}"
    )

    return SignatureImage(data=buffer.getvalue(), format="png", width=img.width, height=img.height)
