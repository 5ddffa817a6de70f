"""
Service layer for decoding, scaling and encoding images
"""
from dataclasses import dataclass
from io import BytesIO
from typing import Optional
import logging

from PIL import Image, ImageOps, UnidentifiedImageError

from config.settings import MAX_DIMENSION, OUTPUT_FORMAT
from services.exceptions import DecodeError, EncodeError

logger = logging.getLogger(__name__)

# Pillow recommends staying at or below 95
MIN_JPEG_QUALITY = 1
MAX_JPEG_QUALITY = 95


@dataclass(frozen=True)
class SourceImage:
    """Decoded RGB pixels plus the size of the bytes they came from."""
    image: Image.Image
    width: int
    height: int
    original_size: int
    source_format: Optional[str] = None


def scaled_dimensions(width, height, max_dimension):
    """Return (width, height) with the longer side capped at max_dimension.

    Aspect ratio is preserved and each side is rounded to the nearest pixel.
    Images already within the cap are returned unchanged.
    """
    longer = max(width, height)
    if longer <= max_dimension:
        return width, height
    scale = max_dimension / longer
    return max(1, round(width * scale)), max(1, round(height * scale))


def to_jpeg_quality(quality):
    """Map a normalized 0.0-1.0 quality onto Pillow's JPEG quality range."""
    return max(MIN_JPEG_QUALITY, min(MAX_JPEG_QUALITY, round(quality * 100)))


class ImageService:
    def __init__(self, max_dimension=MAX_DIMENSION, background=(255, 255, 255)):
        self.max_dimension = max_dimension
        self.background = background

    def probe(self, data: bytes):
        """Read (width, height, format) from the image header without decoding pixels"""
        try:
            with Image.open(BytesIO(data)) as img:
                return img.width, img.height, img.format
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise DecodeError(
                "Could not load image file. It might be corrupt or an unsupported format."
            ) from e

    def decode(self, data: bytes) -> SourceImage:
        """Decode raw bytes into an RGB image capped to max_dimension"""
        if not data:
            raise DecodeError("Could not load image file. The file is empty.")

        try:
            with Image.open(BytesIO(data)) as img:
                source_format = img.format
                img.load()
                img = ImageOps.exif_transpose(img)
                rgb = self._flatten(img)
        except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
            logger.error(f"Error decoding image: {e}")
            raise DecodeError(
                "Could not load image file. It might be corrupt or an unsupported format."
            ) from e

        width, height = scaled_dimensions(rgb.width, rgb.height, self.max_dimension)
        if (width, height) != rgb.size:
            logger.debug(f"Scaling {rgb.width}x{rgb.height} down to {width}x{height}")
            rgb = rgb.resize((width, height), Image.LANCZOS)

        return SourceImage(
            image=rgb,
            width=width,
            height=height,
            original_size=len(data),
            source_format=source_format,
        )

    def _flatten(self, img):
        # JPEG has no alpha channel, so transparent pixels go onto the background
        has_alpha = img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info)
        if has_alpha:
            rgba = img.convert("RGBA")
            base = Image.new("RGBA", img.size, self.background + (255,))
            return Image.alpha_composite(base, rgba).convert("RGB")
        if img.mode != "RGB":
            return img.convert("RGB")
        return img.copy()

    def encode(self, image, quality, width=None, height=None) -> bytes:
        """Encode image as JPEG at a normalized quality, resizing first if asked"""
        size = (width or image.width, height or image.height)
        try:
            if size != image.size:
                image = image.resize(size, Image.LANCZOS)
            output = BytesIO()
            image.save(output, format=OUTPUT_FORMAT, quality=to_jpeg_quality(quality), optimize=True)
        except (OSError, ValueError) as e:
            logger.error(f"Error encoding image at quality {quality}: {e}")
            raise EncodeError(f"JPEG encoding failed: {e}") from e

        data = output.getvalue()
        if not data:
            raise EncodeError("Encoder produced an empty buffer.")
        return data
