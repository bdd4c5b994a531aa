"""Image decoding and re-encoding.

Decodes raw bytes into Pillow images, optionally downsampled so the longer
edge fits a size hint, and re-encodes decoded images for the disk cache.
"""
from __future__ import annotations

import io
from typing import Optional

from PIL import Image, UnidentifiedImageError

from core.constants.sizes import ENCODE_JPEG_QUALITY
from core.errors import DecodeError
from core.logging.logger import get_logger
from core.logging.tags import TAG_FALLBACK, TAG_IMAGE

logger = get_logger(__name__)

_DECODE_ERRORS = (UnidentifiedImageError, OSError, ValueError, SyntaxError, Image.DecompressionBombError)


class ImageLoader:
    """Unified decode/encode interface."""

    @staticmethod
    def decode(data: bytes, max_dimension: Optional[int] = None) -> Image.Image:
        """Decode bytes into an image.

        When ``max_dimension`` is given and the native size exceeds it, the
        result is downsampled so its longer edge is at most ``max_dimension``
        with the aspect ratio preserved. JPEG sources use the codec's draft
        mode so the full-resolution bitmap is never materialized; other
        formats decode fully and are resized afterwards.

        Raises:
            DecodeError: if the bytes are not a decodable image.
        """
        if not data:
            raise DecodeError("Empty image data.")
        if max_dimension is not None and max_dimension <= 0:
            max_dimension = None

        try:
            img = Image.open(io.BytesIO(data))
            width, height = img.size
            if width <= 0 or height <= 0:
                raise DecodeError(f"Unsupported image size {width}x{height}.")

            if max_dimension is not None and max(width, height) > max_dimension:
                # draft() only has an effect for codecs with scaled decoding
                # (JPEG DCT scaling); it is a no-op elsewhere.
                img.draft(img.mode, (max_dimension, max_dimension))
                img.load()
                img.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)
                logger.debug(
                    "%s Decoded %sx%s -> %sx%s (max=%s)",
                    TAG_IMAGE, width, height, img.width, img.height, max_dimension,
                )
            else:
                img.load()
            return img
        except DecodeError:
            raise
        except _DECODE_ERRORS as e:
            raise DecodeError(f"The data wasn't a valid image: {e}") from e

    @staticmethod
    def encode(image: Image.Image, source: Optional[bytes] = None) -> bytes:
        """Re-encode a decoded image for disk storage.

        Prefers JPEG at a fixed quality; falls back to PNG when JPEG rejects
        the pixel layout (e.g. real transparency), and to the original source
        bytes when both encoders fail.

        Raises:
            DecodeError: if both encoders fail and no source bytes were given.
        """
        try:
            return ImageLoader._encode_jpeg(image)
        except (OSError, ValueError, KeyError) as e:
            logger.debug("%s JPEG encode rejected %s image: %s", TAG_IMAGE, image.mode, e)

        try:
            return ImageLoader._encode_png(image)
        except (OSError, ValueError, KeyError) as e:
            logger.warning("%s PNG encode failed for %s image: %s", TAG_FALLBACK, image.mode, e)

        if source is not None:
            logger.info("%s Storing original source bytes (%d bytes)", TAG_FALLBACK, len(source))
            return source
        raise DecodeError("Could not encode image for storage.")

    @staticmethod
    def _encode_jpeg(image: Image.Image) -> bytes:
        buf = io.BytesIO()
        ImageLoader._flatten_opaque(image).save(buf, format="JPEG", quality=ENCODE_JPEG_QUALITY)
        return buf.getvalue()

    @staticmethod
    def _encode_png(image: Image.Image) -> bytes:
        buf = io.BytesIO()
        image.save(buf, format="PNG", optimize=False)
        return buf.getvalue()

    @staticmethod
    def _flatten_opaque(image: Image.Image) -> Image.Image:
        """Drop an alpha channel that carries no transparency.

        Images with real transparency are returned untouched so the JPEG
        encoder rejects them and the caller falls back to PNG.
        """
        if image.mode in ("RGBA", "LA"):
            if image.getchannel("A").getextrema() == (255, 255):
                return image.convert("RGB" if image.mode == "RGBA" else "L")
            return image
        if image.mode == "P" and "transparency" not in image.info:
            return image.convert("RGB")
        return image

    @staticmethod
    def sniff_format(data: bytes) -> Optional[str]:
        """Quick format detection via magic bytes."""
        header = data[:16]
        if header[:2] == b"\xff\xd8":
            return "JPEG"
        if header[:8] == b"\x89PNG\r\n\x1a\n":
            return "PNG"
        if header[:4] == b"RIFF" and header[8:12] == b"WEBP":
            return "WEBP"
        if header[:6] in (b"GIF87a", b"GIF89a"):
            return "GIF"
        return None
