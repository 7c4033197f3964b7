"""Image sizing and inline HTML encoding for chat pictures."""

from __future__ import annotations

import base64
import io
import logging
from pathlib import Path

from PIL import Image

log = logging.getLogger(__name__)

THUMBNAIL_MAX = 240
THUMBNAIL_MIN = 180
CHAT_MAX = 300

_FORMATS = {
    "jpeg": ("JPEG", {"quality": 90}),
    "png": ("PNG", {"compress_level": 3}),
}


def _check_size(width: int, height: int) -> None:
    if width <= 0 or height <= 0:
        raise ValueError(f"image size must be positive, got {width}x{height}")


def thumbnail_size(width: int, height: int) -> tuple[int, int]:
    """Scale so the longer side is 240, raising a too-narrow width to a 180 bound."""
    _check_size(width, height)
    if width > height:
        new_width, new_height = THUMBNAIL_MAX, int(height * (THUMBNAIL_MAX / width))
    else:
        new_width, new_height = int(width * (THUMBNAIL_MAX / height)), THUMBNAIL_MAX
    if new_width < THUMBNAIL_MIN:
        if width > height:
            new_width, new_height = THUMBNAIL_MIN, int(height * (THUMBNAIL_MIN / width))
        else:
            new_width, new_height = int(width * (THUMBNAIL_MIN / height)), THUMBNAIL_MIN
    return new_width, new_height


def chat_size(width: int, height: int) -> tuple[int, int]:
    """Scale so the longer side becomes 300, keeping the aspect ratio."""
    _check_size(width, height)
    scale = CHAT_MAX / width if width > height else CHAT_MAX / height
    return int(width * scale), int(height * scale)


def _resize(image: Image.Image, size: tuple[int, int]) -> Image.Image:
    width, height = (max(1, side) for side in size)
    return image.resize((width, height), Image.Resampling.BILINEAR)


def load_thumbnail(path) -> Image.Image:
    """Open an image file as RGB and shrink it to thumbnail size."""
    with Image.open(Path(path)) as source:
        image = source.convert("RGB")
    return _resize(image, thumbnail_size(*image.size))


def resize_for_chat(image: Image.Image) -> Image.Image:
    """Resize an image so its longer side is 300 pixels."""
    width, height = image.size
    if width == 0 or height == 0:
        raise ValueError("cannot resize an empty image")
    new_size = chat_size(width, height)
    log.debug("resized image to %dx%d", *new_size)
    return _resize(image, new_size)


def image_to_base64(image: Image.Image, fmt: str = "jpeg") -> str:
    """Encode an image as JPEG (quality 90) or PNG (level 3) and return it in Base64."""
    width, height = image.size
    if width == 0 or height == 0:
        raise ValueError("cannot encode an empty image")
    try:
        pil_format, options = _FORMATS[fmt]
    except KeyError:
        raise ValueError(f"unsupported image format: {fmt!r}") from None
    if pil_format == "JPEG" and image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    buffer = io.BytesIO()
    image.save(buffer, format=pil_format, **options)
    return base64.b64encode(buffer.getvalue()).decode("ascii")


def image_to_html(image: Image.Image) -> str:
    """An <img> element carrying the image inline as JPEG data."""
    encoded = image_to_base64(image, "jpeg")
    return f'<img src="data:image/jpeg;base64,{encoded}" alt="Image" />'


def image_path_to_html(path, width: int = -1, height: int = -1) -> str:
    """An <img> element referring to an existing file, or an empty string."""
    if not Path(path).exists():
        return ""
    size_attr = f' width="{width}" height="{height}"' if width > 0 and height > 0 else ""
    return f'<img src="{path}"{size_attr} />'