"""Image and key utilities for the variants pipeline."""

import io
from typing import Optional, Tuple

from PIL import Image, ImageColor, ImageOps, UnidentifiedImageError

from .exceptions import DecodeError, KeyMappingError
from .models import SizeSpecMatch

Size = Tuple[int, int]

CONTENT_TYPES = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
}

FORMATS_BY_CONTENT_TYPE = {
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "image/pjpeg": "JPEG",
    "image/png": "PNG",
}


def open_image(image_bytes: bytes) -> Image.Image:
    """
    Decode raster bytes, forcing the pixel data to load.

    Raises:
        DecodeError: If the bytes are not a readable image
    """
    try:
        image = Image.open(io.BytesIO(image_bytes))
        image.load()
    except (IOError, SyntaxError, Image.DecompressionBombError, UnidentifiedImageError) as img_err:
        raise DecodeError(f"Could not decode image: {img_err}") from img_err
    return image


def normalize_orientation(img: Image.Image) -> Image.Image:
    """Rotate/flip pixels so that the EXIF orientation becomes the identity."""
    return ImageOps.exif_transpose(img)


def strip_color_profile(img: Image.Image) -> Image.Image:
    """Drop embedded ICC profile and EXIF blocks from the image metadata."""
    for key in ("icc_profile", "exif"):
        img.info.pop(key, None)
    return img


def content_size(width: int, height: int, border: int) -> Size:
    """Area available to the picture inside a ``width x height`` canvas."""
    return max(1, width - border), max(1, height - border)


def fit_within(source: Size, bounds: Size, allow_upscale: bool = False) -> Size:
    """
    Scale ``source`` to fit inside ``bounds`` preserving its aspect ratio.

    Args:
        source: Source (width, height)
        bounds: Maximum (width, height)
        allow_upscale: Grow sources smaller than ``bounds``

    Returns:
        Target (width, height), never larger than ``bounds`` and never below 1x1
    """
    src_w, src_h = source
    max_w, max_h = bounds
    scale = min(max_w / src_w, max_h / src_h)
    if not allow_upscale:
        scale = min(scale, 1.0)
    return (
        max(1, min(max_w, round(src_w * scale))),
        max(1, min(max_h, round(src_h * scale))),
    )


def gravity_offset(canvas: Size, content: Size, gravity: str = "center") -> Size:
    """Top-left position of ``content`` on ``canvas`` for a compass gravity."""
    free_w = canvas[0] - content[0]
    free_h = canvas[1] - content[1]

    x = free_w // 2
    if "west" in gravity:
        x = 0
    elif "east" in gravity:
        x = free_w

    y = free_h // 2
    if gravity.startswith("north"):
        y = 0
    elif gravity.startswith("south"):
        y = free_h

    return x, y


def flatten_to_rgb(img: Image.Image, background: Tuple[int, int, int]) -> Image.Image:
    """Convert to RGB, compositing any transparency over ``background``."""
    if img.mode == "P":
        img = img.convert("RGBA")
    if img.mode in ("RGBA", "LA"):
        if img.mode == "LA":
            img = img.convert("RGBA")
        flattened = Image.new("RGB", img.size, background)
        flattened.paste(img, mask=img.split()[-1])
        return flattened
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def letterbox(
    img: Image.Image,
    width: int,
    height: int,
    border: int = 0,
    background: str = "#FFFFFF",
    gravity: str = "center",
    allow_upscale: bool = False,
) -> Image.Image:
    """
    Resize ``img`` to fit inside the bordered area of a ``width x height``
    canvas and place it on a solid background.

    The picture is never cropped or distorted, and the returned image is
    always exactly ``width x height``.
    """
    fill = ImageColor.getrgb(background)[:3]
    img = flatten_to_rgb(img, fill)

    target = fit_within(img.size, content_size(width, height, border), allow_upscale)
    if target != img.size:
        img = img.resize(target, Image.Resampling.LANCZOS)

    canvas = Image.new("RGB", (width, height), fill)
    canvas.paste(img, gravity_offset((width, height), img.size, gravity))
    return canvas


def resolve_output_format(content_type: str, override: Optional[str] = None) -> Tuple[str, str]:
    """
    Pick the encoder for a variant.

    Returns:
        ``(pil_format, content_type)``; sources that are neither JPEG nor PNG
        are encoded as JPEG.
    """
    if override:
        return override, CONTENT_TYPES[override]
    fmt = FORMATS_BY_CONTENT_TYPE.get((content_type or "").split(";")[0].strip().lower())
    if fmt is None:
        return "JPEG", CONTENT_TYPES["JPEG"]
    return fmt, CONTENT_TYPES[fmt]


def encode_image(img: Image.Image, fmt: str, quality: int = 92) -> bytes:
    """Encode ``img`` without any metadata blocks."""
    output = io.BytesIO()
    if fmt == "JPEG":
        img.save(output, format="JPEG", quality=quality)
    else:
        img.save(output, format=fmt)
    return output.getvalue()


def calculate_variant_key(
    source_key: str,
    match: SizeSpecMatch,
    token_literal: str,
    source_folder: str,
    dest_folder: str,
) -> str:
    """
    Calculate the destination key of one size variant.

    Everything up to and including the first ``source_folder`` is dropped,
    the matched size specification is replaced by ``token_literal`` and the
    result is prefixed with ``dest_folder``. No other character changes.

    Raises:
        KeyMappingError: If the folder is missing or the size specification
            does not follow it
    """
    folder_at = source_key.find(source_folder) if source_folder else 0
    if folder_at < 0:
        raise KeyMappingError(
            f"Key {source_key} is not under source folder '{source_folder}'", source_key
        )
    relative_start = folder_at + len(source_folder)
    if match.start < relative_start or source_key[match.start:match.end] != match.text:
        raise KeyMappingError(
            f"Size specification '{match.text}' of {source_key} does not follow "
            f"source folder '{source_folder}'",
            source_key,
        )

    return (
        dest_folder
        + source_key[relative_start:match.start]
        + token_literal
        + source_key[match.end:]
    )
