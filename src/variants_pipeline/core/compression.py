"""Best-effort compression of rendered variants.

Passes run in order and each receives the previous pass's output. A pass
that does not recognise the payload format returns it untouched, so one
chain serves both JPEG and PNG variants.
"""

import io
from typing import Dict, List, Optional, Sequence, Tuple, Type

from PIL import Image, ImageChops, ImageStat

from .exceptions import CodecError
from .models import TransformedImage
from .observability import LogContext
from .protocols import CodecPass, LoggerProtocol, QualityBound

JPEG_MAGIC = b"\xff\xd8\xff"
PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


def sniff_format(image_bytes: bytes) -> Optional[str]:
    """Identify JPEG/PNG payloads by their signature."""
    if image_bytes.startswith(JPEG_MAGIC):
        return "JPEG"
    if image_bytes.startswith(PNG_MAGIC):
        return "PNG"
    return None


def similarity(reference: Image.Image, candidate: Image.Image) -> float:
    """1.0 for identical RGB images, falling with the mean absolute error."""
    diff = ImageChops.difference(reference.convert("RGB"), candidate.convert("RGB"))
    channel_means = ImageStat.Stat(diff).mean
    return 1.0 - (sum(channel_means) / len(channel_means)) / 255.0


def _decode(image_bytes: bytes, codec: str) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(image_bytes))
        image.load()
    except Exception as exc:
        raise CodecError(f"{codec}: cannot decode input: {exc}") from exc
    return image


def _smallest(original: bytes, candidate: bytes) -> bytes:
    return candidate if len(candidate) < len(original) else original


def quality_range(quality: QualityBound) -> Tuple[int, int]:
    """Map a 0..1 bound to inclusive encoder quality levels 1..100."""
    lower, upper = quality
    return max(1, round(lower * 100)), max(1, round(upper * 100))


class JpegRecompressPass:
    """
    Re-encode JPEGs at the lowest quality inside the bound that still looks
    like the input.

    The bound is a search range: a binary search finds the lowest encoder
    quality whose output keeps ``target_similarity`` to the input, falling
    back to the upper end of the range.
    """

    name = "jpeg-recompress"

    def __init__(self, target_similarity: float = 0.985):
        self.target_similarity = target_similarity

    def _encode(self, image: Image.Image, quality: int) -> bytes:
        output = io.BytesIO()
        image.save(output, format="JPEG", quality=quality)
        return output.getvalue()

    def compress(self, image_bytes: bytes, quality: QualityBound) -> bytes:
        if sniff_format(image_bytes) != "JPEG":
            return image_bytes

        reference = _decode(image_bytes, self.name).convert("RGB")
        low, high = quality_range(quality)

        best = self._encode(reference, high)
        while low <= high:
            mid = (low + high) // 2
            candidate = self._encode(reference, mid)
            if similarity(reference, _decode(candidate, self.name)) >= self.target_similarity:
                best = candidate
                high = mid - 1
            else:
                low = mid + 1

        return _smallest(image_bytes, best)


class JpegtranPass:
    """
    Re-encode JPEGs with the input's quantisation tables, optimal Huffman
    coding and a progressive scan.

    Decoding and re-encoding can shift pixels slightly, so this pass is not
    lossless; it never lowers the quality level of the input.
    """

    name = "jpegtran"

    def compress(self, image_bytes: bytes, quality: QualityBound) -> bytes:
        if sniff_format(image_bytes) != "JPEG":
            return image_bytes

        image = _decode(image_bytes, self.name)
        output = io.BytesIO()
        try:
            image.save(output, format="JPEG", quality="keep", optimize=True, progressive=True)
        except (OSError, ValueError) as exc:
            raise CodecError(f"{self.name}: {exc}") from exc
        return _smallest(image_bytes, output.getvalue())


class PngQuantPass:
    """
    Palette quantisation for PNGs.

    The upper bound sets the palette size (a fraction of 256 colours); a
    result whose similarity falls below the lower bound is rejected with
    ``CodecError``.
    """

    name = "pngquant"

    def compress(self, image_bytes: bytes, quality: QualityBound) -> bytes:
        if sniff_format(image_bytes) != "PNG":
            return image_bytes

        lower, upper = quality
        reference = _decode(image_bytes, self.name).convert("RGB")
        colors = max(2, min(256, round(256 * upper)))

        quantized = reference.quantize(
            colors=colors,
            method=Image.Quantize.MEDIANCUT,
            dither=Image.Dither.FLOYDSTEINBERG,
        )
        score = similarity(reference, quantized)
        if score < lower:
            raise CodecError(
                f"{self.name}: quality {score:.3f} below minimum {lower:.3f}"
            )

        output = io.BytesIO()
        quantized.save(output, format="PNG", optimize=True)
        return _smallest(image_bytes, output.getvalue())


CODEC_REGISTRY: Dict[str, Type] = {
    JpegRecompressPass.name: JpegRecompressPass,
    JpegtranPass.name: JpegtranPass,
    PngQuantPass.name: PngQuantPass,
}


def build_codec_passes(names: Sequence[str]) -> List[CodecPass]:
    """Instantiate codec passes by name, in order."""
    try:
        return [CODEC_REGISTRY[name]() for name in names]
    except KeyError as exc:
        raise CodecError(f"Unknown compression pass {exc}") from exc


class CompressionPipeline:
    """Applies the codec chain to a rendered variant, never failing."""

    def __init__(
        self,
        passes: Sequence[CodecPass],
        quality: QualityBound,
        logger: LoggerProtocol,
    ):
        self._passes = list(passes)
        self._quality = quality
        self._logger = logger

    def compress(
        self, image: TransformedImage, context: Optional[LogContext] = None
    ) -> Tuple[bytes, bool]:
        """
        Run every pass in sequence.

        Returns:
            ``(payload, compressed)``. When any pass fails the untouched
            transformed bytes are returned with ``compressed=False``.
        """
        context = (context or LogContext()).with_operation("compress")
        lower, upper = self._quality
        self._logger.debug(f"Compressing image. Quality: {lower} to {upper}", context)

        payload = image.body
        try:
            for codec in self._passes:
                payload = codec.compress(payload, self._quality)
        except Exception as exc:
            self._logger.warning(
                "[Handled Error] Could not compress image, using resized image only",
                context.with_metadata(error=str(exc)),
            )
            return image.body, False

        self._logger.debug(
            "Image compression complete",
            context,
            original_bytes=len(image.body),
            compressed_bytes=len(payload),
        )
        return payload, True
