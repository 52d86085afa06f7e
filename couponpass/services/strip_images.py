"""
Strip image derivation.

Turns one uploaded image into the three strip.png resolutions a coupon pass
carries. The 1x tier is dimmed so overlaid text stays legible; the 2x and 3x
tiers get a half-transparent wash of the pass background color.
"""

import base64
import binascii
import io
import logging
import shutil
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple, Union

from PIL import Image, ImageEnhance, ImageOps

from ..errors import ImageProcessingError
from .colors import Color, parse_rgb_color

logger = logging.getLogger(__name__)

BASE_SIZE = (375, 123)
TIER_2X_SIZE = (750, 246)
TIER_3X_SIZE = (1125, 369)

BASE_BRIGHTNESS = 0.7
OVERLAY_ALPHA = 0.5

STRIP_FILENAMES = {
    "base": "strip.png",
    "tier2x": "strip@2x.png",
    "tier3x": "strip@3x.png",
}


@dataclass(frozen=True)
class DerivedImageSet:
    """Paths of the three derived strip tiers"""

    base: Path
    tier2x: Path
    tier3x: Path

    def paths(self) -> Tuple[Path, Path, Path]:
        return (self.base, self.tier2x, self.tier3x)

    def read_assets(self) -> Dict[str, bytes]:
        """Load the tiers keyed by their filename inside a pass archive"""
        return {
            STRIP_FILENAMES["base"]: self.base.read_bytes(),
            STRIP_FILENAMES["tier2x"]: self.tier2x.read_bytes(),
            STRIP_FILENAMES["tier3x"]: self.tier3x.read_bytes(),
        }


def decode_image_data(data: str, max_bytes: Optional[int] = None) -> bytes:
    """
    Decode a base64 image payload.

    Accepts plain or URL-safe base64, with or without padding, or a
    ``data:image/...;base64,`` URL.

    Raises:
        ImageProcessingError: payload is not valid base64 or exceeds max_bytes
    """
    payload = data.strip()
    if payload.startswith("data:") and "," in payload:
        payload = payload.split(",", 1)[1]
    payload = "".join(payload.split())
    # URL-safe alphabet and stripped padding are both accepted
    payload = payload.replace("-", "+").replace("_", "/")
    payload += "=" * (-len(payload) % 4)

    try:
        image_bytes = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageProcessingError(f"Image processing failed: invalid base64 image data ({e})") from e

    if not image_bytes:
        raise ImageProcessingError("Image processing failed: empty image data")
    check_image_size(image_bytes, max_bytes)
    return image_bytes


def check_image_size(image_bytes: bytes, max_bytes: Optional[int]) -> None:
    if max_bytes and len(image_bytes) > max_bytes:
        raise ImageProcessingError(
            f"Image processing failed: image is {len(image_bytes)} bytes, limit is {max_bytes}"
        )


@contextmanager
def scratch_directory(parent: Optional[Path] = None) -> Iterator[Path]:
    """
    Request-scoped scratch area for derived images.

    The directory is unique per call and removed on exit whether or not the
    body raised; removal failures are logged and swallowed.
    """
    if parent is not None:
        Path(parent).mkdir(parents=True, exist_ok=True)
    path = Path(tempfile.mkdtemp(prefix="couponpass-", dir=parent))
    try:
        yield path
    finally:
        try:
            shutil.rmtree(path)
        except OSError as e:
            logger.warning(f"Failed to clean up scratch directory {path}: {e}")


def _open_source(source: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(source))
        image.load()
    except Exception as e:
        raise ImageProcessingError(f"Image processing failed: {e}") from e

    has_alpha = image.mode in ("RGBA", "LA", "PA") or (
        image.mode == "P" and "transparency" in image.info
    )
    return image.convert("RGBA" if has_alpha else "RGB")


def cover(image: Image.Image, size: Tuple[int, int]) -> Image.Image:
    """Scale and center-crop so the image exactly fills size, no letterboxing"""
    return ImageOps.fit(image, size, method=Image.Resampling.LANCZOS, centering=(0.5, 0.5))


def dim(image: Image.Image, factor: float = BASE_BRIGHTNESS) -> Image.Image:
    """Multiply brightness of the color channels, keeping alpha as is"""
    if image.mode == "RGBA":
        dimmed = ImageEnhance.Brightness(image.convert("RGB")).enhance(factor)
        dimmed.putalpha(image.getchannel("A"))
        return dimmed
    return ImageEnhance.Brightness(image).enhance(factor)


def tint(image: Image.Image, color: Color, alpha: float = OVERLAY_ALPHA) -> Image.Image:
    """Composite a full-size rectangle of color over image in normal mode"""
    overlay = Image.new("RGBA", image.size, color.with_alpha(alpha).rgba())
    return Image.alpha_composite(image.convert("RGBA"), overlay)


def render_tiers(source: bytes, background_color: Union[Color, str, None] = None) -> Dict[str, Image.Image]:
    """
    Produce the three strip tiers in memory.

    Args:
        source: Encoded image bytes in any format Pillow can read
        background_color: Color or ``rgb(r, g, b)`` text for the 2x/3x wash

    Returns:
        Dict with ``base``, ``tier2x`` and ``tier3x`` images
    """
    color = background_color if isinstance(background_color, Color) else parse_rgb_color(background_color)
    image = _open_source(source)

    try:
        return {
            "base": dim(cover(image, BASE_SIZE)),
            "tier2x": tint(cover(image, TIER_2X_SIZE), color),
            "tier3x": tint(cover(image, TIER_3X_SIZE), color),
        }
    except Exception as e:
        raise ImageProcessingError(f"Image processing failed: {e}") from e


def derive_strip_images(source: bytes, background_color: Union[Color, str, None],
                        output_dir: Path) -> DerivedImageSet:
    """
    Derive and write strip.png, strip@2x.png and strip@3x.png into output_dir.

    Either all three files are written or none are left behind.

    Raises:
        ImageProcessingError: decoding, resizing or PNG encoding failed
    """
    tiers = render_tiers(source, background_color)
    output_dir = Path(output_dir)
    written = []

    try:
        for name, image in tiers.items():
            path = output_dir / STRIP_FILENAMES[name]
            image.save(path, format="PNG")
            written.append(path)
    except Exception as e:
        for path in written:
            path.unlink(missing_ok=True)
        raise ImageProcessingError(f"Image processing failed: {e}") from e

    logger.info(f"Derived strip images in {output_dir}")
    return DerivedImageSet(
        base=output_dir / STRIP_FILENAMES["base"],
        tier2x=output_dir / STRIP_FILENAMES["tier2x"],
        tier3x=output_dir / STRIP_FILENAMES["tier3x"],
    )
