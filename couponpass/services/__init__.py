"""
Coupon pass services: strip image derivation, pass building, signing,
archive storage and the request pipeline that ties them together.
"""

from .colors import Color, DEFAULT_COLOR, parse_rgb_color
from .pass_builder import PassBuilder, PassManifest
from .pass_service import GeneratedPass, PassService
from .pass_store import PassStore
from .pkpass_creator import PassSigner, PKPassCreator
from .rate_limiter import RateLimiter
from .strip_images import DerivedImageSet, derive_strip_images

__all__ = [
    "Color",
    "DEFAULT_COLOR",
    "parse_rgb_color",
    "PassBuilder",
    "PassManifest",
    "GeneratedPass",
    "PassService",
    "PassStore",
    "PassSigner",
    "PKPassCreator",
    "RateLimiter",
    "DerivedImageSet",
    "derive_strip_images",
]
