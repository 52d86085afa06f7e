"""
Coupon pass generation service.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..config import Settings
from ..schemas import PassRequest
from .pass_builder import PassBuilder
from .pass_store import PassStore
from .pkpass_creator import PassSigner
from .strip_images import (
    check_image_size,
    decode_image_data,
    derive_strip_images,
    scratch_directory,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeneratedPass:
    pass_id: str
    pass_url: str
    path: Path


class PassService:
    """Runs the request -> strip images -> manifest -> signed archive pipeline"""

    def __init__(self, builder: PassBuilder, signer: PassSigner, store: PassStore,
                 scratch_dir: Optional[Path] = None, max_image_bytes: Optional[int] = None):
        self.builder = builder
        self.signer = signer
        self.store = store
        self.scratch_dir = scratch_dir
        self.max_image_bytes = max_image_bytes

    @classmethod
    def from_settings(cls, settings: Settings, signer: PassSigner) -> "PassService":
        builder = PassBuilder(
            settings.model_dir,
            pass_type_identifier=settings.pass_type_identifier,
            team_identifier=settings.team_identifier,
            organization_name=settings.organization_name,
        )
        return cls(
            builder=builder,
            signer=signer,
            store=PassStore(settings.output_dir),
            scratch_dir=settings.scratch_dir,
            max_image_bytes=settings.max_image_bytes,
        )

    def generate(self, request: PassRequest, base_url: str,
                 strip_image: Optional[bytes] = None) -> GeneratedPass:
        """
        Generate, sign and store one coupon pass.

        Args:
            request: Validated request fields
            base_url: Externally visible scheme and host used in the pass URL
            strip_image: Raw image bytes; overrides request.strip_image when given

        Returns:
            GeneratedPass with the serial number, download URL and archive path

        Raises:
            PassGenerationError: any step failed; nothing is written to the store
        """
        if strip_image is None and request.strip_image:
            strip_image = decode_image_data(request.strip_image, self.max_image_bytes)
        elif strip_image:
            check_image_size(strip_image, self.max_image_bytes)

        with scratch_directory(self.scratch_dir) as scratch:
            derived = None
            if strip_image:
                derived = derive_strip_images(strip_image, request.background_color, scratch)

            manifest = self.builder.build(request, base_url, derived_images=derived)
            archive = self.signer.sign(manifest.files())
            path = self.store.save(manifest.serial_number, archive)

        logger.info(f"Generated pass {manifest.serial_number}: {manifest.pass_url}")
        return GeneratedPass(
            pass_id=manifest.serial_number,
            pass_url=manifest.pass_url,
            path=path,
        )
