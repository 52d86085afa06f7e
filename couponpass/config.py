"""
Process-wide configuration.

Values come from the environment (optionally seeded from a .env file) and are
read exactly once at startup into immutable objects that are handed to the
services that need them.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from dotenv import find_dotenv, load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_MODEL_DIR = Path(__file__).parent / "assets"
DEFAULT_MAX_IMAGE_BYTES = 10 * 1024 * 1024  # 10 MB


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={raw!r}, using {default}")
        return default


def _env_str(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


@dataclass(frozen=True)
class SigningIdentity:
    """Certificate material used to sign every generated pass"""

    signer_cert_path: Path
    signer_key_path: Path
    wwdr_cert_path: Path
    key_passphrase: str = field(default="", repr=False)

    def __post_init__(self):
        for label, path in (
            ("signer certificate", self.signer_cert_path),
            ("signer key", self.signer_key_path),
            ("WWDR certificate", self.wwdr_cert_path),
        ):
            if not Path(path).is_file():
                raise ValueError(f"{label} file not found: {path}")


@dataclass(frozen=True)
class Settings:
    model_dir: Path = DEFAULT_MODEL_DIR
    output_dir: Path = Path("temp")
    scratch_dir: Optional[Path] = None
    public_base_url: Optional[str] = None

    signer_cert_path: Optional[Path] = None
    signer_key_path: Optional[Path] = None
    wwdr_cert_path: Optional[Path] = None
    signer_key_passphrase: str = field(default="", repr=False)

    pass_type_identifier: Optional[str] = None
    team_identifier: Optional[str] = None
    organization_name: Optional[str] = None

    cors_origins: Tuple[str, ...] = ("*",)
    rate_limit_max_requests: int = 20
    rate_limit_window_seconds: int = 60
    max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES

    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            env_file: Optional explicit .env path; defaults to python-dotenv's lookup

        Returns:
            Settings instance
        """
        load_dotenv(env_file or find_dotenv(usecwd=True))

        def path_or_none(name: str) -> Optional[Path]:
            value = _env_str(name)
            return Path(value) if value else None

        origins = _env_str("CORS_ORIGINS") or "*"

        return cls(
            model_dir=path_or_none("PASS_MODEL_DIR") or DEFAULT_MODEL_DIR,
            output_dir=path_or_none("PASS_OUTPUT_DIR") or Path("temp"),
            scratch_dir=path_or_none("PASS_SCRATCH_DIR"),
            public_base_url=_env_str("PUBLIC_BASE_URL"),
            signer_cert_path=path_or_none("PASS_SIGNER_CERT_PATH"),
            signer_key_path=path_or_none("PASS_SIGNER_KEY_PATH"),
            wwdr_cert_path=path_or_none("PASS_WWDR_CERT_PATH"),
            signer_key_passphrase=os.getenv("PASS_SIGNER_KEY_PASSPHRASE", ""),
            pass_type_identifier=_env_str("PASS_TYPE_IDENTIFIER"),
            team_identifier=_env_str("TEAM_IDENTIFIER"),
            organization_name=_env_str("ORGANIZATION_NAME"),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
            rate_limit_max_requests=_env_int("RATE_LIMIT_MAX_REQUESTS", 20),
            rate_limit_window_seconds=_env_int("RATE_LIMIT_WINDOW_SECONDS", 60),
            max_image_bytes=_env_int("MAX_IMAGE_BYTES", DEFAULT_MAX_IMAGE_BYTES),
            host=os.getenv("HOST", "0.0.0.0"),
            port=_env_int("PORT", 3000),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    def signing_identity(self) -> Optional[SigningIdentity]:
        """Return the signing identity, or None when signing is not configured"""
        if not (self.signer_cert_path and self.signer_key_path and self.wwdr_cert_path):
            logger.warning(
                "Pass signing not configured: set PASS_SIGNER_CERT_PATH, "
                "PASS_SIGNER_KEY_PATH and PASS_WWDR_CERT_PATH"
            )
            return None
        return SigningIdentity(
            signer_cert_path=self.signer_cert_path,
            signer_key_path=self.signer_key_path,
            wwdr_cert_path=self.wwdr_cert_path,
            key_passphrase=self.signer_key_passphrase,
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
