"""
Coupon pass builder.

Merges the on-disk coupon template, the request fields and the image assets
into the set of named files handed to the signing step.
"""

import copy
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Optional

from jsonschema import ValidationError, validate

from ..errors import ImageProcessingError, TemplateError
from ..schemas import PassRequest
from .colors import parse_rgb_color
from .strip_images import DerivedImageSet

logger = logging.getLogger(__name__)

TEMPLATE_FILENAME = "pass.json"
ICON_FILENAMES = ("icon.png", "icon@2x.png", "icon@3x.png")

BARCODE_FORMAT = "PKBarcodeFormatQR"
BARCODE_ENCODING = "iso-8859-1"
BARCODE_ALT_TEXT = "QR code"

_FIELD_SLOT = {
    "type": "array",
    "minItems": 1,
    "items": {
        "type": "object",
        "required": ["key", "value"],
    },
}

TEMPLATE_SCHEMA = {
    "type": "object",
    "required": [
        "formatVersion", "passTypeIdentifier", "teamIdentifier",
        "serialNumber", "organizationName", "description", "coupon",
    ],
    "properties": {
        "coupon": {
            "type": "object",
            "required": ["headerFields", "primaryFields", "secondaryFields"],
            "properties": {
                "headerFields": _FIELD_SLOT,
                "primaryFields": _FIELD_SLOT,
                "secondaryFields": _FIELD_SLOT,
            },
        },
    },
}


@dataclass(frozen=True)
class PassManifest:
    """A fully populated pass ready for signing"""

    serial_number: str
    pass_url: str
    pass_json: Dict
    assets: Dict[str, bytes] = field(default_factory=dict)

    def files(self) -> Dict[str, bytes]:
        """All archive members keyed by filename, pass.json included"""
        files = {TEMPLATE_FILENAME: json.dumps(self.pass_json, ensure_ascii=False).encode("utf-8")}
        files.update(self.assets)
        return files


def mint_serial_number() -> str:
    """Time based serial with a random suffix so concurrent requests never collide"""
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


def build_pass_url(base_url: str, serial_number: str) -> str:
    return f"{base_url.rstrip('/')}/passes/{serial_number}.pkpass"


def format_expiry(expiry_date: str) -> str:
    """
    Shift an expiry date one day forward.

    The supplied date is treated as valid through the end of that day, so the
    pass shows the start of the following day. Unparseable or out of range text
    is returned unchanged.
    """
    text = expiry_date.strip()
    try:
        moment = datetime.combine(date.fromisoformat(text), datetime.min.time(), tzinfo=timezone.utc)
    except ValueError:
        try:
            moment = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            logger.warning(f"Could not parse expiry date {expiry_date!r}, using it verbatim")
            return expiry_date

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    try:
        moment = (moment + timedelta(days=1)).astimezone(timezone.utc)
    except OverflowError:
        logger.warning(f"Expiry date {expiry_date!r} is out of range, using it verbatim")
        return expiry_date
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def barcode_descriptor(message: str) -> Dict:
    return {
        "message": message,
        "format": BARCODE_FORMAT,
        "messageEncoding": BARCODE_ENCODING,
        "altText": BARCODE_ALT_TEXT,
    }


def load_template(model_dir: Path) -> Dict:
    """Read and validate the coupon template"""
    path = Path(model_dir) / TEMPLATE_FILENAME
    try:
        template = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise TemplateError(f"Pass template not found: {path}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise TemplateError(f"Invalid pass template {path}: {e}") from e

    try:
        validate(instance=template, schema=TEMPLATE_SCHEMA)
    except ValidationError as e:
        raise TemplateError(f"Invalid pass template {path}: {e.message}") from e
    return template


def load_icons(model_dir: Path) -> Dict[str, bytes]:
    icons = {}
    for name in ICON_FILENAMES:
        path = Path(model_dir) / name
        try:
            icons[name] = path.read_bytes()
        except OSError as e:
            raise TemplateError(f"Required asset missing: {name} in {model_dir}") from e
    return icons


def build_pass_json(template: Dict, request: PassRequest, serial_number: str,
                    pass_url: str, identity: Optional[Dict[str, str]] = None) -> Dict:
    """
    Return a new pass.json document; template is never modified.

    Args:
        template: Parsed coupon template
        request: Validated request fields
        serial_number: Serial for this pass
        pass_url: Download URL encoded in the QR code
        identity: Optional overrides for top level identity keys

    Returns:
        Populated pass.json dict
    """
    pass_json = copy.deepcopy(template)
    pass_json.update(identity or {})

    pass_json["serialNumber"] = serial_number
    pass_json["barcode"] = barcode_descriptor(pass_url)
    pass_json["barcodes"] = [barcode_descriptor(pass_url)]
    pass_json["backgroundColor"] = parse_rgb_color(request.background_color).to_css()

    coupon = pass_json["coupon"]
    coupon["primaryFields"][0]["value"] = request.discount
    if request.service_type:
        coupon["secondaryFields"][0]["value"] = request.service_type
    if request.expiry_date:
        coupon["headerFields"][0]["value"] = format_expiry(request.expiry_date)

    return pass_json


class PassBuilder:
    """Builds coupon pass manifests from the template in model_dir"""

    def __init__(self, model_dir: Path, pass_type_identifier: Optional[str] = None,
                 team_identifier: Optional[str] = None, organization_name: Optional[str] = None):
        self.model_dir = Path(model_dir)
        self.identity = {
            key: value for key, value in (
                ("passTypeIdentifier", pass_type_identifier),
                ("teamIdentifier", team_identifier),
                ("organizationName", organization_name),
            ) if value
        }

    def build(self, request: PassRequest, base_url: str,
              derived_images: Optional[DerivedImageSet] = None,
              serial_number: Optional[str] = None) -> PassManifest:
        """
        Build the manifest for one request.

        Args:
            request: Validated request fields
            base_url: Externally visible scheme and host for the download URL
            derived_images: Strip tiers to bundle, if an image was supplied
            serial_number: Serial to use; a fresh one is minted when omitted

        Returns:
            PassManifest with pass.json, icons and optional strip images
        """
        template = load_template(self.model_dir)
        serial_number = serial_number or mint_serial_number()
        pass_url = build_pass_url(base_url, serial_number)

        pass_json = build_pass_json(template, request, serial_number, pass_url, self.identity)

        assets = load_icons(self.model_dir)
        if derived_images is not None:
            try:
                assets.update(derived_images.read_assets())
            except OSError as e:
                raise ImageProcessingError(f"Derived strip image unreadable: {e}") from e

        logger.info(f"Built pass {serial_number} with {len(assets)} assets")
        return PassManifest(
            serial_number=serial_number,
            pass_url=pass_url,
            pass_json=pass_json,
            assets=assets,
        )
