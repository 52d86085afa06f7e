"""
PKPass Creator - signs and packages pass files into a .pkpass archive

Given the named files of a pass, writes them into a private build directory,
adds manifest.json (SHA-1 of every file) and a detached PKCS#7 signature made
with the openssl CLI, and returns the zipped archive bytes.
"""

import hashlib
import io
import json
import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Protocol
from zipfile import ZIP_DEFLATED, ZipFile

from ..config import SigningIdentity
from ..errors import SigningError

logger = logging.getLogger(__name__)

REQ_JSON_KEYS = [
    "formatVersion", "passTypeIdentifier", "teamIdentifier",
    "serialNumber", "organizationName", "description"
]

RESERVED_NAMES = ("manifest.json", "signature")


class PassSigner(Protocol):
    """Anything that turns named pass files into signed archive bytes"""

    def sign(self, files: Mapping[str, bytes]) -> bytes:
        ...


def run(cmd: List[str], cwd: Optional[Path] = None) -> str:
    """Run an external command, raising SigningError on a non-zero exit"""
    logger.debug(f"$ {cmd[0]} {cmd[1]} ...")
    try:
        proc = subprocess.run(cmd, cwd=cwd, text=True,
                              stdout=subprocess.PIPE, stderr=subprocess.STDOUT)
    except OSError as e:
        raise SigningError(f"Could not run {cmd[0]}: {e}") from e
    if proc.returncode != 0:
        raise SigningError(f"{cmd[0]} {cmd[1]} failed: {proc.stdout.strip()}")
    return proc.stdout


def check_pass_json(files: Mapping[str, bytes]) -> None:
    """Make sure pass.json exists, is UTF-8 JSON and carries the required keys"""
    if "pass.json" not in files:
        raise SigningError("pass.json missing from pass files")
    try:
        data = json.loads(files["pass.json"].decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise SigningError(f"Invalid pass.json or not UTF-8: {e}") from e
    missing = [k for k in REQ_JSON_KEYS if k not in data]
    if missing:
        raise SigningError(f"Missing required keys in pass.json: {', '.join(missing)}")


def build_manifest(files: Mapping[str, bytes]) -> Dict[str, str]:
    """SHA-1 hex digest of every pass file, keyed by filename"""
    return {name: hashlib.sha1(data).hexdigest() for name, data in files.items()}


def write_build_dir(build_dir: Path, files: Mapping[str, bytes]) -> None:
    build_dir.mkdir(parents=True, exist_ok=True)
    for name, data in files.items():
        if name in RESERVED_NAMES or name.startswith(".") or "/" in name or "\\" in name:
            raise SigningError(f"Refusing to package file name {name!r}")
        (build_dir / name).write_bytes(data)

    manifest = build_manifest(files)
    (build_dir / "manifest.json").write_text(
        json.dumps(manifest, ensure_ascii=False, indent=2), encoding="utf-8"
    )
    logger.debug(f"manifest.json created ({len(manifest)} items)")


def sign_manifest(build_dir: Path, identity: SigningIdentity) -> Path:
    """Write a detached DER signature of manifest.json and verify it"""
    manifest_path = build_dir / "manifest.json"
    sig_path = build_dir / "signature"
    cmd = [
        "openssl", "smime", "-binary", "-sign",
        "-signer", str(identity.signer_cert_path),
        "-inkey", str(identity.signer_key_path),
        "-certfile", str(identity.wwdr_cert_path),
        "-in", str(manifest_path),
        "-out", str(sig_path),
        "-outform", "DER",
    ]
    if identity.key_passphrase:
        cmd.extend(["-passin", f"pass:{identity.key_passphrase}"])
    run(cmd)

    run([
        "openssl", "smime", "-verify",
        "-in", str(sig_path), "-inform", "DER",
        "-content", str(manifest_path),
        "-certfile", str(identity.wwdr_cert_path),
        "-noverify", "-out", os.devnull,
    ])
    return sig_path


def zip_pkpass(build_dir: Path) -> bytes:
    """Zip every file in build_dir into .pkpass bytes"""
    buffer = io.BytesIO()
    with ZipFile(buffer, "w", ZIP_DEFLATED) as zf:
        for p in sorted(build_dir.iterdir()):
            if p.is_file():
                zf.write(p, arcname=p.name)
    return buffer.getvalue()


class PKPassCreator:
    """Signs pass files with a fixed signing identity"""

    def __init__(self, identity: Optional[SigningIdentity]):
        self.identity = identity

    @property
    def configured(self) -> bool:
        return self.identity is not None

    def sign(self, files: Mapping[str, bytes]) -> bytes:
        """
        Package and sign a pass.

        Args:
            files: Archive member names mapped to their content

        Returns:
            Signed .pkpass archive bytes
        """
        if self.identity is None:
            raise SigningError("Pass signing identity is not configured")

        check_pass_json(files)

        with tempfile.TemporaryDirectory(prefix="pkpass-") as temp_dir:
            build_dir = Path(temp_dir) / "build_pkpass"
            write_build_dir(build_dir, files)
            sign_manifest(build_dir, self.identity)
            archive = zip_pkpass(build_dir)

        logger.info(f"Signed pass archive: {len(files)} files, {len(archive)} bytes")
        return archive
