import os
import tempfile
import unittest
from dataclasses import FrozenInstanceError
from pathlib import Path
from unittest import mock

from couponpass.config import DEFAULT_MODEL_DIR, Settings


class TestSettings(unittest.TestCase):

    def test_defaults(self):
        with mock.patch.dict(os.environ, {}, clear=True), \
                mock.patch("couponpass.config.load_dotenv"):
            settings = Settings.from_env()
        self.assertEqual(settings.model_dir, DEFAULT_MODEL_DIR)
        self.assertEqual(settings.output_dir, Path("temp"))
        self.assertEqual(settings.port, 3000)
        self.assertEqual(settings.cors_origins, ("*",))
        self.assertIsNone(settings.signing_identity())

    def test_from_environment(self):
        env = {
            "PASS_OUTPUT_DIR": "/srv/passes",
            "PUBLIC_BASE_URL": "https://coupons.example.com",
            "CORS_ORIGINS": "https://a.example.com, https://b.example.com",
            "RATE_LIMIT_MAX_REQUESTS": "0",
            "PORT": "not-a-number",
            "TEAM_IDENTIFIER": "TEAM123456",
        }
        with mock.patch.dict(os.environ, env, clear=True), \
                mock.patch("couponpass.config.load_dotenv"):
            settings = Settings.from_env()
        self.assertEqual(settings.output_dir, Path("/srv/passes"))
        self.assertEqual(settings.public_base_url, "https://coupons.example.com")
        self.assertEqual(settings.cors_origins, ("https://a.example.com", "https://b.example.com"))
        self.assertEqual(settings.rate_limit_max_requests, 0)
        self.assertEqual(settings.port, 3000)
        self.assertEqual(settings.team_identifier, "TEAM123456")

    def test_signing_identity_built_once_from_paths(self):
        with tempfile.TemporaryDirectory() as tmp:
            paths = {}
            for name in ("cert", "key", "wwdr"):
                paths[name] = Path(tmp) / f"{name}.pem"
                paths[name].write_text("pem")
            settings = Settings(signer_cert_path=paths["cert"], signer_key_path=paths["key"],
                                wwdr_cert_path=paths["wwdr"], signer_key_passphrase="phrase")
            identity = settings.signing_identity()
            self.assertEqual(identity.signer_key_path, paths["key"])
            self.assertEqual(identity.key_passphrase, "phrase")
            with self.assertRaises(FrozenInstanceError):
                identity.key_passphrase = "other"


if __name__ == "__main__":
    unittest.main()
