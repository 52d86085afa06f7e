import copy
import json
import shutil
import tempfile
import unittest
from pathlib import Path

from couponpass.config import DEFAULT_MODEL_DIR
from couponpass.errors import TemplateError
from couponpass.schemas import PassRequest
from couponpass.services.pass_builder import (
    ICON_FILENAMES,
    PassBuilder,
    build_pass_json,
    format_expiry,
    load_template,
    mint_serial_number,
)
from couponpass.services.strip_images import derive_strip_images
from couponpass.services.test_strip_images import make_image

BASE_URL = "https://coupons.example.com"


def serial_from_url(url: str) -> str:
    return url.rsplit("/", 1)[-1][:-len(".pkpass")]


class TestPassBuilder(unittest.TestCase):

    def setUp(self):
        self.builder = PassBuilder(DEFAULT_MODEL_DIR)
        self.template = load_template(DEFAULT_MODEL_DIR)

    def build(self, **fields):
        fields.setdefault("discount", "20%")
        return self.builder.build(PassRequest(**fields), BASE_URL)

    def test_serial_matches_barcode_messages(self):
        manifest = self.build()
        pass_json = manifest.pass_json
        serial = pass_json["serialNumber"]

        self.assertEqual(serial, manifest.serial_number)
        self.assertEqual(serial_from_url(pass_json["barcode"]["message"]), serial)
        self.assertEqual(serial_from_url(pass_json["barcodes"][0]["message"]), serial)
        self.assertEqual(manifest.pass_url, f"{BASE_URL}/passes/{serial}.pkpass")

    def test_barcode_descriptors_identical(self):
        pass_json = self.build().pass_json
        self.assertEqual(len(pass_json["barcodes"]), 1)
        self.assertEqual(pass_json["barcode"], pass_json["barcodes"][0])
        self.assertEqual(pass_json["barcode"]["format"], "PKBarcodeFormatQR")
        self.assertEqual(pass_json["barcode"]["messageEncoding"], "iso-8859-1")
        self.assertEqual(pass_json["barcode"]["altText"], "QR code")

    def test_discount_passed_verbatim(self):
        for discount in ("20%", "$5", "15", "Buy one get one"):
            with self.subTest(discount=discount):
                coupon = self.build(discount=discount).pass_json["coupon"]
                self.assertEqual(coupon["primaryFields"][0]["value"], discount)

    def test_expiry_shifted_one_day(self):
        coupon = self.build(expiryDate="2025-01-10").pass_json["coupon"]
        self.assertTrue(coupon["headerFields"][0]["value"].startswith("2025-01-11"))

    def test_last_representable_expiry_kept_verbatim(self):
        coupon = self.build(expiryDate="9999-12-31").pass_json["coupon"]
        self.assertEqual(coupon["headerFields"][0]["value"], "9999-12-31")

    def test_service_type_applied(self):
        coupon = self.build(serviceType="Gold").pass_json["coupon"]
        self.assertEqual(coupon["secondaryFields"][0]["value"], "Gold")

    def test_optional_fields_keep_template_defaults(self):
        coupon = self.build().pass_json["coupon"]
        template_coupon = self.template["coupon"]
        self.assertEqual(coupon["headerFields"], template_coupon["headerFields"])
        self.assertEqual(coupon["secondaryFields"], template_coupon["secondaryFields"])

        coupon = self.build(serviceType="", expiryDate="  ").pass_json["coupon"]
        self.assertEqual(coupon["headerFields"], template_coupon["headerFields"])
        self.assertEqual(coupon["secondaryFields"], template_coupon["secondaryFields"])

    def test_background_color(self):
        self.assertEqual(self.build().pass_json["backgroundColor"], "rgb(41, 128, 185)")
        self.assertEqual(self.build(backgroundColor="not-a-color").pass_json["backgroundColor"],
                         "rgb(41, 128, 185)")
        self.assertEqual(self.build(backgroundColor="rgb(10,20,30)").pass_json["backgroundColor"],
                         "rgb(10, 20, 30)")

    def test_icons_always_strips_only_with_image(self):
        manifest = self.build()
        self.assertEqual(set(manifest.files()), {"pass.json", *ICON_FILENAMES})

        with tempfile.TemporaryDirectory() as tmp:
            derived = derive_strip_images(make_image(), None, Path(tmp))
            manifest = self.builder.build(PassRequest(discount="20%"), BASE_URL, derived)
            self.assertEqual(set(manifest.files()), {
                "pass.json", *ICON_FILENAMES, "strip.png", "strip@2x.png", "strip@3x.png",
            })

    def test_pass_json_bytes_match_document(self):
        manifest = self.build(serviceType="Gold")
        self.assertEqual(json.loads(manifest.files()["pass.json"]), manifest.pass_json)

    def test_template_not_mutated(self):
        original = copy.deepcopy(self.template)
        build_pass_json(self.template, PassRequest(discount="50%", serviceType="Gold",
                                                   expiryDate="2025-01-10"),
                        "1-abc", f"{BASE_URL}/passes/1-abc.pkpass")
        self.assertEqual(self.template, original)

    def test_serials_unique_per_build(self):
        serials = {self.build().serial_number for _ in range(50)}
        self.assertEqual(len(serials), 50)

    def test_identity_overrides(self):
        builder = PassBuilder(DEFAULT_MODEL_DIR, pass_type_identifier="pass.com.example.coupon",
                              team_identifier="TEAM123456")
        pass_json = builder.build(PassRequest(discount="1"), BASE_URL).pass_json
        self.assertEqual(pass_json["passTypeIdentifier"], "pass.com.example.coupon")
        self.assertEqual(pass_json["teamIdentifier"], "TEAM123456")
        self.assertEqual(pass_json["organizationName"], self.template["organizationName"])


class TestTemplateAssets(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.model_dir = Path(self.tmp)
        shutil.copy(DEFAULT_MODEL_DIR / "pass.json", self.model_dir / "pass.json")

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    def test_missing_icon(self):
        with self.assertRaises(TemplateError):
            PassBuilder(self.model_dir).build(PassRequest(discount="1"), BASE_URL)

    def test_missing_template(self):
        (self.model_dir / "pass.json").unlink()
        with self.assertRaises(TemplateError):
            load_template(self.model_dir)

    def test_template_without_coupon_slots(self):
        template = json.loads((self.model_dir / "pass.json").read_text())
        template["coupon"]["secondaryFields"] = []
        (self.model_dir / "pass.json").write_text(json.dumps(template))
        with self.assertRaises(TemplateError):
            load_template(self.model_dir)

    def test_template_not_json(self):
        (self.model_dir / "pass.json").write_text("{ nope")
        with self.assertRaises(TemplateError):
            load_template(self.model_dir)


class TestFormatExpiry(unittest.TestCase):

    def test_date_only(self):
        self.assertEqual(format_expiry("2025-01-10"), "2025-01-11T00:00:00Z")
        self.assertEqual(format_expiry("2024-12-31"), "2025-01-01T00:00:00Z")
        self.assertEqual(format_expiry("2024-02-28"), "2024-02-29T00:00:00Z")

    def test_datetime(self):
        self.assertEqual(format_expiry("2025-01-10T12:00:00Z"), "2025-01-11T12:00:00Z")
        self.assertEqual(format_expiry("2025-01-10T23:30:00+02:00"), "2025-01-11T21:30:00Z")
        self.assertEqual(format_expiry("2025-01-10T08:15:00"), "2025-01-11T08:15:00Z")

    def test_unparseable_passed_through(self):
        self.assertEqual(format_expiry("end of June"), "end of June")

    def test_out_of_range_passed_through(self):
        self.assertEqual(format_expiry("9999-12-31"), "9999-12-31")
        self.assertEqual(format_expiry("9999-12-30T23:00:00-05:00"), "9999-12-30T23:00:00-05:00")


class TestMintSerialNumber(unittest.TestCase):

    def test_unique_and_url_safe(self):
        serials = {mint_serial_number() for _ in range(1000)}
        self.assertEqual(len(serials), 1000)
        for serial in serials:
            self.assertRegex(serial, r"^\d+-[0-9a-f]{8}$")


if __name__ == "__main__":
    unittest.main()
