import json
import tempfile
import unittest
from pathlib import Path

from ses_hospedajes.services import catalog


class CountryTests(unittest.TestCase):
    def test_alpha2_and_names_map_to_alpha3(self):
        self.assertEqual(catalog.normalize_country("es"), "ESP")
        self.assertEqual(catalog.normalize_country("FR"), "FRA")
        self.assertEqual(catalog.normalize_country("España"), "ESP")
        self.assertEqual(catalog.normalize_country("germany"), "DEU")

    def test_uk_maps_to_gbr(self):
        self.assertEqual(catalog.normalize_country("uk"), "GBR")
        self.assertEqual(catalog.normalize_country("UK"), "GBR")
        self.assertEqual(catalog.normalize_country("GB"), "GBR")

    def test_alpha3_is_uppercased(self):
        self.assertEqual(catalog.normalize_country(" fra "), "FRA")

    def test_unknown_values_pass_through_trimmed(self):
        self.assertEqual(catalog.normalize_country("zz"), "zz")
        self.assertEqual(catalog.normalize_country(" Atlantis "), "Atlantis")

    def test_blank(self):
        self.assertEqual(catalog.normalize_country(None), "")
        self.assertEqual(catalog.normalize_country(""), "")


class DocumentTypeTests(unittest.TestCase):
    def test_legacy_letters(self):
        self.assertEqual(catalog.normalize_document_type("D"), "1")
        self.assertEqual(catalog.normalize_document_type("p"), "2")
        self.assertEqual(catalog.normalize_document_type("X"), "4")
        self.assertEqual(catalog.normalize_document_type("N"), "4")

    def test_numeric_codes_pass_through(self):
        self.assertEqual(catalog.normalize_document_type("2"), "2")
        self.assertEqual(catalog.normalize_document_type("9"), "9")

    def test_labels(self):
        self.assertEqual(catalog.normalize_document_type("Pasaporte"), "2")
        self.assertEqual(catalog.normalize_document_type("NIE"), "4")
        self.assertEqual(catalog.normalize_document_type("Carta de identidad"), "5")

    def test_unknown_label_defaults_to_national_id(self):
        self.assertEqual(catalog.normalize_document_type("tarjeta del club"), "1")

    def test_unknown_letter_is_kept(self):
        self.assertEqual(catalog.normalize_document_type("q"), "Q")


class MunicipalityTests(unittest.TestCase):
    def test_postal_code_prefix(self):
        self.assertEqual(catalog.municipality_code("Madrid", None, "28013"), "28000")

    def test_postal_code_wins_over_province(self):
        self.assertEqual(catalog.municipality_code("Sitges", "Madrid", "08870"), "08000")

    def test_province_fallback(self):
        self.assertEqual(catalog.municipality_code("Sitges", "Barcelona", ""), "08000")

    def test_unresolvable(self):
        self.assertIsNone(catalog.municipality_code("Sitges", None, "ABC"))


class PaymentTests(unittest.TestCase):
    def test_labels(self):
        self.assertEqual(catalog.payment_code("Efectivo"), "1")
        self.assertEqual(catalog.payment_code("Tarjeta de crédito"), "2")
        self.assertEqual(catalog.payment_code("Transferencia bancaria"), "3")
        self.assertEqual(catalog.payment_code("Otros medios de pago"), "5")

    def test_codes(self):
        self.assertEqual(catalog.payment_code("3"), "3")
        self.assertEqual(catalog.payment_code("TA"), "2")

    def test_unknown_and_blank_default(self):
        self.assertEqual(catalog.payment_code("bitcoin"), "5")
        self.assertEqual(catalog.payment_code(None), "5")


class CacheTests(unittest.TestCase):
    def test_cache_extends_but_never_overrides(self):
        with tempfile.TemporaryDirectory() as tmp:
            base = Path(tmp)
            countries = [
                {"code": "XKX", "label": "Kosovo", "alpha2": "XK"},
                {"code": "ESP", "label": "Reino de España"},
            ]
            (base / "countries.json").write_text(json.dumps(countries), encoding="utf-8")
            (base / "provinces.json").write_text(json.dumps([{"code": "99", "label": "Provincia de prueba"}]), encoding="utf-8")
            catalog.load_caches(base)

        self.assertEqual(catalog.normalize_country("Kosovo"), "XKX")
        self.assertEqual(catalog.normalize_country("xk"), "XKX")
        self.assertEqual(catalog.COUNTRIES["ESP"], "España")
        self.assertEqual(catalog.province_prefix("Provincia de prueba"), "99")

    def test_unreadable_cache_is_ignored(self):
        with tempfile.TemporaryDirectory() as tmp:
            base = Path(tmp)
            (base / "countries.json").write_text("not json", encoding="utf-8")
            with self.assertLogs("ses_hospedajes.services.catalog", level="WARNING"):
                catalog.load_caches(base)
        self.assertEqual(catalog.normalize_country("es"), "ESP")

    def test_codelists(self):
        lists = catalog.codelists()
        self.assertEqual(sorted(lists), ["COUNTRIES", "DOCUMENT_TYPES", "PAYMENT_METHODS", "PROVINCES"])
        self.assertIn({"code": "2", "label": "Pasaporte"}, lists["DOCUMENT_TYPES"])


if __name__ == "__main__":
    unittest.main()
