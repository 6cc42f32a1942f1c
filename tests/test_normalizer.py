import unittest

from ses_hospedajes.models.schemas import GuestRole
from ses_hospedajes.services import normalizer
from ses_hospedajes.services.normalizer import normalize_date, normalize_row, split_surnames


def sample_row(**overrides):
    row = {
        normalizer.COL_GIVEN_NAME: "Ana",
        normalizer.COL_SURNAMES: "García de la Torre",
        normalizer.COL_SEX: "M",
        normalizer.COL_BIRTH_DATE: "05/03/1990",
        normalizer.COL_NATIONALITY: "",
        normalizer.COL_DOCUMENT_TYPE: "D",
        normalizer.COL_DOCUMENT_NUMBER: "12345678Z",
        normalizer.COL_ADDRESS: "Calle Mayor 1",
        normalizer.COL_CITY: "Madrid",
        normalizer.COL_PROVINCE: "Madrid",
        normalizer.COL_POSTAL_CODE: "28013",
        normalizer.COL_COUNTRY: "España",
        normalizer.COL_PHONE_OR_EMAIL: "ana@example.com",
        normalizer.COL_ENTRY_DATE: "01/07/2024 16:00",
    }
    row.update(overrides)
    return row


class DateTests(unittest.TestCase):
    def test_day_first(self):
        self.assertEqual(normalize_date("05/03/1990"), "1990-03-05")
        self.assertEqual(normalize_date("5-3-1990"), "1990-03-05")

    def test_time_is_kept_to_the_minute(self):
        self.assertEqual(normalize_date("5/3/2024 9:30"), "2024-03-05T09:30")
        self.assertEqual(normalize_date("2024-07-01 14:05:33"), "2024-07-01T14:05")
        self.assertEqual(normalize_date("2024-07-01T14:05"), "2024-07-01T14:05")

    def test_idempotent(self):
        for raw in ["05/03/1990", "2024-07-01", "1/7/2024 8:15", "2024-07-01 14:05:33", "ayer"]:
            once = normalize_date(raw)
            self.assertEqual(normalize_date(once), once)

    def test_unrecognized_is_returned_trimmed(self):
        self.assertEqual(normalize_date(" ayer "), "ayer")
        self.assertEqual(normalize_date(None), "")


class SurnameTests(unittest.TestCase):
    def test_two_surnames(self):
        self.assertEqual(split_surnames("García López"), ("García", "López"))

    def test_particles_stay_with_their_surname(self):
        self.assertEqual(split_surnames("García de la Torre"), ("García", "de la Torre"))
        self.assertEqual(split_surnames("de la Fuente Martín"), ("de la Fuente", "Martín"))

    def test_single_and_empty(self):
        self.assertEqual(split_surnames("Smith"), ("Smith", ""))
        self.assertEqual(split_surnames("  "), ("", ""))

    def test_extra_surnames_go_to_the_second(self):
        self.assertEqual(split_surnames("García López Martín"), ("García", "López Martín"))


class RowTests(unittest.TestCase):
    def test_full_row(self):
        guest = normalize_row(sample_row(), 0)
        self.assertEqual(guest.rowNumber, 2)
        self.assertEqual(guest.firstSurname, "García")
        self.assertEqual(guest.secondSurname, "de la Torre")
        self.assertEqual(guest.birthDate, "1990-03-05")
        self.assertEqual(guest.documentType, "1")
        self.assertEqual(guest.country, "ESP")
        self.assertEqual(guest.municipalityCode, "28000")
        self.assertEqual(guest.entryDate, "2024-07-01T16:00")
        self.assertEqual(guest.role, GuestRole.TRAVELER)

    def test_nationality_falls_back_to_address_country(self):
        guest = normalize_row(sample_row(), 0)
        self.assertEqual(guest.nationality, "ESP")

    def test_combined_contact_column(self):
        guest = normalize_row(sample_row(), 0)
        self.assertEqual(guest.email, "ana@example.com")
        self.assertIsNone(guest.phone)

        guest = normalize_row(sample_row(**{normalizer.COL_PHONE_OR_EMAIL: "600 111 222"}), 3)
        self.assertEqual(guest.phone, "600 111 222")
        self.assertIsNone(guest.email)
        self.assertEqual(guest.rowNumber, 5)

    def test_foreign_address_has_no_municipality_code(self):
        guest = normalize_row(sample_row(**{normalizer.COL_COUNTRY: "Francia", normalizer.COL_POSTAL_CODE: "75001"}), 0)
        self.assertEqual(guest.country, "FRA")
        self.assertIsNone(guest.municipalityCode)

    def test_missing_document_type_stays_blank(self):
        guest = normalize_row(sample_row(**{normalizer.COL_DOCUMENT_TYPE: ""}), 0)
        self.assertEqual(guest.documentType, "")


if __name__ == "__main__":
    unittest.main()
