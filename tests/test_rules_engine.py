import unittest

from ses_hospedajes.models.schemas import GuestRecord, Severity
from ses_hospedajes.services.rules_engine import check_guest, is_valid_date, validate_guests


def make_guest(row=2, **overrides):
    fields = dict(
        rowNumber=row,
        givenName="Ana",
        firstSurname="García",
        secondSurname="López",
        birthDate="1990-03-05",
        nationality="ESP",
        documentType="1",
        documentNumber="12345678Z",
        address="Calle Mayor 1",
        city="Madrid",
        province="Madrid",
        postalCode="28013",
        country="ESP",
        phone="+34 600 000 000",
        entryDate="2024-07-01",
    )
    fields.update(overrides)
    return GuestRecord(**fields)


class DateRuleTests(unittest.TestCase):
    def test_calendar_dates(self):
        self.assertTrue(is_valid_date("2024-02-29"))
        self.assertFalse(is_valid_date("2023-02-29"))
        self.assertFalse(is_valid_date("1990-13-01"))
        self.assertFalse(is_valid_date("05/03/1990"))
        self.assertFalse(is_valid_date(""))


class GuestRuleTests(unittest.TestCase):
    def test_complete_guest_has_no_issues(self):
        self.assertEqual(check_guest(make_guest()), [])

    def test_missing_contact_is_a_single_error(self):
        issues = check_guest(make_guest(phone=None, email=None))
        self.assertEqual(len(issues), 1)
        self.assertEqual(issues[0].field, "contact")
        self.assertEqual(issues[0].severity, Severity.ERROR)
        self.assertEqual(issues[0].row, 2)

    def test_second_surname_required_for_national_id_only(self):
        issues = check_guest(make_guest(secondSurname=None))
        self.assertEqual([i.field for i in issues], ["secondSurname"])

        passport = make_guest(secondSurname=None, documentType="2", documentNumber="AB123456")
        self.assertEqual(check_guest(passport), [])

    def test_legacy_letter_counts_as_national_id(self):
        issues = check_guest(make_guest(secondSurname="", documentType="D"))
        self.assertEqual([i.field for i in issues], ["secondSurname"])

    def test_required_fields(self):
        guest = make_guest(givenName="", firstSurname=" ", documentType="", documentNumber="",
                           birthDate="", nationality="", address="", city="", country="", entryDate="")
        fields = [i.field for i in check_guest(guest)]
        self.assertEqual(fields, [
            "givenName", "firstSurname", "documentType", "documentNumber", "birthDate",
            "nationality", "address", "city", "country", "entryDate",
        ])

    def test_impossible_birth_date_is_an_error(self):
        issues = check_guest(make_guest(birthDate="1990-02-30"))
        self.assertEqual([(i.field, i.severity) for i in issues], [("birthDate", Severity.ERROR)])

    def test_entry_date_may_carry_a_time(self):
        self.assertEqual(check_guest(make_guest(entryDate="2024-07-01T16:00")), [])
        issues = check_guest(make_guest(entryDate="2024-07-41T16:00"))
        self.assertEqual([i.field for i in issues], ["entryDate"])

    def test_shape_checks_are_warnings(self):
        guest = make_guest(documentNumber="ABC", email="ana@example", phone="12", nationality="Atlantis")
        issues = check_guest(guest)
        self.assertEqual({i.field for i in issues}, {"documentNumber", "email", "phone", "nationality"})
        self.assertTrue(all(i.severity is Severity.WARNING for i in issues))

    def test_unknown_document_type_is_a_warning(self):
        issues = check_guest(make_guest(documentType="9", secondSurname=None))
        self.assertEqual([(i.field, i.severity) for i in issues], [("documentType", Severity.WARNING)])

    def test_foreign_resident_number_shape(self):
        self.assertEqual(check_guest(make_guest(documentType="4", documentNumber="X1234567L")), [])


class ValidateGuestsTests(unittest.TestCase):
    def test_partition(self):
        guests = [
            make_guest(row=2),
            make_guest(row=3, phone=None),
            make_guest(row=4, email="bad", phone=None),
        ]
        result = validate_guests(guests)
        self.assertFalse(result.isValid)
        self.assertEqual(result.totalRows, 3)
        self.assertEqual(result.validCount, 2)
        self.assertEqual(result.errorCount, 1)
        self.assertEqual(result.warningCount, 1)
        self.assertEqual([g.rowNumber for g in result.validGuests], [2, 4])
        self.assertEqual([(e.row, e.field) for e in result.errors], [(3, "contact")])

    def test_valid_guests_keep_input_order(self):
        guests = [make_guest(row=n) for n in (7, 3, 5)]
        result = validate_guests(guests)
        self.assertTrue(result.isValid)
        self.assertEqual([g.rowNumber for g in result.validGuests], [7, 3, 5])

    def test_empty(self):
        result = validate_guests([])
        self.assertTrue(result.isValid)
        self.assertEqual(result.totalRows, 0)


if __name__ == "__main__":
    unittest.main()
