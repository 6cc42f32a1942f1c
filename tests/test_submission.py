import base64
import io
import unittest
import zipfile

import httpx
from lxml import etree

from ses_hospedajes.config import Settings
from ses_hospedajes.models.schemas import (
    CommunicationBatchRequest,
    ContractMetadata,
    GuestRecord,
    ReconciliationState,
    SubmissionState,
)
from ses_hospedajes.services.submission import SubmissionService


def accepted_reply(batch_id):
    return (
        '<ns2:comunicacionResponse xmlns:ns2="http://www.soap.servicios.hospedajes.mir.es/comunicacion">'
        f"<respuesta><codigo>0</codigo><descripcion>Ok</descripcion><lote>{batch_id}</lote></respuesta>"
        "</ns2:comunicacionResponse>"
    )


def status_reply(batch_id, rejected=0):
    errors = "".join(
        f"<error><codigo>E{n}</codigo><descripcion>Persona {n} rechazada</descripcion></error>"
        for n in range(rejected)
    )
    return (
        '<ns2:consultaLoteResponse xmlns:ns2="http://www.soap.servicios.hospedajes.mir.es/comunicacion">'
        f"<respuesta><codigo>0</codigo></respuesta><resultado><lote>{batch_id}</lote>"
        f"<estado>PROCESADO</estado><errores>{errors}</errores></resultado></ns2:consultaLoteResponse>"
    )


GLOBAL_ERROR_REPLY = (
    "<respuesta><codigo>10121</codigo><descripcion>El establecimiento no existe</descripcion></respuesta>"
)


def make_settings(**overrides):
    fields = dict(ws_user="user", ws_password="secret", pre_endpoint="https://ses.test/ws",
                  establishment_code="0000000001", reconcile_delay=5)
    fields.update(overrides)
    return Settings(**fields)


def make_request(count):
    guests = [
        GuestRecord(rowNumber=n + 2, givenName=f"Huésped {n}", firstSurname="García", secondSurname="López",
                    birthDate="1990-03-05", nationality="ESP", documentType="1", documentNumber=f"1000000{n}A",
                    address="Calle Mayor 1", city="Madrid", postalCode="28013", country="ESP",
                    phone="600000000", entryDate="2024-07-01")
        for n in range(count)
    ]
    return CommunicationBatchRequest(establishmentCode="0000000001", guests=guests,
                                     contract=ContractMetadata(reference="RES-1", signatureDate="2024-06-01"))


class FakeSes:
    """Routes communication and status-query envelopes to canned replies."""

    def __init__(self, send_reply, status_reply=None, status_error=False):
        self.send_reply = send_reply
        self.status_reply = status_reply
        self.status_error = status_error
        self.sent = []
        self.queries = []

    def __call__(self, request):
        if b"consultaLoteRequest" in request.content:
            self.queries.append(request)
            if self.status_error:
                raise httpx.ConnectError("connection reset", request=request)
            return httpx.Response(200, text=self.status_reply)
        self.sent.append(request)
        if isinstance(self.send_reply, httpx.Response):
            return self.send_reply
        return httpx.Response(200, text=self.send_reply)


class SubmissionTests(unittest.TestCase):
    def setUp(self):
        self.sleeps = []

    def service(self, fake, **settings):
        return SubmissionService(make_settings(**settings), transport=httpx.MockTransport(fake),
                                 sleep=self.sleeps.append)

    def test_partial_rejection_is_reconciled(self):
        fake = FakeSes(accepted_reply("L123"), status_reply("L123", rejected=2))
        outcome = self.service(fake).submit(make_request(5))

        self.assertTrue(outcome.success)
        self.assertEqual(outcome.batchId, "L123")
        self.assertEqual(outcome.state, SubmissionState.PARTIALLY_REJECTED)
        self.assertEqual(outcome.reconciliation, ReconciliationState.CONFIRMED_PARTIAL)
        self.assertEqual(outcome.acceptedCount, 3)
        self.assertEqual(outcome.rejectedCount, 2)
        self.assertEqual([e.code for e in outcome.guestErrors], ["E0", "E1"])
        self.assertEqual(self.sleeps, [5])
        self.assertEqual(len(fake.queries), 1)

    def test_all_accepted(self):
        fake = FakeSes(accepted_reply("L124"), status_reply("L124"))
        outcome = self.service(fake).submit(make_request(3))
        self.assertEqual(outcome.state, SubmissionState.ACCEPTED)
        self.assertEqual(outcome.reconciliation, ReconciliationState.CONFIRMED_ACCEPTED)
        self.assertEqual((outcome.acceptedCount, outcome.rejectedCount), (3, 0))

    def test_failed_status_query_keeps_the_accept(self):
        fake = FakeSes(accepted_reply("L999"), status_error=True)
        with self.assertLogs("ses_hospedajes.services.reconciliation", level="WARNING"):
            outcome = self.service(fake).submit(make_request(5))

        self.assertTrue(outcome.success)
        self.assertEqual(outcome.state, SubmissionState.ACCEPTED)
        self.assertEqual(outcome.reconciliation, ReconciliationState.ACCEPTED_UNCONFIRMED)
        self.assertEqual((outcome.acceptedCount, outcome.rejectedCount), (5, 0))
        self.assertEqual(outcome.errors, [])

    def test_accept_without_batch_id_is_unconfirmed(self):
        fake = FakeSes("<respuesta><codigo>0</codigo></respuesta>")
        outcome = self.service(fake).submit(make_request(2))
        self.assertTrue(outcome.success)
        self.assertEqual(outcome.reconciliation, ReconciliationState.ACCEPTED_UNCONFIRMED)
        self.assertEqual(fake.queries, [])
        self.assertEqual(self.sleeps, [])

    def test_global_error_is_not_reconciled(self):
        fake = FakeSes(GLOBAL_ERROR_REPLY)
        outcome = self.service(fake).submit(make_request(2))
        self.assertFalse(outcome.success)
        self.assertEqual(outcome.state, SubmissionState.FAILED)
        self.assertEqual([(e.code, e.message) for e in outcome.errors], [("10121", "El establecimiento no existe")])
        self.assertEqual(outcome.rawResponse, GLOBAL_ERROR_REPLY)
        self.assertEqual(fake.queries, [])

    def test_http_error(self):
        fake = FakeSes(httpx.Response(503, text="busy"))
        outcome = self.service(fake).submit(make_request(1))
        self.assertFalse(outcome.success)
        self.assertEqual(outcome.errors[0].code, "HTTP_503")

    def test_missing_configuration_sends_nothing(self):
        fake = FakeSes(accepted_reply("L1"))
        outcome = self.service(fake, ws_password="").submit(make_request(1))
        self.assertFalse(outcome.success)
        self.assertEqual(outcome.errors[0].code, "CONFIG_ERROR")
        self.assertIn("SES_WS_PASSWORD", outcome.errors[0].message)
        self.assertEqual(fake.sent, [])

    def test_timeout_fails_the_submission(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        service = SubmissionService(make_settings(), transport=httpx.MockTransport(handler), sleep=self.sleeps.append)
        outcome = service.send(make_request(2))
        self.assertFalse(outcome.success)
        self.assertEqual(outcome.state, SubmissionState.FAILED)
        self.assertEqual(outcome.errors[0].code, "NETWORK_ERROR")
        self.assertEqual(outcome.guestCount, 2)

    def test_unreadable_ca_bundle_is_a_configuration_error(self):
        fake = FakeSes(accepted_reply("L1"), status_reply("L1"))
        service = self.service(fake, ca_bundle="/nonexistent/ca.pem")

        outcome = service.submit(make_request(1))
        self.assertFalse(outcome.success)
        self.assertEqual(outcome.errors[0].code, "CONFIG_ERROR")
        self.assertIn("SES_CA_BUNDLE", outcome.errors[0].message)
        self.assertEqual(fake.sent, [])

        with self.assertLogs("ses_hospedajes.services.submission", level="WARNING"):
            result = service.check_batch_status("L1", 1)
        self.assertEqual(result.state, ReconciliationState.ACCEPTED_UNCONFIRMED)
        self.assertEqual(fake.queries, [])

    def test_envelope_carries_the_zipped_payload(self):
        fake = FakeSes(accepted_reply("L1"), status_reply("L1"))
        request = make_request(2)
        self.service(fake, entity_code="0000000077").send(request)

        envelope = etree.fromstring(fake.sent[0].content)
        self.assertEqual(envelope.findtext(".//cabecera/codigoArrendador"), "0000000077")
        self.assertEqual(envelope.findtext(".//cabecera/tipoComunicacion"), "PV")
        archive = zipfile.ZipFile(io.BytesIO(base64.b64decode(envelope.findtext(".//peticion/solicitud"))))
        payload = etree.fromstring(archive.read("comunicacion.xml"))
        self.assertEqual(len(payload.findall("solicitud/comunicacion/persona")), 2)

    def test_check_batch_status_without_wait(self):
        fake = FakeSes(accepted_reply("L5"), status_reply("L5", rejected=1))
        result = self.service(fake).check_batch_status("L5", 4)
        self.assertEqual(result.state, ReconciliationState.CONFIRMED_PARTIAL)
        self.assertEqual((result.acceptedCount, result.rejectedCount), (3, 1))
        self.assertEqual(result.remoteStatus, "procesado")
        self.assertEqual(self.sleeps, [])


if __name__ == "__main__":
    unittest.main()
