from concurrent.futures import ThreadPoolExecutor
from unittest.mock import Mock
import random
import io
import struct
import time

import pytest

from ippclient.client.errors import (
    DecodingError,
    InputError,
    OperationError,
    TransportError,
)
from ippclient.client.ipp_encoder import IPPOperation, IPPTag
from ippclient.client.ipp_parser import IPPParser, IPPStatusCode
from ippclient.client.operations import (
    CupsGetDefault,
    CupsGetPrinters,
    GetJobs,
    GetPrinterAttributes,
    IPPOperationRequest,
    PrintJob,
    get_attribute_value,
)
from ippclient.client.transport import TransportResult

# Transporte en proceso: responde con el printer-uri y request-id de cada trama
class EchoTransport:

    def __init__(self, response_builder):
        self.response_builder = response_builder
        self.calls = []

    def send(self, uri, frame, document=None):
        self.calls.append((uri, frame, document))
        request = IPPParser.parse_response(frame.data)
        printer_uri = request.operation_attributes["printer-uri"].value
        time.sleep(random.uniform(0, 0.01))
        content = self.response_builder(
            request_id=request.request_id,
            groups=[
                (IPPTag.OPERATION_ATTRIBUTES_TAG, [(IPPTag.CHARSET, "attributes-charset", b"utf-8")]),
                (IPPTag.PRINTER_ATTRIBUTES_TAG, [
                    (IPPTag.URI, "printer-uri-supported", printer_uri.encode('utf-8')),
                ]),
            ],
        )
        return TransportResult(f"OK {printer_uri}", content, 200)

class TestIPPOperationRequest:
    # Flujo completo: trama, envío, decodificación y línea de estado
    def test_request_attaches_status_line(self, response_builder):
        transport = EchoTransport(response_builder)
        operation = GetPrinterAttributes(transport=transport)

        result = operation.request("ipp://printer.local:631/printers/lp", {"requested-attributes": "all"})

        assert result.status_code == IPPStatusCode.SUCCESSFUL_OK
        assert result.http_status_line == "OK http://printer.local/printers/lp"
        assert result.http_status_code == 200
        assert get_attribute_value(result.printer_attributes["printer-uri-supported"]) == "http://printer.local/printers/lp"
        uri, frame, document = transport.calls[0]
        assert uri == "ipp://printer.local:631/printers/lp"
        assert frame.sealed
        assert document is None

    # La instancia no guarda estado de la llamada
    def test_no_status_line_on_instance(self, response_builder):
        operation = GetPrinterAttributes(transport=EchoTransport(response_builder))
        operation.execute("ipp://printer.local/printers/lp")
        assert not hasattr(operation, "http_status_line")

    # URI ausente: falla antes de usar el transporte
    def test_missing_uri_wrapped(self):
        transport = Mock()
        operation = GetPrinterAttributes(transport=transport)

        with pytest.raises(OperationError) as excinfo:
            operation.request(None)

        assert isinstance(excinfo.value.cause, InputError)
        assert excinfo.value.__cause__ is excinfo.value.cause
        assert excinfo.value.operation_id == IPPOperation.GET_PRINTER_ATTRIBUTES
        transport.send.assert_not_called()

    # limit no numérico: sin tráfico de red
    def test_invalid_limit_wrapped(self):
        transport = Mock()
        with pytest.raises(OperationError) as excinfo:
            GetJobs(transport=transport).request("ipp://host/printers/a", {"limit": "ten"})
        assert isinstance(excinfo.value.cause, InputError)
        transport.send.assert_not_called()

    # Error de transporte preservado como causa
    def test_transport_error_wrapped(self):
        transport = Mock()
        error = TransportError("timeout", "http://host:631/printers/a")
        transport.send.side_effect = error

        with pytest.raises(OperationError) as excinfo:
            GetPrinterAttributes(transport=transport).request("ipp://host/printers/a")

        assert excinfo.value.cause is error

    # Respuesta ilegible: DecodingError con los bytes recibidos
    def test_decoding_error_wrapped(self):
        transport = Mock()
        transport.send.return_value = TransportResult("OK", b"<html>", 200)

        with pytest.raises(OperationError) as excinfo:
            GetPrinterAttributes(transport=transport).request("ipp://host/printers/a")

        assert isinstance(excinfo.value.cause, DecodingError)
        assert excinfo.value.cause.data == b"<html>"

    # HTTP 200 con cuerpo vacío produce un resultado vacío
    def test_empty_body_result(self):
        transport = Mock()
        transport.send.return_value = TransportResult("OK", b"", 200)

        result = GetPrinterAttributes(transport=transport).request("ipp://host/printers/a")

        assert result.raw == b""
        assert result.http_status_line == "OK"

    # Llamadas concurrentes sobre la misma instancia no mezclan resultados
    def test_concurrent_requests(self, response_builder):
        operation = GetPrinterAttributes(transport=EchoTransport(response_builder))

        def call(index):
            uri = f"ipp://printer.local:631/printers/p{index}"
            return index, operation.request(uri, {"requesting-user-name": f"user{index}"})

        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(call, range(40)))

        request_ids = set()
        for index, result in results:
            expected = f"http://printer.local/printers/p{index}"
            assert result.http_status_line == f"OK {expected}"
            assert result.printer_attributes["printer-uri-supported"].value == expected
            request_ids.add(result.request_id)
        assert len(request_ids) == 40

    # Print-Job entrega el documento al transporte sin tocarlo
    def test_print_job_passes_document(self, response_builder):
        transport = EchoTransport(response_builder)
        document = Mock()

        PrintJob(transport=transport).print_document("ipp://host/printers/a", document)

        uri, frame, sent_document = transport.calls[0]
        assert sent_document is document
        assert struct.unpack(">H", frame.data[2:4])[0] == IPPOperation.PRINT_JOB
        document.read.assert_not_called()

class TestOperationDefinitions:
    # Cada operación usa su operation-id
    @pytest.mark.parametrize("operation_class, operation_id", [
        (GetPrinterAttributes, 0x000b),
        (GetJobs, 0x000a),
        (PrintJob, 0x0002),
        (CupsGetDefault, 0x4001),
        (CupsGetPrinters, 0x4002),
    ])
    def test_operation_ids(self, operation_class, operation_id):
        operation = operation_class(transport=Mock())
        frame = operation.build_frame("ipp://host/printers/a")
        assert struct.unpack(">H", frame.data[2:4])[0] == operation_id

    # La clase base necesita un operation-id explícito
    def test_base_requires_operation_id(self):
        with pytest.raises(ValueError):
            IPPOperationRequest(transport=Mock())
        operation = IPPOperationRequest(operation_id=IPPOperation.VALIDATE_JOB, transport=Mock())
        assert operation.operation_id == IPPOperation.VALIDATE_JOB

    # Sin transporte inyectado se crea uno con la configuración recibida
    def test_default_transport(self):
        operation = GetPrinterAttributes(port=8631, connect_timeout=2, response_timeout=4)
        assert operation.transport.port == 8631
        assert operation.transport.connect_timeout == 2
        assert operation.transport.response_timeout == 4

    def test_get_attribute_value_none(self):
        assert get_attribute_value(None) is None

class TestOperationNetwork:
    # Ida y vuelta contra un servidor HTTP local
    def test_get_printer_attributes_round_trip(self, http_server, response_builder, request_fields):
        def responder(body):
            payload = response_builder(
                request_id=struct.unpack(">I", body[4:8])[0],
                groups=[(IPPTag.PRINTER_ATTRIBUTES_TAG, [
                    (IPPTag.NAME_WITHOUT_LANGUAGE, "printer-name", b"lp"),
                ])],
            )
            return 200, "OK", payload

        http_server.handler_class.responder = responder
        port = http_server.server_address[1]

        result = GetPrinterAttributes(port=port).request("ipp://127.0.0.1:631/printers/lp")

        assert result.http_status_line == "OK"
        assert result.is_successful()
        assert result.printer_attributes["printer-name"].value == "lp"
        fields = request_fields(http_server.received[0]["body"])
        assert (IPPTag.URI, "printer-uri", b"http://127.0.0.1/printers/lp") in fields

    # Print-Job envía trama y documento en el mismo cuerpo
    def test_print_job_round_trip(self, http_server, response_builder):
        http_server.handler_class.responder = lambda body: (200, "OK", response_builder())
        port = http_server.server_address[1]
        document = b"%PDF-1.4\n" + b"0" * 20000

        result = PrintJob(port=port).print_document(
            "ipp://127.0.0.1/printers/lp", iter([document[:1000], document[1000:]]),
            {"requesting-user-name": "alice"},
        )

        body = http_server.received[0]["body"]
        assert body.endswith(document)
        assert body[len(body) - len(document) - 1] == IPPTag.END_OF_ATTRIBUTES_TAG
        assert b"alice" in body
        assert result.status_code == IPPStatusCode.SUCCESSFUL_OK

    # Respuesta 200 vacía desde el servidor
    def test_empty_body_from_server(self, http_server):
        http_server.handler_class.responder = lambda body: (200, "OK", b"")
        port = http_server.server_address[1]

        result = GetPrinterAttributes(port=port).request("ipp://127.0.0.1/printers/lp")

        assert result.raw == b""
        assert result.http_status_line == "OK"

    # Un documento ilegible falla como OperationError con TransportError como causa
    def test_print_job_closed_document(self, http_server, response_builder):
        http_server.handler_class.responder = lambda body: (200, "OK", response_builder())
        port = http_server.server_address[1]
        document = io.BytesIO(b"%PDF-1.4")
        document.close()

        with pytest.raises(OperationError) as excinfo:
            PrintJob(port=port).print_document("ipp://127.0.0.1/printers/lp", document)

        assert isinstance(excinfo.value.cause, TransportError)
        assert isinstance(excinfo.value.cause.__cause__, ValueError)
        assert excinfo.value.operation_id == IPPOperation.PRINT_JOB
