from typing import Any, Mapping, Optional
import logging

from .errors import DecodingError, IPPClientError, OperationError
from .ipp_encoder import IPPFrame, IPPOperation
from .ipp_parser import IPPAttribute, IPPParser, IPPResponse
from .request_builder import RequestBuilder
from .transport import DocumentSource, IPPTransport
from .utils import hex_preview

logger = logging.getLogger(__name__)

class IPPOperationRequest:
    """Operación IPP: construye la trama, la envía y decodifica la respuesta.

    Una instancia se puede reutilizar y compartir entre hilos: la línea de
    estado HTTP de cada llamada viaja en su propio ``IPPResponse``. Pasar el
    mismo stream de documento a dos llamadas concurrentes es responsabilidad
    del llamador; el stream se lee una sola vez y nunca se cierra aquí.
    """

    operation_id: Optional[int] = None

    def __init__(self, port: Optional[int] = None, connect_timeout: Optional[float] = None,
                 response_timeout: Optional[float] = None, operation_id: Optional[int] = None,
                 transport=None):
        if operation_id is not None:
            self.operation_id = operation_id
        if self.operation_id is None:
            raise ValueError(f"{type(self).__name__} necesita un operation_id")

        self.builder = RequestBuilder(self.operation_id)
        self.transport = transport or IPPTransport(
            port=port,
            connect_timeout=connect_timeout,
            response_timeout=response_timeout,
        )

    def build_frame(self, uri: str, params: Optional[Mapping[str, Optional[str]]] = None) -> IPPFrame:
        return self.builder.build(uri, params)

    # Un único intento; los reintentos corresponden al llamador
    def request(self, uri: str, params: Optional[Mapping[str, Optional[str]]] = None,
                document: Optional[DocumentSource] = None) -> IPPResponse:
        name = self._operation_name()
        try:
            frame = self.builder.build(uri, params)
            status_line, content, status_code = self.transport.send(uri, frame, document)
            result = IPPParser.parse_response(content)
        except IPPClientError as e:
            logger.error(f"Operación {name} falló para {uri}: {e}")
            if isinstance(e, DecodingError):
                logger.debug(f"Bytes de respuesta: {hex_preview(e.data)}")
            raise OperationError(f"Operación {name} falló: {e}", e, self.operation_id) from e

        result.http_status_line = status_line
        result.http_status_code = status_code

        logger.info(f"{name} -> {uri}: HTTP {status_code} {status_line}, estado IPP {result.status_code!r}")
        return result

    execute = request

    def _operation_name(self) -> str:
        try:
            return IPPOperation(self.operation_id).name
        except ValueError:
            return f"0x{self.operation_id:04x}"

class GetPrinterAttributes(IPPOperationRequest):
    operation_id = IPPOperation.GET_PRINTER_ATTRIBUTES

class GetJobs(IPPOperationRequest):
    operation_id = IPPOperation.GET_JOBS

class PrintJob(IPPOperationRequest):
    operation_id = IPPOperation.PRINT_JOB

    def print_document(self, uri: str, document: DocumentSource,
                       params: Optional[Mapping[str, Optional[str]]] = None) -> IPPResponse:
        return self.request(uri, params or {}, document)

class CupsGetDefault(IPPOperationRequest):
    operation_id = IPPOperation.CUPS_GET_DEFAULT

class CupsGetPrinters(IPPOperationRequest):
    operation_id = IPPOperation.CUPS_GET_PRINTERS

# Primer valor de un atributo decodificado
def get_attribute_value(attribute: Optional[IPPAttribute]) -> Any:
    if attribute is None:
        return None
    return attribute.value
