from typing import Iterator, NamedTuple, Optional, Union, BinaryIO, Iterable
from urllib.parse import urlunsplit
import logging

import requests

from ..config.settings import settings
from .errors import EncodingError, TransportError
from .ipp_encoder import IPPFrame
from .request_builder import split_printer_uri

logger = logging.getLogger(__name__)

DocumentSource = Union[bytes, BinaryIO, Iterable[bytes]]

class TransportResult(NamedTuple):
    status_line: str
    content: bytes
    status_code: int

# Recorre la trama y luego el documento, bloque a bloque, sin unirlos en memoria
# Un fallo leyendo el documento se reporta como TransportError
def iter_request_body(frame_bytes: bytes, document: DocumentSource, chunk_size: int,
                      uri: Optional[str] = None) -> Iterator[bytes]:
    yield frame_bytes

    if isinstance(document, (bytes, bytearray, memoryview)):
        for start in range(0, len(document), chunk_size):
            yield bytes(document[start:start + chunk_size])
        return

    try:
        if hasattr(document, "read"):
            chunks = iter(lambda: document.read(chunk_size), b"")
        else:
            chunks = iter(document)
        for chunk in chunks:
            if chunk:
                yield bytes(chunk)
    except (OSError, ValueError, TypeError) as e:
        logger.error(f"Error leyendo el documento para {uri}: {e}")
        raise TransportError(f"Error leyendo el documento para {uri}: {e}", uri) from e

class IPPTransport:
    """Un POST HTTP síncrono por llamada.

    El puerto de conexión es el configurado, no el que aparezca en el URI
    lógico de la impresora. La sesión HTTP se abre y se cierra dentro de
    cada ``send``.

    ``expect_continue`` solo agrega la cabecera ``Expect: 100-continue``:
    requests no espera la respuesta intermedia 100 antes de enviar el
    cuerpo, así que el documento se transmite aunque el servidor vaya a
    rechazarlo. Para documentos grandes conviene validar antes con una
    operación sin documento (por ejemplo Get-Printer-Attributes).
    """

    def __init__(self, port: Optional[int] = None, connect_timeout: Optional[float] = None,
                 response_timeout: Optional[float] = None, expect_continue: Optional[bool] = None,
                 chunk_size: Optional[int] = None):
        self.port = settings.IPP_PORT if port is None else port
        self.connect_timeout = settings.IPP_CONNECT_TIMEOUT if connect_timeout is None else connect_timeout
        self.response_timeout = settings.IPP_RESPONSE_TIMEOUT if response_timeout is None else response_timeout
        self.expect_continue = settings.IPP_EXPECT_CONTINUE if expect_continue is None else expect_continue
        self.chunk_size = settings.IPP_DOCUMENT_CHUNK_SIZE if chunk_size is None else chunk_size

    # URL real de conexión: host del URI + puerto configurado
    def resolve_endpoint(self, uri: str) -> str:
        scheme, host, path = split_printer_uri(uri)
        return urlunsplit((scheme, f"{host}:{self.port}", path, '', ''))

    def build_headers(self) -> dict:
        headers = {
            'Content-Type': settings.IPP_MIME_TYPE,
            'Accept': settings.IPP_MIME_TYPE,
        }
        if self.expect_continue:
            headers['Expect'] = '100-continue'
        return headers

    def send(self, uri: str, frame: IPPFrame, document: Optional[DocumentSource] = None) -> TransportResult:
        if not frame.sealed:
            raise EncodingError("No se puede enviar una trama IPP sin sellar")

        endpoint = self.resolve_endpoint(uri)
        frame_bytes = frame.data

        # Sin documento la longitud es conocida; con documento se envía por chunks
        if document is None:
            body = frame_bytes
        else:
            body = iter_request_body(frame_bytes, document, self.chunk_size, endpoint)

        logger.debug(
            f"POST {endpoint}: trama={len(frame_bytes)} bytes, documento={'sí' if document is not None else 'no'}"
        )

        try:
            with requests.Session() as session:
                response = session.post(
                    endpoint,
                    data=body,
                    headers=self.build_headers(),
                    timeout=(self.connect_timeout, self.response_timeout),
                )
                status_line = response.reason or ""
                content = response.content or b""
                status_code = response.status_code

        except requests.exceptions.Timeout as e:
            logger.error(f"Tiempo de espera agotado en {endpoint}: {e}")
            raise TransportError(f"Tiempo de espera agotado en {endpoint}: {e}", endpoint) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Error de transporte en {endpoint}: {e}")
            raise TransportError(f"Error de transporte en {endpoint}: {e}", endpoint) from e
        except OSError as e:
            logger.error(f"Error de E/S enviando a {endpoint}: {e}")
            raise TransportError(f"Error de E/S enviando a {endpoint}: {e}", endpoint) from e

        if status_code != 200:
            logger.warning(f"Respuesta HTTP {status_code} {status_line} desde {endpoint}")

        logger.debug(f"Respuesta de {endpoint}: HTTP {status_code} {status_line}, {len(content)} bytes")
        return TransportResult(status_line, content, status_code)
