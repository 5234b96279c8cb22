from typing import Mapping, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit
import logging
import re

from ..config.settings import settings
from .errors import InputError
from .ipp_encoder import (
    IPPFrame,
    encode_operation,
    encode_uri,
    encode_name,
    encode_integer,
    encode_keyword,
    encode_end,
)
from .utils import hex_preview

logger = logging.getLogger(__name__)

INTEGER_PATTERN = re.compile(r"[+-]?\d+")

# Separa el URI del llamador en (esquema de transporte, host, ruta)
def split_printer_uri(uri: str) -> Tuple[str, str, str]:
    if not uri:
        raise InputError("Falta el URI de la impresora")

    try:
        parts = urlsplit(str(uri))
        host = parts.hostname
    except ValueError as e:
        raise InputError(f"URI de impresora inválido '{uri}': {e}") from e

    scheme = settings.SCHEME_MAP.get(parts.scheme.lower())
    if scheme is None:
        raise InputError(f"Esquema no soportado en URI de impresora: '{parts.scheme}'")
    if not host:
        raise InputError(f"URI de impresora sin host: '{uri}'")

    # IPv6 necesita corchetes al volver a formar el URI
    if ':' in host:
        host = f"[{host}]"

    return scheme, host, parts.path

# Reescribe el esquema al de transporte y elimina el puerto explícito
def normalize_printer_uri(uri: str) -> str:
    scheme, host, path = split_printer_uri(uri)
    return urlunsplit((scheme, host, path, '', ''))

class RequestBuilder:
    """Construye la trama completa de una solicitud IPP.

    Orden fijo: encabezado de operación, ``printer-uri`` y, si hay
    parámetros, ``requesting-user-name``, ``limit`` y ``requested-attributes``.
    Los parámetros ausentes no se codifican.
    """

    def __init__(self, operation_id: int, buffer_size: Optional[int] = None):
        self.operation_id = operation_id
        self.buffer_size = buffer_size or settings.IPP_FRAME_BUFFER_SIZE

    def build(self, target_uri: str, params: Optional[Mapping[str, Optional[str]]] = None) -> IPPFrame:
        if not target_uri:
            logger.error("RequestBuilder.build(): falta el URI de la impresora")
            raise InputError("Falta el URI de la impresora")

        printer_uri = normalize_printer_uri(target_uri)

        # Validar limit antes de reservar el buffer
        limit = None
        if params is not None:
            limit = self._parse_limit(params.get("limit"))

        frame = IPPFrame(self.buffer_size)
        encode_operation(frame, self.operation_id)
        encode_uri(frame, "printer-uri", printer_uri)

        if params is None:
            encode_end(frame)
            return frame.seal()

        encode_name(frame, "requesting-user-name", params.get("requesting-user-name"))
        encode_integer(frame, "limit", limit)

        requested = params.get("requested-attributes")
        if requested is not None:
            keywords = requested.split()
            if keywords:
                encode_keyword(frame, "requested-attributes", keywords[0])
                for keyword in keywords[1:]:
                    encode_keyword(frame, None, keyword)

        encode_end(frame)
        frame.seal()

        logger.debug(f"Trama IPP construida: {len(frame)} bytes para {printer_uri}")
        logger.debug(f"Bytes de trama: {hex_preview(frame.data)}")
        return frame

    @staticmethod
    def _parse_limit(value: Optional[str]) -> Optional[int]:
        if value is None:
            return None
        text = str(value)
        if not INTEGER_PATTERN.fullmatch(text):
            raise InputError(f"El parámetro limit no es numérico: '{value}'")
        return int(text)
