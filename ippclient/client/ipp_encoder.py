from typing import Optional, Tuple
from enum import IntEnum
import itertools
import threading
import logging
import struct

from ..config.settings import settings
from .errors import EncodingError

logger = logging.getLogger(__name__)

MAX_FIELD_LENGTH = 0xFFFF
MAX_REQUEST_ID = 0x7FFFFFFF
INT32_MIN = -0x80000000
INT32_MAX = 0x7FFFFFFF

# Enumeración de etiquetas IPP (delimitadores y tipos de valor)
class IPPTag(IntEnum):
    # Delimitadores de grupos
    OPERATION_ATTRIBUTES_TAG = 0x01
    JOB_ATTRIBUTES_TAG = 0x02
    END_OF_ATTRIBUTES_TAG = 0x03
    PRINTER_ATTRIBUTES_TAG = 0x04
    UNSUPPORTED_ATTRIBUTES_TAG = 0x05
    SUBSCRIPTION_ATTRIBUTES_TAG = 0x06
    EVENT_NOTIFICATION_ATTRIBUTES_TAG = 0x07

    # Valores fuera de banda
    UNSUPPORTED = 0x10
    DEFAULT = 0x11
    UNKNOWN = 0x12
    NO_VALUE = 0x13
    NOT_SETTABLE = 0x15
    DELETE_ATTRIBUTE = 0x16
    ADMIN_DEFINE = 0x17

    # Enteros
    INTEGER = 0x21
    BOOLEAN = 0x22
    ENUM = 0x23

    # Cadenas binarias y especiales
    OCTET_STRING = 0x30
    DATETIME = 0x31
    RESOLUTION = 0x32
    RANGE_OF_INTEGER = 0x33
    BEGIN_COLLECTION = 0x34
    TEXT_WITH_LANGUAGE = 0x35
    NAME_WITH_LANGUAGE = 0x36
    END_COLLECTION = 0x37

    # Cadenas de caracteres
    TEXT_WITHOUT_LANGUAGE = 0x41
    NAME_WITHOUT_LANGUAGE = 0x42
    KEYWORD = 0x44
    URI = 0x45
    URI_SCHEME = 0x46
    CHARSET = 0x47
    NATURAL_LANGUAGE = 0x48
    MIME_MEDIA_TYPE = 0x49
    MEMBER_ATTR_NAME = 0x4A

# Enumeración de operaciones IPP (incluye extensiones CUPS)
class IPPOperation(IntEnum):
    PRINT_JOB = 0x0002
    PRINT_URI = 0x0003
    VALIDATE_JOB = 0x0004
    CREATE_JOB = 0x0005
    SEND_DOCUMENT = 0x0006
    SEND_URI = 0x0007
    CANCEL_JOB = 0x0008
    GET_JOB_ATTRIBUTES = 0x0009
    GET_JOBS = 0x000a
    GET_PRINTER_ATTRIBUTES = 0x000b
    HOLD_JOB = 0x000c
    RELEASE_JOB = 0x000d
    RESTART_JOB = 0x000e
    PAUSE_PRINTER = 0x0010
    RESUME_PRINTER = 0x0011
    PURGE_JOBS = 0x0012
    CUPS_GET_DEFAULT = 0x4001
    CUPS_GET_PRINTERS = 0x4002

_request_ids = itertools.count(1)
_request_id_lock = threading.Lock()

# Siguiente request-id del proceso; vuelve a 1 al superar el máximo de 31 bits
def next_request_id() -> int:
    global _request_ids
    with _request_id_lock:
        request_id = next(_request_ids)
        if request_id > MAX_REQUEST_ID:
            _request_ids = itertools.count(2)
            request_id = 1
        return request_id

class IPPFrame:
    """Buffer de una trama IPP.

    Crece de forma transparente cuando el contenido supera la capacidad
    inicial. Pasa de escritura a sellado una sola vez: tras ``seal()`` no
    admite más escrituras y solo entonces expone ``data``.
    """

    def __init__(self, capacity: Optional[int] = None):
        self.capacity = capacity or settings.IPP_FRAME_BUFFER_SIZE
        self._buffer = bytearray(self.capacity)
        self._position = 0
        self._sealed = False

    @property
    def sealed(self) -> bool:
        return self._sealed

    def write(self, data: bytes) -> "IPPFrame":
        if self._sealed:
            raise EncodingError("La trama IPP ya está sellada, no admite más escrituras")

        end = self._position + len(data)
        if end > len(self._buffer):
            new_size = max(len(self._buffer) * 2, end)
            logger.debug(f"Ampliando buffer de trama: {len(self._buffer)} -> {new_size} bytes")
            self._buffer.extend(bytes(new_size - len(self._buffer)))

        self._buffer[self._position:end] = data
        self._position = end
        return self

    def seal(self) -> "IPPFrame":
        if self._sealed:
            raise EncodingError("La trama IPP ya estaba sellada")
        self._sealed = True
        return self

    @property
    def data(self) -> bytes:
        if not self._sealed:
            raise EncodingError("La trama IPP no está sellada todavía")
        return bytes(self._buffer[:self._position])

    def __len__(self):
        return self._position

    def __bytes__(self):
        return self.data

    def __repr__(self):
        state = "sealed" if self._sealed else "writing"
        return f"IPPFrame(length={self._position}, state={state})"

# Escribe un campo [tag][len nombre][nombre][len valor][valor]; nombre None = continuación
def _write_field(frame: IPPFrame, tag: IPPTag, name: Optional[str], value_bytes: bytes) -> IPPFrame:
    name_bytes = name.encode('utf-8') if name else b""

    if len(name_bytes) > MAX_FIELD_LENGTH:
        raise EncodingError(f"Nombre de atributo demasiado largo: {len(name_bytes)} bytes")
    if len(value_bytes) > MAX_FIELD_LENGTH:
        raise EncodingError(f"Valor de '{name}' demasiado largo: {len(value_bytes)} bytes")

    frame.write(bytes([tag]))
    frame.write(struct.pack(">H", len(name_bytes)))
    frame.write(name_bytes)
    frame.write(struct.pack(">H", len(value_bytes)))
    frame.write(value_bytes)
    return frame

def _write_string(frame: IPPFrame, tag: IPPTag, name: Optional[str], value: Optional[str]) -> IPPFrame:
    if value is None:
        return frame
    return _write_field(frame, tag, name, str(value).encode('utf-8'))

# Encabezado de operación: versión, operation-id, request-id y apertura del grupo de operación
# con attributes-charset y attributes-natural-language
def encode_operation(frame: IPPFrame, operation_id: int, request_id: Optional[int] = None,
                     version: Optional[Tuple[int, int]] = None) -> IPPFrame:
    if not 0 <= operation_id <= 0xFFFF:
        raise EncodingError(f"operation-id fuera de rango: {operation_id}")

    request_id = next_request_id() if request_id is None else request_id
    if not 0 <= request_id <= 0xFFFFFFFF:
        raise EncodingError(f"request-id fuera de rango: {request_id}")

    major, minor = version or settings.get_version_tuple()
    frame.write(struct.pack(">BBHI", major, minor, operation_id, request_id))
    frame.write(bytes([IPPTag.OPERATION_ATTRIBUTES_TAG]))

    encode_charset(frame, "attributes-charset", settings.IPP_CHARSET)
    encode_natural_language(frame, "attributes-natural-language", settings.IPP_NATURAL_LANGUAGE)

    logger.debug(
        f"Encabezado IPP: version={major}.{minor}, operacion=0x{operation_id:04x}, request_id={request_id}"
    )
    return frame

def encode_charset(frame: IPPFrame, name: Optional[str], value: Optional[str]) -> IPPFrame:
    return _write_string(frame, IPPTag.CHARSET, name, value)

def encode_natural_language(frame: IPPFrame, name: Optional[str], value: Optional[str]) -> IPPFrame:
    return _write_string(frame, IPPTag.NATURAL_LANGUAGE, name, value)

def encode_uri(frame: IPPFrame, name: Optional[str], value: Optional[str]) -> IPPFrame:
    return _write_string(frame, IPPTag.URI, name, value)

def encode_text(frame: IPPFrame, name: Optional[str], value: Optional[str]) -> IPPFrame:
    return _write_string(frame, IPPTag.TEXT_WITHOUT_LANGUAGE, name, value)

def encode_name(frame: IPPFrame, name: Optional[str], value: Optional[str]) -> IPPFrame:
    return _write_string(frame, IPPTag.NAME_WITHOUT_LANGUAGE, name, value)

def encode_keyword(frame: IPPFrame, name: Optional[str], value: Optional[str]) -> IPPFrame:
    return _write_string(frame, IPPTag.KEYWORD, name, value)

def encode_integer(frame: IPPFrame, name: Optional[str], value: Optional[int]) -> IPPFrame:
    if value is None:
        return frame
    if isinstance(value, bool) or not INT32_MIN <= value <= INT32_MAX:
        raise EncodingError(f"Entero fuera de rango para '{name}': {value}")
    return _write_field(frame, IPPTag.INTEGER, name, struct.pack(">i", value))

# Cierra los atributos con end-of-attributes (0x03)
def encode_end(frame: IPPFrame) -> IPPFrame:
    return frame.write(bytes([IPPTag.END_OF_ATTRIBUTES_TAG]))
