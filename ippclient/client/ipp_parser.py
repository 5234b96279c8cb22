from typing import Dict, List, Any, Optional, Union
from enum import IntEnum
import logging
import struct
import io

from .errors import DecodingError
from .ipp_encoder import IPPTag

logger = logging.getLogger(__name__)

# Etiquetas fuera de banda: el atributo existe pero no lleva valor
OUT_OF_BAND_TAGS = (
    IPPTag.UNSUPPORTED,
    IPPTag.DEFAULT,
    IPPTag.UNKNOWN,
    IPPTag.NO_VALUE,
    IPPTag.NOT_SETTABLE,
    IPPTag.DELETE_ATTRIBUTE,
    IPPTag.ADMIN_DEFINE,
)

STRING_TAGS = (
    IPPTag.TEXT_WITHOUT_LANGUAGE,
    IPPTag.NAME_WITHOUT_LANGUAGE,
    IPPTag.KEYWORD,
    IPPTag.URI,
    IPPTag.URI_SCHEME,
    IPPTag.CHARSET,
    IPPTag.NATURAL_LANGUAGE,
    IPPTag.MIME_MEDIA_TYPE,
    IPPTag.MEMBER_ATTR_NAME,
)

# Nombre legible de una etiqueta; las no registradas se muestran en hexadecimal
def tag_name(tag: Union[IPPTag, int]) -> str:
    return tag.name if isinstance(tag, IPPTag) else f"0x{tag:02x}"

# Enumeración de códigos de estado IPP
class IPPStatusCode(IntEnum):
    # Éxito
    SUCCESSFUL_OK = 0x0000
    SUCCESSFUL_OK_IGNORED_OR_SUBSTITUTED_ATTRIBUTES = 0x0001
    SUCCESSFUL_OK_CONFLICTING_ATTRIBUTES = 0x0002

    # Informativo
    INFORMATIONAL_OK = 0x0100

    # Redirección
    REDIRECTION_OTHER_SITE = 0x0200

    # Errores del cliente
    CLIENT_ERROR_BAD_REQUEST = 0x0400
    CLIENT_ERROR_FORBIDDEN = 0x0401
    CLIENT_ERROR_NOT_AUTHENTICATED = 0x0402
    CLIENT_ERROR_NOT_AUTHORIZED = 0x0403
    CLIENT_ERROR_NOT_POSSIBLE = 0x0404
    CLIENT_ERROR_TIMEOUT = 0x0405
    CLIENT_ERROR_NOT_FOUND = 0x0406
    CLIENT_ERROR_GONE = 0x0407
    CLIENT_ERROR_REQUEST_ENTITY_TOO_LARGE = 0x0408
    CLIENT_ERROR_REQUEST_VALUE_TOO_LONG = 0x0409
    CLIENT_ERROR_DOCUMENT_FORMAT_NOT_SUPPORTED = 0x040a
    CLIENT_ERROR_ATTRIBUTES_OR_VALUES_NOT_SUPPORTED = 0x040b
    CLIENT_ERROR_URI_SCHEME_NOT_SUPPORTED = 0x040c
    CLIENT_ERROR_CHARSET_NOT_SUPPORTED = 0x040d
    CLIENT_ERROR_CONFLICTING_ATTRIBUTES = 0x040e
    CLIENT_ERROR_COMPRESSION_NOT_SUPPORTED = 0x040f
    CLIENT_ERROR_COMPRESSION_ERROR = 0x0410
    CLIENT_ERROR_DOCUMENT_FORMAT_ERROR = 0x0411
    CLIENT_ERROR_DOCUMENT_ACCESS_ERROR = 0x0412

    # Errores del servidor
    SERVER_ERROR_INTERNAL_ERROR = 0x0500
    SERVER_ERROR_OPERATION_NOT_SUPPORTED = 0x0501
    SERVER_ERROR_SERVICE_UNAVAILABLE = 0x0502
    SERVER_ERROR_VERSION_NOT_SUPPORTED = 0x0503
    SERVER_ERROR_DEVICE_ERROR = 0x0504
    SERVER_ERROR_TEMPORARY_ERROR = 0x0505
    SERVER_ERROR_NOT_ACCEPTING_JOBS = 0x0506
    SERVER_ERROR_BUSY = 0x0507
    SERVER_ERROR_JOB_CANCELED = 0x0508
    SERVER_ERROR_MULTIPLE_DOCUMENT_JOBS_NOT_SUPPORTED = 0x0509

# Representa un atributo IPP con nombre, etiqueta y uno o más valores
class IPPAttribute:

    def __init__(self, name: str, tag: Union[IPPTag, int], value: Any):
        self.name = name
        self.tag = tag
        self.values: List[Any] = [value]

    # Primer valor (atributos de un solo valor)
    @property
    def value(self) -> Any:
        return self.values[0] if self.values else None

    def add_value(self, value: Any):
        self.values.append(value)

    def __repr__(self):
        return f"IPPAttribute(name='{self.name}', tag={tag_name(self.tag)}, values={self.values})"

# Grupo de atributos delimitado por su etiqueta (operación, trabajo, impresora...)
class IPPAttributeGroup:

    def __init__(self, tag: int):
        self.tag = tag
        self.attributes: Dict[str, IPPAttribute] = {}

    def __getitem__(self, name: str) -> IPPAttribute:
        return self.attributes[name]

    def __contains__(self, name: str) -> bool:
        return name in self.attributes

    def get(self, name: str, default=None):
        return self.attributes.get(name, default)

    def __repr__(self):
        return f"IPPAttributeGroup(tag=0x{self.tag:02x}, attributes={list(self.attributes)})"

# Respuesta IPP decodificada junto con la línea de estado HTTP de la llamada
class IPPResponse:

    def __init__(self, raw: bytes = b""):
        self.version_major: Optional[int] = None
        self.version_minor: Optional[int] = None
        self.status_code: Optional[Union[IPPStatusCode, int]] = None
        self.request_id: Optional[int] = None
        self.attribute_groups: List[IPPAttributeGroup] = []
        self.document_data: bytes = b""
        self.raw: bytes = raw
        self.http_status_line: Optional[str] = None
        self.http_status_code: Optional[int] = None

    def _groups(self, tag: IPPTag) -> List[IPPAttributeGroup]:
        return [group for group in self.attribute_groups if group.tag == tag]

    def _first_group(self, tag: IPPTag) -> Dict[str, IPPAttribute]:
        groups = self._groups(tag)
        return groups[0].attributes if groups else {}

    @property
    def operation_attributes(self) -> Dict[str, IPPAttribute]:
        return self._first_group(IPPTag.OPERATION_ATTRIBUTES_TAG)

    @property
    def printer_attributes(self) -> Dict[str, IPPAttribute]:
        return self._first_group(IPPTag.PRINTER_ATTRIBUTES_TAG)

    @property
    def unsupported_attributes(self) -> Dict[str, IPPAttribute]:
        return self._first_group(IPPTag.UNSUPPORTED_ATTRIBUTES_TAG)

    # Un diccionario por cada grupo de trabajo (Get-Jobs devuelve varios)
    @property
    def job_attributes(self) -> List[Dict[str, IPPAttribute]]:
        return [group.attributes for group in self._groups(IPPTag.JOB_ATTRIBUTES_TAG)]

    def is_successful(self) -> bool:
        return self.status_code is not None and self.status_code < 0x0100

    def __repr__(self):
        return (
            f"IPPResponse(status_code={self.status_code!r}, request_id={self.request_id}, "
            f"groups={len(self.attribute_groups)}, http_status_line={self.http_status_line!r})"
        )

# Analizador de respuestas IPP
class IPPParser:

    # Parsea una respuesta IPP desde bytes y devuelve un IPPResponse
    # Un cuerpo vacío produce una respuesta vacía, no un error
    @staticmethod
    def parse_response(data: bytes) -> IPPResponse:
        response = IPPResponse(raw=data)
        if not data:
            logger.debug("Respuesta IPP vacía")
            return response

        # Verificar tamaño mínimo del encabezado (8 bytes)
        if len(data) < 8:
            raise DecodingError("Mensaje IPP demasiado corto", data)

        stream = io.BytesIO(data)

        header = struct.unpack(">BBHI", stream.read(8))
        response.version_major, response.version_minor, status, response.request_id = header
        try:
            response.status_code = IPPStatusCode(status)
        except ValueError:
            logger.warning(f"Código de estado IPP desconocido: 0x{status:04x}")
            response.status_code = status

        logger.debug(
            f"Parseando respuesta IPP: version={response.version_major}.{response.version_minor}, "
            f"estado=0x{status:04x}, request_id={response.request_id}"
        )

        current_group: Optional[IPPAttributeGroup] = None
        last_attribute: Optional[IPPAttribute] = None

        while True:
            tag_bytes = stream.read(1)
            if not tag_bytes:
                logger.debug("Respuesta IPP sin end-of-attributes")
                break

            tag = ord(tag_bytes)

            if tag == IPPTag.END_OF_ATTRIBUTES_TAG:
                response.document_data = stream.read()
                break

            # Delimitadores de grupo
            if tag < 0x10:
                current_group = IPPAttributeGroup(tag)
                response.attribute_groups.append(current_group)
                last_attribute = None
                logger.debug(f"Delimitador de grupo: {tag}")
                continue

            if current_group is None:
                raise DecodingError(f"Atributo con etiqueta 0x{tag:02x} fuera de un grupo", data)

            name, value_tag, value = IPPParser._parse_attribute(stream, IPPParser._value_tag(tag), data)

            if name:
                last_attribute = IPPAttribute(name, value_tag, value)
                current_group.attributes[name] = last_attribute
            elif last_attribute is not None:
                # Campo de continuación: valor adicional del atributo anterior
                last_attribute.add_value(value)
            else:
                raise DecodingError("Valor de continuación sin atributo previo", data)

        return response

    # Etiqueta de valor; las no registradas se conservan como entero y su valor como bytes
    @staticmethod
    def _value_tag(tag: int) -> Union[IPPTag, int]:
        try:
            return IPPTag(tag)
        except ValueError:
            logger.debug(f"Etiqueta de valor no registrada: 0x{tag:02x}")
            return tag

    # Lee un campo de atributo; devuelve (nombre, etiqueta, valor decodificado)
    @staticmethod
    def _parse_attribute(stream: io.BytesIO, tag: Union[IPPTag, int], data: bytes):
        name_length = IPPParser._read_length(stream, data)
        name_bytes = IPPParser._read_exact(stream, name_length, data)
        value_length = IPPParser._read_length(stream, data)
        value_bytes = IPPParser._read_exact(stream, value_length, data)

        try:
            name = name_bytes.decode('utf-8')
        except UnicodeDecodeError as e:
            raise DecodingError(f"Nombre de atributo no es UTF-8: {e}", data) from e

        return name, tag, IPPParser._parse_value(tag, value_bytes)

    @staticmethod
    def _read_length(stream: io.BytesIO, data: bytes) -> int:
        return struct.unpack(">H", IPPParser._read_exact(stream, 2, data))[0]

    @staticmethod
    def _read_exact(stream: io.BytesIO, length: int, data: bytes) -> bytes:
        chunk = stream.read(length)
        if len(chunk) < length:
            raise DecodingError(
                f"Respuesta IPP truncada: se esperaban {length} bytes, hay {len(chunk)}", data
            )
        return chunk

    # Parsea valor según etiqueta (enteros, booleanos, textos, binarios, etc.)
    @staticmethod
    def _parse_value(tag: Union[IPPTag, int], value_bytes: bytes) -> Any:
        if tag in OUT_OF_BAND_TAGS:
            return None

        try:
            if tag == IPPTag.INTEGER or tag == IPPTag.ENUM:
                return struct.unpack(">i", value_bytes)[0]
            elif tag == IPPTag.BOOLEAN:
                return value_bytes != b"\x00"
            elif tag in STRING_TAGS:
                return value_bytes.decode('utf-8')
            elif tag in (IPPTag.TEXT_WITH_LANGUAGE, IPPTag.NAME_WITH_LANGUAGE):
                # (idioma, texto), cada uno con su longitud de 2 bytes
                lang_length = struct.unpack(">H", value_bytes[:2])[0]
                language = value_bytes[2:2 + lang_length].decode('utf-8')
                text_start = 2 + lang_length
                text_length = struct.unpack(">H", value_bytes[text_start:text_start + 2])[0]
                text = value_bytes[text_start + 2:text_start + 2 + text_length].decode('utf-8')
                return language, text
            elif tag == IPPTag.DATETIME:
                # RFC 2579 DateAndTime (año, mes, día, hora, min, seg, decisegundos)
                return struct.unpack(">HBBBBBB", value_bytes[:8])
            elif tag == IPPTag.RESOLUTION:
                # Resolución (cross-feed, feed, unidades)
                return struct.unpack(">iib", value_bytes[:9])
            elif tag == IPPTag.RANGE_OF_INTEGER:
                # Rango (inferior, superior)
                return struct.unpack(">ii", value_bytes[:8])
            else:
                return value_bytes

        except (struct.error, UnicodeDecodeError) as e:
            logger.warning(f"Error al parsear valor para tag {tag_name(tag)}: {e}")
            return value_bytes
