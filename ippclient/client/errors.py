from typing import Optional

# Error base del cliente IPP
class IPPClientError(Exception):
    pass

# Fallo al construir la trama (invariante del buffer, valor fuera de rango)
class EncodingError(IPPClientError):
    pass

# Entrada inválida detectada antes de cualquier actividad de red
class InputError(EncodingError):
    pass

class TransportError(IPPClientError):

    def __init__(self, message: str, uri: Optional[str] = None):
        super().__init__(message)
        self.uri = uri

# La respuesta no se pudo decodificar; se conservan los bytes para diagnóstico
class DecodingError(IPPClientError):

    def __init__(self, message: str, data: bytes = b""):
        super().__init__(message)
        self.data = data

# Fallo a nivel de operación; conserva la causa original
class OperationError(IPPClientError):

    def __init__(self, message: str, cause: Exception, operation_id: Optional[int] = None):
        super().__init__(message)
        self.cause = cause
        self.operation_id = operation_id

    def __repr__(self):
        return f"OperationError(operation_id={self.operation_id}, cause={self.cause!r})"
