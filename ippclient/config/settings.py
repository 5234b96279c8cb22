from dotenv import load_dotenv
import os

# Cargar variables desde archivo .env si existe
load_dotenv()

class IPPClientSettings:

    # Configuración de conexión
    IPP_PORT = int(os.getenv('IPP_PORT', 631))  # Puerto estándar IPP
    IPP_CONNECT_TIMEOUT = float(os.getenv('IPP_CONNECT_TIMEOUT', 10))   # Segundos para obtener la conexión
    IPP_RESPONSE_TIMEOUT = float(os.getenv('IPP_RESPONSE_TIMEOUT', 10)) # Segundos esperando respuesta
    IPP_EXPECT_CONTINUE = os.getenv('IPP_EXPECT_CONTINUE', 'true').lower() in ['true', '1', 'yes']

    # Configuración IPP
    IPP_VERSION = os.getenv('IPP_VERSION', "1.1")
    IPP_CHARSET = "utf-8"
    IPP_NATURAL_LANGUAGE = os.getenv('IPP_NATURAL_LANGUAGE', "en")
    IPP_MIME_TYPE = "application/ipp"

    # Tamaños de buffer
    IPP_FRAME_BUFFER_SIZE = int(os.getenv('IPP_FRAME_BUFFER_SIZE', 8192))      # Capacidad inicial de la trama
    IPP_DOCUMENT_CHUNK_SIZE = int(os.getenv('IPP_DOCUMENT_CHUNK_SIZE', 8192))  # Lectura del documento por bloques

    # Esquemas de impresión y su esquema de transporte HTTP equivalente
    SCHEME_MAP = {
        'ipp': 'http',
        'ipps': 'https',
        'http': 'http',
        'https': 'https',
    }

    # Configuración de registro/logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    LOG_FILE = os.getenv('LOG_FILE', None)  # Ninguno = salida a consola

    # Información de la versión
    VERSION = "1.0.0"

    @classmethod
    def get_version_tuple(cls):
        major, _, minor = cls.IPP_VERSION.partition('.')
        return int(major), int(minor or 0)

    @classmethod
    def get_timeouts(cls):
        return cls.IPP_CONNECT_TIMEOUT, cls.IPP_RESPONSE_TIMEOUT

    @classmethod
    def validate_config(cls):
        errors = []

        if cls.IPP_PORT < 1 or cls.IPP_PORT > 65535:
            errors.append("IPP_PORT must be between 1 and 65535")

        if cls.IPP_CONNECT_TIMEOUT <= 0:
            errors.append("IPP_CONNECT_TIMEOUT must be greater than 0")

        if cls.IPP_RESPONSE_TIMEOUT <= 0:
            errors.append("IPP_RESPONSE_TIMEOUT must be greater than 0")

        try:
            major, minor = cls.get_version_tuple()
            if not (0 < major < 256 and 0 <= minor < 256):
                errors.append("IPP_VERSION must look like '1.1' or '2.0'")
        except ValueError:
            errors.append("IPP_VERSION must look like '1.1' or '2.0'")

        if cls.IPP_FRAME_BUFFER_SIZE < 64:
            errors.append("IPP_FRAME_BUFFER_SIZE should be at least 64 bytes")

        if cls.IPP_DOCUMENT_CHUNK_SIZE < 1:
            errors.append("IPP_DOCUMENT_CHUNK_SIZE must be positive")

        return errors

# Cargar configuración por defecto
settings = IPPClientSettings()
