from http.server import BaseHTTPRequestHandler, HTTPServer
import threading
import struct
import io

import pytest

from ippclient.client.ipp_encoder import IPPTag

# Escribe un atributo IPP crudo; nombre vacío = campo de continuación
def write_attribute(stream: io.BytesIO, tag: int, name: str, value: bytes):
    name_bytes = name.encode('utf-8')
    stream.write(bytes([tag]))
    stream.write(len(name_bytes).to_bytes(2, 'big'))
    stream.write(name_bytes)
    stream.write(len(value).to_bytes(2, 'big'))
    stream.write(value)

# Construye una respuesta IPP: groups = [(tag_grupo, [(tag, nombre, valor_bytes), ...]), ...]
def build_response(status_code: int = 0x0000, request_id: int = 1, groups=None) -> bytes:
    stream = io.BytesIO()
    stream.write(struct.pack(">BBHI", 1, 1, status_code, request_id))
    for group_tag, attributes in groups or []:
        stream.write(bytes([group_tag]))
        for tag, name, value in attributes:
            write_attribute(stream, tag, name, value)
    stream.write(bytes([IPPTag.END_OF_ATTRIBUTES_TAG]))
    return stream.getvalue()

# Lee los campos del grupo de operación de una trama de solicitud: [(tag, nombre, valor_bytes)]
def read_request_fields(data: bytes):
    fields = []
    pos = 9
    while data[pos] != IPPTag.END_OF_ATTRIBUTES_TAG:
        tag = data[pos]
        name_length = struct.unpack(">H", data[pos + 1:pos + 3])[0]
        name = data[pos + 3:pos + 3 + name_length].decode('utf-8')
        pos += 3 + name_length
        value_length = struct.unpack(">H", data[pos:pos + 2])[0]
        value = data[pos + 2:pos + 2 + value_length]
        pos += 2 + value_length
        fields.append((tag, name, value))
    return fields

# Lee un cuerpo HTTP con Content-Length o Transfer-Encoding: chunked
def read_http_body(handler: BaseHTTPRequestHandler) -> bytes:
    if handler.headers.get('Transfer-Encoding', '').lower() == 'chunked':
        body = b""
        while True:
            size = int(handler.rfile.readline().strip().split(b';')[0], 16)
            if size == 0:
                handler.rfile.readline()
                break
            body += handler.rfile.read(size)
            handler.rfile.readline()
        return body
    length = int(handler.headers.get('Content-Length', 0))
    return handler.rfile.read(length)

@pytest.fixture
def response_builder():
    return build_response

@pytest.fixture
def request_fields():
    return read_request_fields

# Servidor HTTP local; el test define cómo responder a cada POST
@pytest.fixture
def http_server():
    received = []

    class Handler(BaseHTTPRequestHandler):
        responder = None

        def do_POST(self):
            body = read_http_body(self)
            received.append({'path': self.path, 'headers': dict(self.headers), 'body': body})
            status, reason, payload = Handler.responder(body)
            self.send_response(status, reason)
            self.send_header('Content-Type', 'application/ipp')
            self.send_header('Content-Length', str(len(payload)))
            self.end_headers()
            self.wfile.write(payload)

        def log_message(self, format, *args):
            pass

    server = HTTPServer(('127.0.0.1', 0), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    server.handler_class = Handler
    server.received = received
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()
