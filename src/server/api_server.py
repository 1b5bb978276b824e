"""
HTTP/JSON API server in front of the key-value database.
Implements the start/stop/is_stop_requested contract driven by the supervisor.
"""

import json
import logging
import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from bootstrap.options import DatabaseOptions, ServerOptions
from config import MAX_REQUEST_SIZE
from storage.database import Database
from utils.fs import absolute_path


logger = logging.getLogger(__name__)


class BadRequest(Exception):
    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        super().__init__(message)


class KVAPIHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the key-value API"""

    server: '_KVHTTPServer'

    @property
    def db(self) -> Database:
        return self.server.db

    def _route(self, routes: Dict[str, Any]) -> None:
        handler = routes.get(urlparse(self.path).path)
        if handler is None:
            self._send_error_response(404, "Not found")
            return
        try:
            handler()
        except BadRequest as e:
            self._send_error_response(e.status_code, str(e))
        except Exception as e:
            logger.exception("Error while serving %s %s", self.command, self.path)
            self._send_error_response(500, f"Internal server error: {e}")

    def do_PUT(self) -> None:
        self._route({'/kv/put': self._handle_put})

    def do_GET(self) -> None:
        self._route({
            '/kv/get': self._handle_get,
            '/kv/range': self._handle_range_scan,
            '/health': self._handle_health_check,
            '/stats': self._handle_stats,
        })

    def do_DELETE(self) -> None:
        self._route({'/kv/delete': self._handle_delete})

    def _read_json(self, *required: str) -> Dict[str, Any]:
        """Read the JSON body and check that the required fields are present"""
        content_length = int(self.headers.get('Content-Length', 0))
        if content_length > MAX_REQUEST_SIZE:
            raise BadRequest(413, "Request too large")

        body = self.rfile.read(content_length)
        try:
            data = json.loads(body.decode('utf-8'))
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise BadRequest(400, "Invalid JSON") from None

        if not isinstance(data, dict) or any(name not in data for name in required):
            raise BadRequest(400, f"{' and '.join(required)} required")
        for name in required:
            if not isinstance(data[name], str):
                raise BadRequest(400, f"{name} must be a string")
        return data

    def _handle_put(self) -> None:
        data = self._read_json('key', 'value')
        self.db.put(data['key'].encode('utf-8'), data['value'].encode('utf-8'))
        self._send_json_response(200, {"status": "success", "message": "Key stored successfully"})

    def _handle_get(self) -> None:
        key = self._read_json('key')['key']
        value = self.db.get(key.encode('utf-8'))
        if value is None:
            self._send_json_response(404, {"status": "not_found", "key": key,
                                           "message": "Key not found"})
            return
        self._send_json_response(200, {"status": "success", "key": key,
                                       "value": value.decode('utf-8')})

    def _handle_delete(self) -> None:
        key = self._read_json('key')['key']
        if self.db.delete(key.encode('utf-8')):
            self._send_json_response(200, {"status": "success", "message": "Key deleted successfully"})
        else:
            self._send_json_response(404, {"status": "not_found", "message": "Key not found"})

    def _handle_range_scan(self) -> None:
        data = self._read_json('start', 'end')
        results = [
            {"key": key.decode('utf-8'), "value": value.decode('utf-8')}
            for key, value in self.db.range_scan(data['start'].encode('utf-8'),
                                                 data['end'].encode('utf-8'))
        ]
        self._send_json_response(200, {"status": "success", "count": len(results),
                                       "results": results})

    def _handle_health_check(self) -> None:
        self._send_json_response(200, {"status": "healthy", "service": "KVServer"})

    def _handle_stats(self) -> None:
        self._send_json_response(200, {"status": "success", "engine": self.db.get_stats()})

    def _send_json_response(self, status_code: int, data: Dict[str, Any]) -> None:
        response_body = json.dumps(data, indent=2).encode('utf-8')

        self.send_response(status_code)
        self.send_header('Content-Type', 'application/json')
        self.send_header('Content-Length', str(len(response_body)))
        self.end_headers()
        self.wfile.write(response_body)

    def _send_error_response(self, status_code: int, message: str) -> None:
        self._send_json_response(status_code, {"status": "error", "code": status_code,
                                               "message": message})

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)


class _KVHTTPServer(ThreadingHTTPServer):
    """Threading HTTP server bounded to num_threads concurrent requests"""

    daemon_threads = True

    def __init__(self, db: Database, options: ServerOptions):
        self.db = db
        self.recv_buffer_size = options.recv_socket_buffer_size
        self.request_queue_size = options.listen_backlog
        self._slots = threading.BoundedSemaphore(max(1, options.num_threads))
        super().__init__((options.interface_address, options.interface_port), KVAPIHandler)

    def get_request(self):
        request, client_address = super().get_request()
        if self.recv_buffer_size:
            request.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, self.recv_buffer_size)
        return request, client_address

    def process_request(self, request, client_address):
        self._slots.acquire()
        try:
            super().process_request(request, client_address)
        except Exception:
            self._slots.release()
            raise

    def process_request_thread(self, request, client_address):
        try:
            super().process_request_thread(request, client_address)
        finally:
            self._slots.release()


class KVServer:
    """HTTP key-value server owning its database"""

    def __init__(self):
        self.db: Optional[Database] = None
        self.httpd: Optional[_KVHTTPServer] = None
        self._serve_thread: Optional[threading.Thread] = None
        self._running = False
        self._stop_requested = threading.Event()

    @property
    def address(self):
        return self.httpd.server_address if self.httpd else None

    def start(self, server_options: ServerOptions, db_options: DatabaseOptions,
              db_path: str) -> None:
        """
        Open the database and start serving in a background thread.

        Raises:
            DatabaseError: The database could not be opened
            OSError: The listening socket could not be bound
        """
        if self._running:
            return

        self.db = Database(absolute_path(db_path), db_options)
        try:
            self.httpd = _KVHTTPServer(self.db, server_options)
        except OSError:
            self.db.close()
            raise

        self._running = True
        self._serve_thread = threading.Thread(target=self._serve, name='http-server', daemon=True)
        self._serve_thread.start()

        host, port = self.httpd.server_address[:2]
        logger.info("KVServer listening on http://%s:%d, database at %s", host, port, self.db.path)

    def _serve(self) -> None:
        try:
            self.httpd.serve_forever()
        except Exception:
            logger.exception("HTTP server failed")
        finally:
            if self._running:
                self._stop_requested.set()

    def is_stop_requested(self) -> bool:
        return self._stop_requested.is_set()

    def stop(self) -> None:
        """Stop serving and close the database; blocks until done"""
        if not self._running:
            return
        self._running = False

        self.httpd.shutdown()
        self.httpd.server_close()
        self._serve_thread.join()
        self.db.close()
        logger.info("KVServer stopped")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
