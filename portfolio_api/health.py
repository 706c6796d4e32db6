#!/usr/bin/env python3
"""
Bare health-check server
Binds a port for hosting platforms and answers 200 on / and /health
"""

import http.server
import logging
import os
import sys
from urllib.parse import urlparse

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

HEALTH_PATHS = ('/', '/health')
HEALTH_MESSAGE = 'Backend running successfully'


class HealthRequestHandler(http.server.BaseHTTPRequestHandler):
    server_version = 'PortfolioHealth/1.0'

    def do_GET(self):
        self._respond(include_body=True)

    def do_HEAD(self):
        self._respond(include_body=False)

    def _respond(self, include_body):
        path = urlparse(self.path).path
        if path in HEALTH_PATHS:
            status, body = 200, HEALTH_MESSAGE
        else:
            status, body = 404, 'Not found'

        payload = body.encode('utf-8')
        self.send_response(status)
        self.send_header('Content-Type', 'text/plain; charset=utf-8')
        self.send_header('Content-Length', str(len(payload)))
        self.end_headers()
        if include_body:
            self.wfile.write(payload)

    def log_message(self, format, *args):
        logger.info(f"{self.address_string()} - {format % args}")


def make_server(port, host='0.0.0.0'):
    return http.server.ThreadingHTTPServer((host, port), HealthRequestHandler)


def serve(port, host='0.0.0.0'):
    """Run the health server until interrupted"""
    with make_server(port, host) as httpd:
        logger.info(f"🚀 Health server running on port {httpd.server_address[1]}")
        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            logger.info("🛑 Health server stopped by user")


def main():
    load_dotenv()

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    try:
        port = int(os.environ.get('PORT', 10000))
    except ValueError:
        logger.error(f"❌ Invalid PORT value: {os.environ.get('PORT')!r}")
        sys.exit(1)
    serve(port)


if __name__ == '__main__':
    main()
