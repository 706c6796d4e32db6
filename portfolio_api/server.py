#!/usr/bin/env python3
"""
Portfolio API Server
Flask server for flat-file posts and projects with uploaded media
"""

import sys
import signal
import socket
import logging

from dotenv import load_dotenv
from flask import Flask, jsonify, request, send_from_directory
from flask_cors import CORS
from werkzeug.exceptions import RequestEntityTooLarge

from . import __version__
from .config import load_settings
from .content_store import ContentStore
from .errors import ConfigError, ContentStoreError, MailerError
from .mailer import Mailer
from .media import MediaInput, save_upload

logger = logging.getLogger(__name__)

UPLOADS_URL = '/uploads'


def create_app(settings=None):
    """Build the Flask app with its content store and mailer"""
    if settings is None:
        settings = load_settings()

    app = Flask(__name__)
    app.config['MAX_CONTENT_LENGTH'] = settings.max_content_length
    app.json.sort_keys = False
    CORS(app, origins=settings.cors_origins)

    store = ContentStore(settings.data_dir, settings.upload_dir, uploads_url=UPLOADS_URL)
    mailer = Mailer(settings)
    app.extensions['content_store'] = store
    app.extensions['mailer'] = mailer

    def request_fields():
        if request.is_json:
            data = request.get_json(silent=True)
            return data if isinstance(data, dict) else {}
        return request.form.to_dict()

    def request_media(fields):
        upload = request.files.get('media')
        if upload and upload.filename:
            return save_upload(upload, store.upload_dir)
        return MediaInput.from_value(fields.get('media'))

    @app.errorhandler(ContentStoreError)
    def handle_store_error(e):
        if e.status_code >= 500:
            logger.error(f"Storage error on {request.method} {request.path}: {e}")
        return jsonify({
            'success': False,
            'error': str(e)
        }), e.status_code

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(e):
        return jsonify({
            'success': False,
            'error': f'Request body exceeds {settings.max_content_length} bytes'
        }), 413

    # Health check
    @app.route('/')
    def index():
        return '✅ Backend running successfully', 200, {'Content-Type': 'text/plain; charset=utf-8'}

    @app.route('/api/status')
    def api_status():
        """Health check endpoint"""
        return jsonify({
            'status': 'ok',
            'message': 'Portfolio API is running',
            'version': __version__,
            'data_dir': str(store.data_dir)
        })

    # Static media
    @app.route(f'{UPLOADS_URL}/<path:filename>')
    def serve_upload(filename):
        return send_from_directory(store.upload_dir.resolve(), filename)

    # Posts and projects share one set of handlers
    def register_collection(name):
        singular = store.collection(name).singular

        def list_records():
            return jsonify(store.list_all(name))

        def get_record(record_id):
            return jsonify(store.get(name, record_id))

        def create_record():
            fields = request_fields()
            media = request_media(fields)
            record = store.create(name, fields, media)
            return jsonify(record), 201

        def update_record(record_id):
            fields = request_fields()
            media = request_media(fields)
            record = store.update(name, record_id, fields, media)
            return jsonify(record)

        def delete_record(record_id):
            store.delete(name, record_id)
            return jsonify({
                'success': True,
                'message': f'{singular} deleted successfully',
                'id': record_id
            })

        app.add_url_rule(f'/{name}', f'list_{name}', list_records, methods=['GET'])
        app.add_url_rule(f'/{name}', f'create_{name}', create_record, methods=['POST'])
        app.add_url_rule(f'/{name}/<int:record_id>', f'get_{name}', get_record, methods=['GET'])
        app.add_url_rule(f'/{name}/<int:record_id>', f'update_{name}', update_record, methods=['PUT'])
        app.add_url_rule(f'/{name}/<int:record_id>', f'delete_{name}', delete_record, methods=['DELETE'])

    register_collection('posts')
    register_collection('projects')

    # Contact form
    @app.route('/send', methods=['POST'])
    def send_contact():
        data = request_fields()
        name = str(data.get('name') or '').strip()
        email = str(data.get('email') or '').strip()
        message = str(data.get('message') or '').strip()

        if not (name and email and message):
            return jsonify({
                'success': False,
                'error': 'All fields are required'
            }), 400

        try:
            mailer.send(name, email, message)
        except MailerError as e:
            return jsonify({
                'success': False,
                'error': str(e)
            }), 500

        return jsonify({
            'success': True,
            'message': 'Email sent successfully'
        })

    return app


def check_port_available(port):
    """Check if port is available"""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        return s.connect_ex(('localhost', port)) != 0


def signal_handler(sig, frame):
    logger.info('🛑 Gracefully shutting down server...')
    sys.exit(0)


def main():
    load_dotenv()

    try:
        settings = load_settings()
    except ConfigError as e:
        print(f"❌ Invalid configuration: {e}")
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    if not check_port_available(settings.port):
        logger.error(f"❌ Port {settings.port} is already in use!")
        logger.info("🔧 Try:")
        logger.info(f"   1. Stop existing process: lsof -ti:{settings.port} | xargs kill")
        logger.info(f"   2. Use different port: PORT=8080 portfolio-api")
        sys.exit(1)

    app = create_app(settings)

    print(f"""
🚀 Portfolio API Server Starting...
========================================
📁 Data directory:    {settings.data_dir}
🖼️  Uploads directory: {settings.upload_dir}
🌐 Local URL: http://localhost:{settings.port}
✉️  Mailer: {'configured' if app.extensions['mailer'].is_configured() else 'not configured'}

⏹️  Press Ctrl+C to stop the server
========================================
    """)

    try:
        app.run(
            host=settings.host,
            port=settings.port,
            debug=False,
            threaded=True,
            use_reloader=False
        )
    except KeyboardInterrupt:
        logger.info("🛑 Server stopped by user")


if __name__ == '__main__':
    main()
