"""
Flask application for HTTP API.

Provides:
- GET/POST /attendance: Read and append attendance records
- GET /attendance/export: CSV download of the attendance log
- GET/POST /identities: List and register identities
- GET /health: Service health check
"""

from datetime import datetime, timezone

from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from .config import Config
from .errors import InvalidInput, StorageFailure
from .export import export_csv, export_filename
from .ledger import AttendanceLedger
from .logging_config import get_logger
from .models import format_timestamp
from .recognition.registry import IdentityRegistry
from .utils.cache import save_registry

logger = get_logger(__name__)


def create_app(
    config: Config,
    ledger: AttendanceLedger,
    registry: IdentityRegistry,
) -> Flask:
    """
    Create and configure Flask application.
    
    Args:
        config: Service configuration
        ledger: Attendance ledger to serve
        registry: Identity registry to serve
    
    Returns:
        Configured Flask app
    """
    app = Flask(__name__)
    CORS(app, origins='*', send_wildcard=True, methods=['GET', 'POST', 'OPTIONS'])
    started_at = datetime.now(timezone.utc)
    
    @app.errorhandler(InvalidInput)
    def invalid_input(error):
        return jsonify({'message': str(error)}), 400
    
    @app.errorhandler(StorageFailure)
    def storage_failure(error):
        logger.error(f'Storage failure: {error}')
        return jsonify({'message': str(error)}), 500
    
    @app.route('/attendance', methods=['GET', 'POST', 'OPTIONS'])
    @app.route('/api/attendance', methods=['GET', 'POST', 'OPTIONS'])
    def attendance():
        """List or append attendance records."""
        if request.method == 'OPTIONS':
            return '', 200
        
        if request.method == 'GET':
            return jsonify([record.to_dict() for record in ledger.list()])
        
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            raise InvalidInput('Request body must be a JSON object')
        if 'name' not in body or 'timestamp' not in body:
            raise InvalidInput('Fields "name" and "timestamp" are required')
        
        record = ledger.append(body['name'], body['timestamp'])
        return jsonify(record.to_dict()), 201
    
    @app.route('/attendance/export')
    def attendance_export():
        """Download attendance log as CSV."""
        filename = export_filename()
        return Response(
            export_csv(ledger.list()).encode('utf-8'),
            mimetype='text/csv; charset=utf-8',
            headers={'Content-Disposition': f'attachment; filename={filename}'},
        )
    
    @app.route('/identities', methods=['GET', 'POST', 'OPTIONS'])
    def identities():
        """List or register identities."""
        if request.method == 'OPTIONS':
            return '', 200
        
        if request.method == 'GET':
            return jsonify(registry.names())
        
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            raise InvalidInput('Request body must be a JSON object')
        
        identity = registry.register(body.get('name'), body.get('embedding'))
        if config.registry_file:
            save_registry(registry, config.registry_file)
        
        return jsonify({
            'name': identity.name,
            'dimension': int(identity.embedding.shape[0]),
        }), 201
    
    @app.route('/health')
    def health():
        """Health check endpoint."""
        return jsonify({
            'status': 'ok',
            'records': len(ledger.list()),
            'identities': len(registry),
            'started_at': format_timestamp(started_at),
            'uptime_seconds': round((datetime.now(timezone.utc) - started_at).total_seconds(), 1),
            'session': config.session_id,
        })
    
    return app
