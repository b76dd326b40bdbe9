"""
Attendance Service - Main Entry Point

Serves the attendance HTTP API and, optionally, runs a live recognition
session against a camera.
"""

import argparse
import locale
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

from .app import create_app
from .config import Config, load_config
from .events import RemoteLedger
from .ledger import AttendanceLedger, JsonFileLedger
from .logging_config import setup_logging, get_logger
from .pipeline import RecognitionPipeline
from .recognition.cooldown import CooldownGate
from .recognition.registry import IdentityRegistry
from .session import RecognitionSession
from .utils.cache import load_registry

logger = get_logger(__name__)


def _load_local_env() -> None:
    """Load environment variables from attendance_service/.env if present."""
    env_path = Path(__file__).resolve().parent / '.env'
    if not env_path.exists():
        return

    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith('#') or '=' not in line:
            continue
        key, value = line.split('=', 1)
        os.environ.setdefault(key.strip(), value.strip())


def configure_locale() -> None:
    """Use the user's locale for record date and time strings."""
    try:
        locale.setlocale(locale.LC_ALL, '')
    except locale.Error as e:
        logger.warning(f'Locale not available, using C locale for dates: {e}')


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Attendance Service - Face Recognition Attendance Ledger'
    )

    parser.add_argument('--host', type=str, help='Bind address (or set API_HOST)')
    parser.add_argument('--port', type=int, help='Bind port (or set API_PORT)')
    parser.add_argument('--ledger-file', type=str, help='JSON ledger path (or set LEDGER_FILE)')
    parser.add_argument(
        '--backend-url',
        type=str,
        help='Remote attendance service URL (or set BACKEND_URL)'
    )
    parser.add_argument(
        '--camera',
        action='store_true',
        help='Run a live recognition session on CAMERA_SOURCE'
    )
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')

    return parser.parse_args(argv)


def apply_args(config: Config, args: argparse.Namespace) -> Config:
    """Override configuration with command line arguments."""
    overrides = {}
    if args.host:
        overrides['api_host'] = args.host
    if args.port is not None:
        overrides['api_port'] = args.port
    if args.ledger_file:
        overrides['ledger_file'] = args.ledger_file
    if args.backend_url:
        overrides['backend_url'] = args.backend_url
    if args.debug:
        overrides['debug_mode'] = True
    return replace(config, **overrides)


def build_ledger(config: Config) -> AttendanceLedger:
    """Remote ledger if a backend is configured, JSON file otherwise."""
    if config.backend_url:
        logger.info(f'Ledger: remote ({config.backend_url})')
        return RemoteLedger(config.backend_url)
    logger.info(f'Ledger: file ({config.ledger_file})')
    return JsonFileLedger(config.ledger_file)


def start_session(
    config: Config,
    registry: IdentityRegistry,
    ledger: AttendanceLedger,
) -> RecognitionSession:
    """Initialize the model and start a recognition session."""
    # Import here so the API can run without the model installed
    from .face_app import initialize_face_app
    from .detection import EmbeddingDetector

    face_app = initialize_face_app(config)
    pipeline = RecognitionPipeline(
        registry=registry,
        gate=CooldownGate(config.cooldown_seconds),
        ledger=ledger,
        config=config,
    )
    session = RecognitionSession(pipeline, EmbeddingDetector(face_app), config)
    session.start()
    return session


def main(argv: Optional[list] = None) -> None:
    """Main entry point."""
    _load_local_env()
    args = parse_args(argv)

    try:
        config = apply_args(load_config(), args)
    except ValueError as e:
        print(f'Invalid configuration: {e}', file=sys.stderr)
        sys.exit(2)

    setup_logging(config.session_id, config.debug_mode)
    configure_locale()

    logger.info('=' * 60)
    logger.info('Attendance Service')
    logger.info('=' * 60)
    logger.info(f'API: http://{config.api_host}:{config.api_port}')
    logger.info(f'Model: {config.embedding_model} ({config.embedding_dim}-d, threshold {config.match_threshold:.2f})')
    logger.info(f'Cooldown: {config.cooldown_seconds:.0f}s')
    logger.info('=' * 60)

    registry = load_registry(config.registry_file, config.embedding_dim)
    ledger = build_ledger(config)
    session: Optional[RecognitionSession] = None

    try:
        if args.camera:
            session = start_session(config, registry, ledger)

        app = create_app(config, ledger, registry)
        app.run(
            host=config.api_host,
            port=config.api_port,
            threaded=True,
            debug=False,
            use_reloader=False
        )

    except KeyboardInterrupt:
        logger.info('Received keyboard interrupt, shutting down...')
    except Exception as e:
        logger.error(f'Fatal error: {e}', exc_info=True)
        sys.exit(1)
    finally:
        if session is not None:
            session.stop()


if __name__ == '__main__':
    main()
