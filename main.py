import os
import signal
import sys
import traceback
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

# Load .env before reading settings
env_path = Path(__file__).resolve().parent / ".env"
if env_path.exists():
    load_dotenv(env_path)

from expense_client import ExpenseClient  # noqa: E402
from expense_client.utils.config import ConfigManager  # noqa: E402
from expense_client.utils.exceptions import ConfigError  # noqa: E402
from expense_client.utils.logger import get_logger, setup_logger  # noqa: E402
from expense_client.web import create_landing_app  # noqa: E402


def _unhandled_exception(exc_type, exc_value, exc_tb):
    """Print unhandled exceptions before the process exits."""
    if exc_type is KeyboardInterrupt:
        sys.__excepthook__(exc_type, exc_value, exc_tb)
        return
    msg = "".join(traceback.format_exception(exc_type, exc_value, exc_tb))
    print("Unhandled exception:\n" + msg, file=sys.stderr, flush=True)
    sys.__excepthook__(exc_type, exc_value, exc_tb)


def main() -> int:
    """
    Entry point for the expense client.
    Restores the stored session and serves the OAuth landing routes.
    """
    sys.excepthook = _unhandled_exception

    settings_path = os.getenv("EXPENSE_CLIENT_SETTINGS")
    try:
        settings = ConfigManager(Path(settings_path) if settings_path else None).load_settings_or_default()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    log = settings.logging
    setup_logger(
        log_level=log.level,
        log_format=log.format,
        file_path=log.file_path,
        max_bytes=log.max_bytes,
        backup_count=log.backup_count,
    )
    logger = get_logger("expense_client.main")

    client = ExpenseClient(settings=settings)
    client.start(background=True)
    app = create_landing_app(client)

    host = settings.landing.host
    port = settings.landing.port
    logger.info(
        "Starting OAuth landing server",
        host=host,
        port=port,
        api_base_url=settings.api.base_url,
        redirect_route=settings.routes.oauth_redirect,
    )

    def signal_handler(sig, frame):
        print("\n\nShutdown signal received. Stopping server...")
        client.close()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, signal_handler)

    try:
        uvicorn.run(app, host=host, port=port, log_level=log.level.lower())
    except KeyboardInterrupt:
        print("\n\nShutdown complete.")
    finally:
        client.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
