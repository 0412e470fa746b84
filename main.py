"""
Entrypoint: load .env and config, init logging, serve the dashboard API
"""

import uvicorn
from dotenv import load_dotenv

from tracker.app import create_app
from tracker.config import Config
from tracker.log import configure_logging


def main():
    """Initialize dependencies and start the API server"""
    # Load environment variables from .env file
    load_dotenv()

    config = Config()
    configure_logging(
        level=config.logging.get('level', 'INFO'),
        fmt=config.logging.get('format', 'json'),
    )

    app = create_app(config=config)
    uvicorn.run(
        app,
        host=config.server.get('host', '0.0.0.0'),
        port=int(config.server.get('port', 8000)),
        log_config=None,
    )


if __name__ == "__main__":
    main()
