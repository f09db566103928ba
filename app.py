import asyncio
import logging
import sys

from flask import Flask

from config import Config
from lifecycle import ServerLifecycle
from middleware import RequestLogger
from views import time_bp


def create_app(config=Config) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config)
    # Keep fields in declaration order on the wire
    app.json.sort_keys = False
    app.register_blueprint(time_bp)
    app.wsgi_app = RequestLogger(app.wsgi_app)
    return app


def configure_logging(level="INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main() -> None:
    app = create_app()
    configure_logging(app.config["LOG_LEVEL"])
    sys.exit(asyncio.run(ServerLifecycle(app).run()))


if __name__ == "__main__":
    main()
