# app.py - gesture driven particle cloud server
import logging
import os
import sys

from aiohttp import web

from orchestrator import Orchestrator, RenderConfig
from params import Params
from server import create_app

HOST = os.environ.get("PARTICLES_HOST", "127.0.0.1")
PORT = int(os.environ.get("PARTICLES_PORT", "8765"))
LOG_LEVEL = os.environ.get("PARTICLES_LOG_LEVEL", "INFO").upper()
LOG_FILE = os.environ.get("PARTICLES_LOG_FILE") or None
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

logger = logging.getLogger(__name__)


def setup_logging(level_name=LOG_LEVEL, log_file=LOG_FILE):
    """Route every module logger to stdout (and ``log_file`` if set). Safe to call again."""
    level = getattr(logging, str(level_name).upper(), None)
    if not isinstance(level, int):
        level = logging.INFO
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%H:%M:%S", handlers=handlers, force=True)
    # one access line per /hand post would bury the rest at INFO
    logging.getLogger("aiohttp.access").setLevel(max(level, logging.WARNING))
    return level


def main():
    setup_logging()

    params = Params()
    orch = Orchestrator(RenderConfig(), params=params)
    app = create_app(orch)

    logger.info("=" * 60)
    logger.info("PARTICLE CLOUD on http://%s:%d", HOST, PORT)
    logger.info("  POST /hand      control snapshot {present, gesture, position, openness}")
    logger.info("  GET|POST /config  {shape, count, size, color}")
    logger.info("  POST /generate  {prompt} -> custom shape")
    logger.info("  GET  /frame     latest positions + rotation_y")
    logger.info("  GET  /ws        frame stream")
    logger.info("=" * 60)

    web.run_app(app, host=HOST, port=PORT, print=None)


if __name__ == "__main__":
    main()
