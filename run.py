"""Entry point for the simulated CFD trading venue."""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict

from cfdsim.core.config import VenueConfig
from cfdsim.core.session import TradingSession
from cfdsim.core.utils import load_config, setup_logging
from cfdsim.frontend.server import create_app


def main() -> None:
    """Main entry point that wires together config, session, and HTTP frontend."""
    config = load_config()
    setup_logging(config)

    session = TradingSession(VenueConfig.from_dict(config))

    frontend_thread: threading.Thread | None = None
    frontend_cfg = config.get("frontend", {}) or {}
    if frontend_cfg.get("enabled", False):
        frontend_thread = _start_frontend(session=session, frontend_cfg=frontend_cfg, config=config)

    session.start()
    try:
        session.stop_event.wait()
    except KeyboardInterrupt:
        logging.info("Keyboard interrupt received; stopping services.")
    finally:
        session.stop()
        if frontend_thread:
            logging.info("Frontend server thread will exit when main process ends.")


def _start_frontend(
    *,
    session: TradingSession,
    frontend_cfg: Dict[str, Any],
    config: Dict[str, Any],
) -> threading.Thread:
    """Start the FastAPI server in a background thread."""
    import uvicorn

    app = create_app(session=session, config=config)
    host = frontend_cfg.get("host", "127.0.0.1")
    port = frontend_cfg.get("port", 8000)

    def _run() -> None:
        uvicorn.run(app, host=host, port=port, log_level="info")

    thread = threading.Thread(target=_run, name="frontend-server", daemon=True)
    thread.start()
    logging.info("Frontend server running at http://%s:%s", host, port)
    return thread


if __name__ == "__main__":
    main()
