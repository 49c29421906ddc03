"""HTTP server exposing session state to an external chart/account renderer."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from cfdsim.core.utils import sanitize_for_json
from rest_api import attach_api_routes


def create_app(
    *,
    session: Optional[Any] = None,
    config: Optional[Dict[str, Any]] = None,
) -> FastAPI:
    """Return a FastAPI app with status + API routes."""
    app = FastAPI(
        title="CFD Trading Venue (Simulation)",
        description="Data source and intent sink for the simulated CFD venue.",
        version="0.1.0",
    )

    attach_api_routes(app, session=session, config=config or {})

    @app.get("/api/status", response_class=JSONResponse)
    async def api_status() -> JSONResponse:
        """Return the session snapshot without the candle history."""
        payload = _build_status_payload(session)
        return JSONResponse(sanitize_for_json(jsonable_encoder(payload)))

    return app


def _build_status_payload(session: Optional[Any]) -> Dict[str, Any]:
    if session is None:
        return {"status": "offline"}
    snapshot = session.get_snapshot(candle_limit=0)
    snapshot.pop("candles", None)
    return {"status": "online", **snapshot}
