"""REST API endpoints for market data, account state, and order intents."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, FastAPI, HTTPException

from cfdsim.core.utils import sanitize_for_json
from cfdsim.exchange.errors import InsufficientMargin, InvalidLotSize, OrderRejected, PositionNotFound

_REJECTION_STATUS = {
    InvalidLotSize: 400,
    InsufficientMargin: 409,
    PositionNotFound: 404,
}


def attach_api_routes(
    app: FastAPI,
    *,
    session: Optional[Any],
    config: Dict[str, Any],
) -> None:
    router = APIRouter(prefix="/api")
    default_candle_limit = int((config.get("frontend", {}) or {}).get("candle_limit", 200) or 200)

    @router.get("/snapshot")
    async def snapshot(candles: Optional[int] = None) -> Dict[str, Any]:
        _require(session, "Trading session not configured.")
        limit = default_candle_limit if candles is None else max(int(candles), 0)
        return sanitize_for_json(session.get_snapshot(candle_limit=limit))

    @router.get("/candles")
    async def list_candles(limit: Optional[int] = None) -> Dict[str, Any]:
        _require(session, "Trading session not configured.")
        limit = default_candle_limit if limit is None else max(int(limit), 0)
        return sanitize_for_json({"candles": session.get_candles(limit)})

    @router.post("/lots")
    async def set_lots(payload: Dict[str, Any]) -> Dict[str, Any]:
        _require(session, "Trading session not configured.")
        if "lots" not in payload:
            raise HTTPException(status_code=400, detail="Missing 'lots' in payload.")
        requested = session.set_requested_lots(payload.get("lots"))
        return {"requested_lots": requested, "max_lots": session.max_lots()}

    @router.post("/orders/open")
    async def open_position(payload: Dict[str, Any]) -> Dict[str, Any]:
        _require(session, "Trading session not configured.")
        side = str(payload.get("side") or "").upper()
        if side not in {"BUY", "SELL"}:
            raise HTTPException(status_code=400, detail="Invalid side; expected 'BUY' or 'SELL'.")
        result = session.request_open(side, payload.get("lots"))
        if not result.ok:
            _raise_rejection(result.error)
        return {"position": result.value.to_dict()}

    @router.post("/positions/close")
    async def close_position(payload: Dict[str, Any]) -> Dict[str, Any]:
        _require(session, "Trading session not configured.")
        position_id = payload.get("id")
        if position_id is None:
            raise HTTPException(status_code=400, detail="Missing 'id' in payload.")
        result = session.request_close(position_id)
        if not result.ok:
            _raise_rejection(result.error)
        return {"trade": result.value.to_dict()}

    app.include_router(router)


def _raise_rejection(error: OrderRejected) -> None:
    status = _REJECTION_STATUS.get(type(error), 400)
    raise HTTPException(status_code=status, detail=error.to_dict())


def _require(dependency: Any, message: str) -> None:
    if dependency is None:
        raise HTTPException(status_code=503, detail=message)
