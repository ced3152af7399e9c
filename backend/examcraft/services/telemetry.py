import time
import json
import logging
import asyncio
from typing import Optional
from functools import wraps

from examcraft.core.config import get_settings

logger = logging.getLogger("examcraft.telemetry")


def emit_event(event: str, *, phase: Optional[str] = None, route: Optional[str] = None,
               error_type: Optional[str] = None, latency_ms: Optional[int] = None,
               ok: Optional[bool] = None, **extra):
    payload = {
        "event": event,
        "phase": phase,
        "route": route,
        "error_type": error_type,
        "latency_ms": latency_ms,
        "ok": ok,
        **extra,
        "ts": time.time(),
    }
    # log as single-line JSON for easy parsing in prod
    logger.info("telemetry=%s", json.dumps(payload, separators=(",", ":"), default=str))

    # persist to Supabase (best-effort, never block the caller)
    if not get_settings().enable_telemetry_db:
        return

    try:
        from examcraft.core.deps import get_supabase_client
        sb = get_supabase_client()
        sb.table("telemetry_events").insert({
            "event": event,
            "phase": phase,
            "route": route,
            "error_type": error_type,
            "latency_ms": latency_ms,
            "ok": ok,
        }).execute()
    except Exception as e:
        logger.error("[telemetry.emit_event] %s", e, exc_info=True)


def instrument(route: str):
    def deco(fn):
        if not asyncio.iscoroutinefunction(fn):
            raise TypeError("instrument() expects an async route handler")

        @wraps(fn)
        async def wrapped(*args, **kwargs):
            t0 = time.time()
            ok = True
            err = None
            try:
                return await fn(*args, **kwargs)
            except Exception as e:
                ok = False
                err = str(e.__class__.__name__)
                raise
            finally:
                dt = int((time.time() - t0) * 1000)
                emit_event("api_call", route=route, latency_ms=dt, ok=ok, error_type=err)
        return wrapped
    return deco
