import time

from fastapi import APIRouter, Request, Response

router = APIRouter()


@router.get("/healthz")
async def healthz(request: Request):
    store = request.app.state.store
    now = time.monotonic()
    streams = {}
    for name in store.streams:
        view = store.view(name)
        streams[name] = {
            "initialized": view.initialized,
            "history_points": len(view.history),
            "seconds_since_commit": (
                None if view.committed_at is None else round(now - view.committed_at, 3)
            ),
        }
    return {"status": "ok", "streams": streams}


@router.get("/readyz")
async def readyz(request: Request):
    if request.app.state.ready_event.is_set():
        return {"status": "ready"}
    return Response(status_code=503, content="not ready")
