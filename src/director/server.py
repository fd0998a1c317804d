from __future__ import annotations

import json
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from director.config import DirectorConfig
from director.controller import DirectorController
from director.models import DirectorRequestError, ModelInvocationError

logger = logging.getLogger(__name__)


def create_app(controller: Optional[DirectorController] = None) -> FastAPI:
    app = FastAPI(title="Director")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    app.state.controller = controller

    def _controller() -> DirectorController:
        if app.state.controller is None:
            app.state.controller = DirectorController.from_config(DirectorConfig.from_env())
        return app.state.controller

    @app.post("/api/director")
    async def director_turn(request: Request):
        try:
            payload = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return JSONResponse({"error": "request body must be valid JSON"}, status_code=400)
        try:
            result = await run_in_threadpool(_controller().handle_request, payload)
        except DirectorRequestError as exc:
            return JSONResponse({"error": str(exc)}, status_code=400)
        except ModelInvocationError as exc:
            logger.error("Director route error: %s", exc)
            return JSONResponse({"error": str(exc) or "Director failed"}, status_code=500)
        return result

    @app.get("/api/director/providers")
    async def director_providers():
        invoker = _controller().invoker
        if not hasattr(invoker, "available_providers"):
            return JSONResponse({"error": "provider probing not supported"}, status_code=501)
        return await run_in_threadpool(invoker.available_providers)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
