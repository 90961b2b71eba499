"""FastAPI server: task, plan and tool endpoints."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from tasklane import __version__
from tasklane.config import LOG_LEVEL, SERVER_HOST, SERVER_PORT
from tasklane.errors import InvalidTransitionError, PlanValidationError, TaskNotFoundError, TasklaneError
from tasklane.models import TaskPriority
from tasklane.plan.schema import IntentClassification, Plan
from tasklane.runtime import Runtime
from tasklane.tools.definitions import ALL_TOOLS

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request Models
# ---------------------------------------------------------------------------


class CreateTaskRequest(BaseModel):
    chat_id: str
    user_id: str
    intent_text: str
    plan: Plan | None = None
    classification: IntentClassification | None = None
    priority: TaskPriority = TaskPriority.MEDIUM
    auto_start: bool = True


class ValidatePlanRequest(BaseModel):
    plan: dict[str, Any] = Field(description="Plan JSON, as produced by the planner")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------


def create_app(runtime: Runtime | None = None) -> FastAPI:
    """Build the API around a runtime (a default one is created if omitted)."""
    rt = runtime or Runtime()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await rt.start()
        yield
        await rt.stop()

    app = FastAPI(title="tasklane", version=__version__, description="Task planning and execution API", lifespan=lifespan)
    app.state.runtime = rt
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    orchestrator = rt.orchestrator

    # -- error mapping ------------------------------------------------------

    @app.exception_handler(TaskNotFoundError)
    async def _not_found(request: Request, exc: TaskNotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(InvalidTransitionError)
    async def _conflict(request: Request, exc: InvalidTransitionError):
        return JSONResponse(status_code=409, content={
            "detail": str(exc),
            "current": exc.current.value,
            "valid_next": [s.value for s in exc.valid_next],
        })

    @app.exception_handler(PlanValidationError)
    async def _invalid_plan(request: Request, exc: PlanValidationError):
        return JSONResponse(status_code=422, content={"detail": str(exc), "validation": exc.result.model_dump()})

    @app.exception_handler(TasklaneError)
    async def _bad_request(request: Request, exc: TasklaneError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    # -- tasks --------------------------------------------------------------

    @app.post("/tasks", status_code=201)
    async def create_task(req: CreateTaskRequest) -> dict:
        task = await orchestrator.create_task(
            chat_id=req.chat_id,
            user_id=req.user_id,
            intent_text=req.intent_text,
            plan=req.plan,
            classification=req.classification,
            priority=req.priority,
            auto_start=req.auto_start,
        )
        return task.to_dict()

    @app.get("/tasks/{task_id}")
    async def get_task(task_id: str) -> dict:
        return (await orchestrator.get_task(task_id)).to_dict()

    @app.get("/chats/{chat_id}/tasks")
    async def list_tasks(chat_id: str) -> list[dict]:
        return [t.to_dict() for t in await orchestrator.list_tasks(chat_id)]

    @app.post("/tasks/{task_id}/pause")
    async def pause_task(task_id: str) -> dict:
        return (await orchestrator.pause_task(task_id)).to_dict()

    @app.post("/tasks/{task_id}/resume")
    async def resume_task(task_id: str) -> dict:
        return (await orchestrator.resume_task(task_id)).to_dict()

    @app.post("/tasks/{task_id}/cancel")
    async def cancel_task(task_id: str) -> dict:
        return (await orchestrator.cancel_task(task_id)).to_dict()

    @app.get("/tasks/{task_id}/logs")
    async def get_logs(task_id: str) -> list[dict]:
        return [log.to_dict() for log in await orchestrator.get_logs(task_id)]

    # -- events (WebSocket + polling) ---------------------------------------

    @app.websocket("/tasks/{task_id}/events")
    async def event_stream(websocket: WebSocket, task_id: str):
        await websocket.accept()
        if await rt.store.get(task_id) is None:
            await websocket.close(code=4004, reason="Task not found")
            return

        queue = rt.event_bus.subscribe(task_id=task_id)
        try:
            while True:
                event = await queue.get()
                await websocket.send_json(event.to_dict())
        except WebSocketDisconnect:
            logger.debug(f"Event stream for task {task_id} disconnected")
        finally:
            rt.event_bus.unsubscribe(queue)

    @app.get("/tasks/{task_id}/events")
    async def get_events(task_id: str, limit: int = 50, offset: int = 0) -> list[dict]:
        await orchestrator.get_task(task_id)
        return [e.to_dict() for e in rt.event_bus.recent(limit=limit, offset=offset, task_id=task_id)]

    # -- plans & tools ------------------------------------------------------

    @app.post("/plans/validate")
    async def validate_plan(req: ValidatePlanRequest) -> dict:
        try:
            plan = Plan.model_validate(req.plan)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=f"Malformed plan: {e}") from e
        return rt.validator.validate(plan).model_dump()

    @app.get("/tools")
    async def list_tools() -> list[dict]:
        return [
            {**t.to_dict(), "available": rt.executor.is_tool_available(t.name)}
            for t in ALL_TOOLS
        ]

    return app


# ---------------------------------------------------------------------------
# Entry Point
# ---------------------------------------------------------------------------


def main():
    """Start the tasklane server."""
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")
    logger.info(f"Starting tasklane server on {SERVER_HOST}:{SERVER_PORT}")
    uvicorn.run(create_app(), host=SERVER_HOST, port=SERVER_PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
