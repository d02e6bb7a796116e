from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional, Union
import os
import logging

import uvicorn
from fastapi import FastAPI

from taskkeeper.app.routes import tasks, logs
from taskkeeper.infra.storage.task_store import TaskStore
from taskkeeper.services.task_service import TaskService
from taskkeeper.observability.exception_reporter import ExceptionReporter
from taskkeeper.observability.logging import log_path, setup_logging
from taskkeeper.observability.outcomes import LoggingOutcomeSink, OutcomeSink
from taskkeeper.observability.tracer import OperationTracer
from taskkeeper.app.middleware.access_log import AccessLogMiddleware

logger = logging.getLogger("taskkeeper.system")


def create_app(
    tasks_path: Optional[Union[str, Path]] = None,
    *,
    sink: Optional[OutcomeSink] = None,
    reporter: Optional[ExceptionReporter] = None,
    configure_logging: bool = True,
    log_dir: Optional[Union[str, Path]] = None,
) -> FastAPI:
    if configure_logging:
        setup_logging(log_dir=log_dir)
    logger.info("system.start", extra={"category": "system", "event": "system.start"})

    tasks_path = tasks_path or os.getenv("TASKS_PATH", "./data/tasks.json")
    sink = sink or LoggingOutcomeSink()
    tracer = OperationTracer(sink)
    store = TaskStore(tasks_path)
    svc = TaskService(store, tracer)
    logger.info(
        "store.ready",
        extra={"category": "system", "event": "store.ready", "tasks_path": str(tasks_path), "total": len(store)},
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if reporter is not None:
            reporter.install_loop_handler()
        yield
        logger.info("system.stop", extra={"category": "system", "event": "system.stop"})

    app = FastAPI(title="Taskkeeper", lifespan=lifespan)
    app.add_middleware(AccessLogMiddleware, tracer=tracer)

    app.state.log_path = log_path(log_dir)
    app.state.tracer = tracer
    app.state.task_store = store
    app.state.task_service = svc

    # Routers
    app.include_router(tasks.router)
    app.include_router(logs.router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


def main() -> None:
    setup_logging()
    reporter = ExceptionReporter()
    reporter.install()
    app = create_app(reporter=reporter, configure_logging=False)
    uvicorn.run(
        app,
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        log_config=None,
    )


if __name__ == "__main__":
    main()
