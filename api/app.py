from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes.analysis import router as analysis_router
from api.routes.jobs import router as jobs_router
from resume_analyzer.analysis import AnalysisConfig, AnalysisRuntime, build_runtime


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def create_app(runtime: Optional[AnalysisRuntime] = None, config: Optional[AnalysisConfig] = None) -> FastAPI:
    config = config or (runtime.config if runtime else AnalysisConfig.from_env())
    configure_logging(config.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        active = runtime or build_runtime(config)
        app.state.runtime = active
        await active.start()
        try:
            yield
        finally:
            await active.stop()

    app = FastAPI(title="Resume Analyzer API", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(analysis_router)
    app.include_router(jobs_router)

    @app.get("/healthz")
    def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()
