from __future__ import annotations

from fastapi import Request

from resume_analyzer.analysis import AnalysisRuntime, AnalysisService


def get_runtime(request: Request) -> AnalysisRuntime:
    return request.app.state.runtime


def get_service(request: Request) -> AnalysisService:
    return get_runtime(request).service
