from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class AnalysisConfig:
    database_url: str = "sqlite+pysqlite:///./data/resume_analyzer.db"
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    temperature: float = 0.1
    analysis_max_attempts: int = 2
    max_upload_bytes: int = 10 * 1024 * 1024
    estimated_job_seconds: float = 120.0
    job_retention_seconds: int = 7 * 24 * 60 * 60
    stale_job_seconds: Optional[int] = 30 * 60
    cleanup_interval_seconds: float = 60 * 60
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "AnalysisConfig":
        stale = os.getenv("STALE_JOB_SECONDS", "1800")
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_model=os.getenv("OPENAI_MODEL", cls.openai_model),
            temperature=float(os.getenv("ANALYSIS_TEMPERATURE", "0.1")),
            analysis_max_attempts=int(os.getenv("ANALYSIS_MAX_ATTEMPTS", "2")),
            max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024))),
            estimated_job_seconds=float(os.getenv("ESTIMATED_JOB_SECONDS", "120")),
            job_retention_seconds=int(os.getenv("JOB_RETENTION_SECONDS", str(7 * 24 * 60 * 60))),
            # 0 disables the staleness rule
            stale_job_seconds=int(stale) or None,
            cleanup_interval_seconds=float(os.getenv("CLEANUP_INTERVAL_SECONDS", "3600")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
