from __future__ import annotations

import json
import threading
import uuid
from copy import deepcopy
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from sqlalchemy import Column, DateTime, Enum, Integer, String, Text, create_engine, delete, select, update
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .models import (
    ACTIVE_STATUSES,
    ALLOWED_PREVIOUS_STATUS,
    AnalysisJobRecord,
    AnalysisParameters,
    AnalysisResult,
    DocumentFormat,
    FileMetadata,
    JobStatus,
    utcnow,
)

Base = declarative_base()


class AnalysisJobModel(Base):
    __tablename__ = "analysis_jobs"
    id = Column(String, primary_key=True)
    file_name = Column(String)
    file_size = Column(Integer)
    content_type = Column(String)
    document_format = Column(Enum(DocumentFormat))
    parameters_json = Column(Text)
    status = Column(Enum(JobStatus), index=True)
    progress = Column(Integer)
    result_json = Column(Text)
    error_message = Column(Text)
    created_at = Column(DateTime, index=True)
    updated_at = Column(DateTime)
    completed_at = Column(DateTime)


def new_job_id() -> str:
    return f"job_{uuid.uuid4().hex}"


def _required_previous(status: Optional[JobStatus]):
    if status is None:
        return ACTIVE_STATUSES
    return ALLOWED_PREVIOUS_STATUS[status]


class JobRepository:
    """
    Persistence boundary for analysis jobs. The worker is the only writer of
    job progress; every write is a single conditional update keyed by job id,
    so terminal jobs are never touched again.
    """

    def create_job(self, file: FileMetadata, parameters: AnalysisParameters) -> str:
        raise NotImplementedError

    def get_job(self, job_id: str) -> Optional[AnalysisJobRecord]:
        raise NotImplementedError

    def update_job(
        self,
        job_id: str,
        status: Optional[JobStatus] = None,
        progress: Optional[int] = None,
        result: Optional[AnalysisResult] = None,
        error_message: Optional[str] = None,
        completed_at: Optional[datetime] = None,
    ) -> bool:
        """
        Apply a partial update. Returns False when nothing was written: the
        job is unknown, expired, terminal, or not in a status the requested
        transition may start from.
        """
        raise NotImplementedError

    def delete_jobs_created_before(self, cutoff: datetime) -> int:
        raise NotImplementedError

    def fail_stale_jobs(self, updated_before: datetime, error_message: str) -> List[str]:
        raise NotImplementedError


class InMemoryJobRepository(JobRepository):
    """
    Dict-backed store for local runs and tests. Keeps copies of records so a
    caller holding a returned job never sees later writes. The janitor sweeps
    from a worker thread, so every read and write holds `_lock`.
    """

    def __init__(self):
        self.jobs: Dict[str, AnalysisJobRecord] = {}
        self._lock = threading.RLock()

    def _clone(self, obj):
        return deepcopy(obj)

    def create_job(self, file: FileMetadata, parameters: AnalysisParameters) -> str:
        job_id = new_job_id()
        now = utcnow()
        record = AnalysisJobRecord(
            id=job_id,
            file=file,
            parameters=parameters,
            status=JobStatus.QUEUED,
            progress=0,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self.jobs[job_id] = record
        return job_id

    def get_job(self, job_id: str) -> Optional[AnalysisJobRecord]:
        with self._lock:
            job = self.jobs.get(job_id)
            return self._clone(job) if job else None

    def update_job(
        self,
        job_id: str,
        status: Optional[JobStatus] = None,
        progress: Optional[int] = None,
        result: Optional[AnalysisResult] = None,
        error_message: Optional[str] = None,
        completed_at: Optional[datetime] = None,
    ) -> bool:
        with self._lock:
            job = self.jobs.get(job_id)
            if not job or job.status not in _required_previous(status):
                return False
            job = self._clone(job)
            if status is not None:
                job.status = status
            if progress is not None:
                job.progress = progress
            if result is not None:
                job.result = self._clone(result)
            if error_message is not None:
                job.error_message = error_message
            if completed_at is not None:
                job.completed_at = completed_at
            job.updated_at = utcnow()
            self.jobs[job_id] = job
            return True

    def delete_jobs_created_before(self, cutoff: datetime) -> int:
        with self._lock:
            expired = [job_id for job_id, job in self.jobs.items() if job.created_at < cutoff]
            for job_id in expired:
                del self.jobs[job_id]
            return len(expired)

    def fail_stale_jobs(self, updated_before: datetime, error_message: str) -> List[str]:
        now = utcnow()
        with self._lock:
            stale = [
                job.id
                for job in self.jobs.values()
                if job.status == JobStatus.PROCESSING and job.updated_at < updated_before
            ]
            for job_id in stale:
                self.update_job(job_id, status=JobStatus.FAILED, error_message=error_message, completed_at=now)
            return stale


class SqlAlchemyJobRepository(JobRepository):
    """
    SQL-backed repository using SQLAlchemy. Works with SQLite/Postgres URLs.
    """

    def __init__(self, database_url: str):
        url = make_url(database_url)
        if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
        self.engine = create_engine(database_url, future=True, connect_args=connect_args)
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False, future=True)

    def _session(self) -> Session:
        return self.SessionLocal()

    def _to_record(self, model: AnalysisJobModel) -> AnalysisJobRecord:
        result = json.loads(model.result_json) if model.result_json else None
        return AnalysisJobRecord(
            id=model.id,
            file=FileMetadata(
                name=model.file_name,
                size=int(model.file_size or 0),
                content_type=model.content_type,
                document_format=model.document_format,
            ),
            parameters=AnalysisParameters.from_dict(json.loads(model.parameters_json or "{}")),
            status=model.status,
            progress=int(model.progress or 0),
            result=AnalysisResult.from_dict(result) if result else None,
            error_message=model.error_message,
            created_at=model.created_at,
            updated_at=model.updated_at,
            completed_at=model.completed_at,
        )

    def create_job(self, file: FileMetadata, parameters: AnalysisParameters) -> str:
        job_id = new_job_id()
        now = utcnow()
        with self._session() as session:
            session.add(
                AnalysisJobModel(
                    id=job_id,
                    file_name=file.name,
                    file_size=file.size,
                    content_type=file.content_type,
                    document_format=file.document_format,
                    parameters_json=json.dumps(parameters.to_dict()),
                    status=JobStatus.QUEUED,
                    progress=0,
                    result_json=None,
                    error_message=None,
                    created_at=now,
                    updated_at=now,
                    completed_at=None,
                )
            )
            session.commit()
        return job_id

    def get_job(self, job_id: str) -> Optional[AnalysisJobRecord]:
        with self._session() as session:
            model = session.get(AnalysisJobModel, job_id)
            if not model:
                return None
            return self._to_record(model)

    def update_job(
        self,
        job_id: str,
        status: Optional[JobStatus] = None,
        progress: Optional[int] = None,
        result: Optional[AnalysisResult] = None,
        error_message: Optional[str] = None,
        completed_at: Optional[datetime] = None,
    ) -> bool:
        values = {"updated_at": utcnow()}
        if status is not None:
            values["status"] = status
        if progress is not None:
            values["progress"] = progress
        if result is not None:
            values["result_json"] = json.dumps(result.to_dict())
        if error_message is not None:
            values["error_message"] = error_message
        if completed_at is not None:
            values["completed_at"] = completed_at

        stmt = (
            update(AnalysisJobModel)
            .where(AnalysisJobModel.id == job_id)
            .where(AnalysisJobModel.status.in_(_required_previous(status)))
            .values(**values)
        )
        with self._session() as session:
            outcome = session.execute(stmt)
            session.commit()
            return outcome.rowcount == 1

    def delete_jobs_created_before(self, cutoff: datetime) -> int:
        with self._session() as session:
            outcome = session.execute(delete(AnalysisJobModel).where(AnalysisJobModel.created_at < cutoff))
            session.commit()
            return outcome.rowcount or 0

    def fail_stale_jobs(self, updated_before: datetime, error_message: str) -> List[str]:
        with self._session() as session:
            stmt = (
                select(AnalysisJobModel.id)
                .where(AnalysisJobModel.status == JobStatus.PROCESSING)
                .where(AnalysisJobModel.updated_at < updated_before)
            )
            candidates = session.execute(stmt).scalars().all()
        now = utcnow()
        failed: List[str] = []
        for job_id in candidates:
            # Conditional update; a job that finished meanwhile is left alone.
            stmt = (
                update(AnalysisJobModel)
                .where(AnalysisJobModel.id == job_id)
                .where(AnalysisJobModel.status == JobStatus.PROCESSING)
                .where(AnalysisJobModel.updated_at < updated_before)
                .values(status=JobStatus.FAILED, error_message=error_message, completed_at=now, updated_at=now)
            )
            with self._session() as session:
                outcome = session.execute(stmt)
                session.commit()
                if outcome.rowcount == 1:
                    failed.append(job_id)
        return failed
