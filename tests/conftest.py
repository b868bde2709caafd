import asyncio
import json
from typing import List, Optional, Tuple

import pytest

from resume_analyzer.analysis import (
    AnalysisConfig,
    AnalysisRuntime,
    DocumentFormat,
    InMemoryJobRepository,
    JobStatus,
    TextExtractionError,
    TextExtractor,
    UnsupportedFileTypeError,
    parse_analysis_response,
)

FIELDS = [
    {"key": "candidateName", "label": "Candidate Name"},
    {"key": "emailAddress", "label": "Email Address", "description": "Primary contact email"},
]
TAGS = [{"id": "t1", "name": "Python"}, {"id": "t2", "name": "Leadership"}, {"id": "t3", "name": "SQL"}]


class FakeExtractor(TextExtractor):
    """Treats the uploaded bytes as UTF-8 text; bytes starting with CORRUPT fail."""

    def __init__(self):
        self.calls: List[Tuple[bytes, str]] = []

    def extract_text(self, data, document_format):
        try:
            fmt = DocumentFormat(document_format)
        except ValueError as exc:
            raise UnsupportedFileTypeError(f"Unsupported file type: {document_format}") from exc
        self.calls.append((data, fmt.value))
        if data.startswith(b"CORRUPT"):
            raise TextExtractionError("Could not parse PDF content.")
        return data.decode("utf-8")


class FakeAnalyzer:
    """
    Builds a well-formed response by default; `raw_response` overrides it so
    tests can feed malformed payloads through the real response parser.
    """

    def __init__(self, raw_response: Optional[str] = None, delay: float = 0.0):
        self.raw_response = raw_response
        self.delay = delay
        self.calls: List[str] = []

    async def analyze(self, text, fields, tags):
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        raw = self.raw_response
        if raw is None:
            raw = json.dumps(
                {
                    "summary": f"Experienced engineer. {text[:40]}",
                    "extractedInformation": {f.key: f"value for {f.key}" for f in fields},
                    "assignedTags": [tags[0].name.upper(), "Not In Vocabulary"],
                }
            )
        return parse_analysis_response(raw, fields, tags)


class RecordingRepository(InMemoryJobRepository):
    """In-memory store that logs every status transition it accepts."""

    def __init__(self):
        super().__init__()
        self.transitions: List[Tuple[str, JobStatus]] = []

    def create_job(self, file, parameters):
        job_id = super().create_job(file, parameters)
        self.transitions.append((job_id, JobStatus.QUEUED))
        return job_id

    def update_job(self, job_id, status=None, **kwargs):
        updated = super().update_job(job_id, status=status, **kwargs)
        if updated and status is not None:
            self.transitions.append((job_id, status))
        return updated

    def history(self, job_id: str) -> List[JobStatus]:
        return [status for jid, status in self.transitions if jid == job_id]


@pytest.fixture
def repo():
    return RecordingRepository()


@pytest.fixture
def extractor():
    return FakeExtractor()


@pytest.fixture
def analyzer():
    return FakeAnalyzer()


@pytest.fixture
def runtime(repo, extractor, analyzer):
    config = AnalysisConfig(database_url="sqlite://", cleanup_interval_seconds=3600)
    return AnalysisRuntime(repository=repo, extractor=extractor, analyzer=analyzer, config=config)


def submit_pdf(runtime: AnalysisRuntime, text: str = "Jane Doe, jane@example.com, Python developer", **overrides):
    kwargs = dict(
        file_name="resume.pdf",
        data=text.encode("utf-8"),
        content_type="application/pdf",
        fields=FIELDS,
        tags=TAGS,
    )
    kwargs.update(overrides)
    return runtime.service.submit(**kwargs)


def process_all(runtime: AnalysisRuntime, texts: List[str]) -> List[str]:
    """Start the queue, submit every text as a PDF, wait for the queue to drain."""

    async def scenario():
        await runtime.queue.start()
        try:
            ids = [submit_pdf(runtime, text).job_id for text in texts]
            await runtime.queue.join()
        finally:
            await runtime.queue.stop()
        return ids

    return asyncio.run(scenario())
