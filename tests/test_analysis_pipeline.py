import asyncio
import json

from conftest import FIELDS, TAGS, FakeAnalyzer, FakeExtractor, RecordingRepository, process_all, submit_pdf

from resume_analyzer.analysis import (
    AnalysisJobQueue,
    AnalysisParameters,
    AnalysisRequest,
    AnalysisRuntime,
    AnalysisWorker,
    DefaultTextExtractor,
    DocumentFormat,
    FileMetadata,
    JobStatus,
    LangChainResumeAnalyzer,
)
from resume_analyzer.analysis.service import parse_extraction_fields, parse_tags


def _assert_terminal_invariants(job):
    assert job.status.is_terminal
    assert (job.result is not None) != (job.error_message is not None)
    assert (job.progress == 100) == (job.status == JobStatus.COMPLETED)
    assert job.completed_at is not None


def test_well_formed_resume_completes(runtime, repo):
    (job_id,) = process_all(runtime, ["Jane Doe, jane@example.com, Python developer"])

    job = repo.get_job(job_id)
    assert job.status == JobStatus.COMPLETED
    assert job.progress == 100
    assert job.error_message is None
    assert job.result.summary
    assert set(job.result.extracted_fields) == {f["key"] for f in FIELDS}
    vocabulary = {t["name"] for t in TAGS}
    assert job.result.assigned_tags == ["Python"]
    assert set(job.result.assigned_tags) <= vocabulary
    _assert_terminal_invariants(job)


def test_status_passes_through_processing(runtime, repo):
    ok_id, bad_id = process_all(runtime, ["A resume", "   \n\t "])

    assert repo.history(ok_id) == [JobStatus.QUEUED, JobStatus.PROCESSING, JobStatus.COMPLETED]
    assert repo.history(bad_id) == [JobStatus.QUEUED, JobStatus.PROCESSING, JobStatus.FAILED]
    for job_id in (ok_id, bad_id):
        _assert_terminal_invariants(repo.get_job(job_id))


def test_whitespace_only_text_fails(runtime, repo, analyzer):
    (job_id,) = process_all(runtime, ["  \n  "])

    job = repo.get_job(job_id)
    assert job.status == JobStatus.FAILED
    assert "Could not extract text" in job.error_message
    assert job.result is None
    # progress is frozen where the failure happened
    assert job.progress == 30
    assert analyzer.calls == []


def test_corrupt_file_fails_and_queue_keeps_going(runtime, repo):
    bad_id, good_id = process_all(runtime, ["CORRUPT bytes", "A resume"])

    bad = repo.get_job(bad_id)
    assert bad.status == JobStatus.FAILED
    assert bad.error_message == "Could not parse PDF content."
    assert bad.progress == 10
    assert repo.get_job(good_id).status == JobStatus.COMPLETED


def test_response_missing_assigned_tags_fails_without_halting_queue(repo, extractor):
    raw = json.dumps({"summary": "s", "extractedInformation": {"candidateName": "x", "emailAddress": "y"}})
    runtime = AnalysisRuntime(repository=repo, extractor=extractor, analyzer=FakeAnalyzer(raw_response=raw))

    first, second = process_all(runtime, ["A resume", "Another resume"])

    for job_id in (first, second):
        job = repo.get_job(job_id)
        assert job.status == JobStatus.FAILED
        assert "format" in job.error_message
        _assert_terminal_invariants(job)


def test_missing_ai_credentials_fails_job(repo, extractor):
    runtime = AnalysisRuntime(repository=repo, extractor=extractor, analyzer=LangChainResumeAnalyzer(llm=None))

    (job_id,) = process_all(runtime, ["A resume"])

    job = repo.get_job(job_id)
    assert job.status == JobStatus.FAILED
    assert "not configured" in job.error_message


def test_blank_pdf_with_real_extractor_fails(repo, analyzer):
    from io import BytesIO

    from pypdf import PdfWriter

    writer = PdfWriter()
    writer.add_blank_page(width=612, height=792)
    buffer = BytesIO()
    writer.write(buffer)

    runtime = AnalysisRuntime(repository=repo, extractor=DefaultTextExtractor(), analyzer=analyzer)

    async def scenario():
        await runtime.queue.start()
        try:
            receipt = runtime.service.submit(
                file_name="blank.pdf",
                data=buffer.getvalue(),
                content_type="application/pdf",
                fields=FIELDS,
                tags=TAGS,
            )
            await runtime.queue.join()
        finally:
            await runtime.queue.stop()
        return receipt.job_id

    job = repo.get_job(asyncio.run(scenario()))
    assert job.status == JobStatus.FAILED
    assert "Could not extract text" in job.error_message


def test_unrecognized_format_is_recorded_not_raised(repo, extractor, analyzer):
    params = AnalysisParameters(fields=parse_extraction_fields(FIELDS), tags=parse_tags(TAGS))
    job_id = repo.create_job(FileMetadata("a.png", 3, "image/png", DocumentFormat.PDF), params)
    worker = AnalysisWorker(repository=repo, extractor=extractor, analyzer=analyzer)

    asyncio.run(worker.run_job(AnalysisRequest(job_id=job_id, data=b"png", document_format="png", parameters=params)))

    job = repo.get_job(job_id)
    assert job.status == JobStatus.FAILED
    assert "Unsupported file type" in job.error_message


def test_jobs_run_one_at_a_time_in_submission_order(repo, extractor):
    runtime = AnalysisRuntime(repository=repo, extractor=extractor, analyzer=FakeAnalyzer(delay=0.01))

    ids = process_all(runtime, ["first", "second", "third"])

    processing_order = [jid for jid, status in repo.transitions if status == JobStatus.PROCESSING]
    assert processing_order == ids
    # each job is terminal before the next one starts processing
    events = [(jid, status) for jid, status in repo.transitions if status != JobStatus.QUEUED]
    for earlier, later in zip(ids, ids[1:]):
        earlier_done = next(i for i, (jid, st) in enumerate(events) if jid == earlier and st.is_terminal)
        later_start = events.index((later, JobStatus.PROCESSING))
        assert earlier_done < later_start


def test_submission_returns_before_processing(runtime, repo, extractor):
    async def scenario():
        await runtime.queue.start()
        try:
            receipt = submit_pdf(runtime)
            snapshot = runtime.service.get_status(receipt.job_id)
            await runtime.queue.join()
        finally:
            await runtime.queue.stop()
        return receipt, snapshot

    receipt, snapshot = asyncio.run(scenario())
    assert receipt.status == JobStatus.QUEUED
    assert snapshot.status == JobStatus.QUEUED
    assert snapshot.progress == 0
    assert snapshot.estimated_seconds_remaining is not None
    assert repo.get_job(receipt.job_id).status == JobStatus.COMPLETED


def test_parameters_are_snapshotted_at_submission(runtime, repo, analyzer):
    fields = [dict(f) for f in FIELDS]

    async def scenario():
        receipt = submit_pdf(runtime, fields=fields)
        # admin edits the field list after submission
        fields.append({"key": "phone", "label": "Phone"})
        fields[0]["key"] = "renamed"
        await runtime.queue.start()
        try:
            await runtime.queue.join()
        finally:
            await runtime.queue.stop()
        return receipt.job_id

    job = repo.get_job(asyncio.run(scenario()))
    assert [f.key for f in job.parameters.fields] == ["candidateName", "emailAddress"]
    assert set(job.result.extracted_fields) == {"candidateName", "emailAddress"}


def test_terminal_reads_are_stable(runtime):
    (job_id,) = process_all(runtime, ["A resume"])

    first = runtime.service.get_status(job_id)
    second = runtime.service.get_status(job_id)
    assert first.result == second.result
    assert first.error == second.error is None
    assert first.progress == second.progress == 100


def test_stop_leaves_unprocessed_jobs_queued():
    repo = RecordingRepository()
    blocker = FakeAnalyzer(delay=10)
    runtime = AnalysisRuntime(repository=repo, extractor=FakeExtractor(), analyzer=blocker)

    async def scenario():
        await runtime.queue.start()
        first = submit_pdf(runtime).job_id
        second = submit_pdf(runtime).job_id
        await asyncio.sleep(0.05)
        await runtime.queue.stop()
        return first, second

    first, second = asyncio.run(scenario())
    assert repo.get_job(first).status == JobStatus.PROCESSING
    assert repo.get_job(second).status == JobStatus.QUEUED
    assert not runtime.queue.running


class LockedOnPickupRepository(RecordingRepository):
    """Raises like a busy database on pickup writes for the jobs in `locked_ids`."""

    def __init__(self, always=False):
        super().__init__()
        self.locked_ids = set()
        self.always = always

    def update_job(self, job_id, status=None, **kwargs):
        if job_id in self.locked_ids and status == JobStatus.PROCESSING:
            if not self.always:
                self.locked_ids.discard(job_id)
            raise RuntimeError("database is locked")
        return super().update_job(job_id, status=status, **kwargs)


def _queue_jobs(repo, count):
    params = AnalysisParameters(fields=parse_extraction_fields(FIELDS), tags=parse_tags(TAGS))
    meta = FileMetadata("r.pdf", 4, "application/pdf", DocumentFormat.PDF)
    return [AnalysisRequest(repo.create_job(meta, params), b"A resume", DocumentFormat.PDF, params) for _ in range(count)]


def _drain(repo, extractor, analyzer, requests):
    queue = AnalysisJobQueue(AnalysisWorker(repository=repo, extractor=extractor, analyzer=analyzer))

    async def scenario():
        await queue.start()
        try:
            for request in requests:
                queue.enqueue(request)
            await queue.join()
        finally:
            await queue.stop()

    asyncio.run(scenario())


def test_failed_pickup_write_fails_the_job(extractor, analyzer):
    repo = LockedOnPickupRepository()
    locked, ok = _queue_jobs(repo, 2)
    repo.locked_ids.add(locked.job_id)

    _drain(repo, extractor, analyzer, [locked, ok])

    job = repo.get_job(locked.job_id)
    assert job.status == JobStatus.FAILED
    assert job.error_message == "database is locked"
    assert repo.history(locked.job_id) == [JobStatus.QUEUED, JobStatus.PROCESSING, JobStatus.FAILED]
    _assert_terminal_invariants(job)
    assert repo.get_job(ok.job_id).status == JobStatus.COMPLETED


def test_queue_survives_an_unwritable_job(extractor, analyzer):
    repo = LockedOnPickupRepository(always=True)
    stuck, ok = _queue_jobs(repo, 2)
    repo.locked_ids.add(stuck.job_id)

    _drain(repo, extractor, analyzer, [stuck, ok])

    assert repo.get_job(ok.job_id).status == JobStatus.COMPLETED
    assert repo.history(ok.job_id) == [JobStatus.QUEUED, JobStatus.PROCESSING, JobStatus.COMPLETED]
