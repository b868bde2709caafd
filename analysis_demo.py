"""
Example: run one resume through the analysis pipeline using pypdf/Docling + SQLite + OpenAI.

Usage:
    OPENAI_API_KEY=... python3 analysis_demo.py --file resume.pdf \
        --fields '[{"key": "candidateName", "label": "Candidate Name"}]' \
        --tags '["Python", "Project Management"]'
"""

import argparse
import asyncio
import json
import mimetypes
from pathlib import Path

from resume_analyzer.analysis import AnalysisConfig, build_runtime

DEFAULT_FIELDS = [
    {"key": "candidateName", "label": "Candidate Name"},
    {"key": "emailAddress", "label": "Email Address"},
    {"key": "yearsOfExperience", "label": "Years of Experience"},
]
DEFAULT_TAGS = ["Python", "JavaScript", "Project Management", "Data Analysis", "Leadership"]


async def run(args) -> None:
    config = AnalysisConfig.from_env()
    config.database_url = f"sqlite+pysqlite:///{args.db}"
    runtime = build_runtime(config)

    content_type = mimetypes.guess_type(args.file.name)[0] or "application/octet-stream"
    fields = json.loads(args.fields) if args.fields else DEFAULT_FIELDS
    tags = json.loads(args.tags) if args.tags else DEFAULT_TAGS

    await runtime.start()
    try:
        receipt = runtime.service.submit(
            file_name=args.file.name,
            data=args.file.read_bytes(),
            content_type=content_type,
            fields=fields,
            tags=tags,
        )
        print(f"Submitted job {receipt.job_id} for {args.file}")
        await runtime.queue.join()
    finally:
        await runtime.stop()

    view = runtime.service.get_status(receipt.job_id)
    print(f"Job finished with status={view.status.value}, error={view.error}")
    if view.result:
        print(json.dumps(view.result.to_dict(), indent=2, ensure_ascii=False))


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--file", required=True, type=Path, help="Path to a PDF or DOCX resume")
    parser.add_argument("--fields", default=None, help="JSON list of extraction fields")
    parser.add_argument("--tags", default=None, help="JSON list of tag names")
    parser.add_argument("--db", default=Path("./data/resume_analyzer.db"), type=Path, help="SQLite DB path")
    args = parser.parse_args()

    if not args.file.exists():
        raise FileNotFoundError(f"Resume not found: {args.file}")
    asyncio.run(run(args))


if __name__ == "__main__":
    main()
