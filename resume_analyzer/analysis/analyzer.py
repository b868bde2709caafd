from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Dict, List, Optional, Protocol, Sequence

from langchain_core.prompts import ChatPromptTemplate

from .errors import AnalysisResponseError, AnalyzerConfigurationError
from .models import AnalysisResult, ExtractionField, Tag

logger = logging.getLogger(__name__)

MISSING_VALUE = "N/A"

_FENCE_RE = re.compile(r"^```[\w-]*\s*\n?(.*?)\n?\s*```$", re.DOTALL)

ANALYSIS_PROMPT = ChatPromptTemplate.from_messages(
    [
        (
            "system",
            "You are a precise resume analyst. Return ONLY valid JSON, with no prose before or after it.",
        ),
        (
            "user",
            "Analyze this resume and extract information.\n\n"
            "Tasks:\n"
            "1. Summary: 200-300 word professional summary\n"
            "2. Extract:\n{field_instructions}\n"
            "3. Tags: Select 3-5 relevant tags from: {tag_list}\n\n"
            "Resume:\n{resume_text}\n\n"
            "JSON format:\n{json_format}\n\n"
            'Use "N/A" for missing info. Select tags only from: {tag_list}',
        ),
    ]
)


class ResumeAnalyzer(Protocol):
    async def analyze(
        self, text: str, fields: Sequence[ExtractionField], tags: Sequence[Tag]
    ) -> AnalysisResult:
        ...


def clean_json_string(raw: str) -> str:
    """
    Strip markdown fences and any prose around the outermost JSON object.
    """
    cleaned = raw.strip()
    fenced = _FENCE_RE.match(cleaned)
    if fenced:
        cleaned = fenced.group(1).strip()
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start != -1 and end > start:
        cleaned = cleaned[start : end + 1]
    return cleaned


def parse_analysis_response(
    raw: str, fields: Sequence[ExtractionField], tags: Sequence[Tag]
) -> AnalysisResult:
    """
    Turn the model's raw text into an AnalysisResult or raise
    AnalysisResponseError. Tags are mapped onto the vocabulary's canonical
    names; anything outside the vocabulary is dropped.
    """
    if not raw or not raw.strip():
        raise AnalysisResponseError("Empty response from AI analysis service")

    try:
        payload = json.loads(clean_json_string(raw))
    except ValueError as exc:
        raise AnalysisResponseError(f"Failed to parse AI response as JSON: {exc}") from exc

    extracted = payload.get("extractedInformation", payload.get("extractedFields")) if isinstance(payload, dict) else None
    if (
        not isinstance(payload, dict)
        or not isinstance(payload.get("summary"), str)
        or not isinstance(extracted, dict)
        or not isinstance(payload.get("assignedTags"), list)
    ):
        raise AnalysisResponseError("AI response format is incorrect - missing required fields")

    missing = [f.key for f in fields if f.key not in extracted]
    if missing:
        raise AnalysisResponseError(f"Missing required extraction fields: {', '.join(missing)}")

    extracted_fields = {
        f.key: MISSING_VALUE if extracted[f.key] is None else str(extracted[f.key]) for f in fields
    }

    vocabulary = {t.name.strip().lower(): t.name for t in tags}
    assigned: List[str] = []
    for tag in payload["assignedTags"]:
        canonical = vocabulary.get(str(tag).strip().lower())
        if canonical is None:
            logger.warning("Dropping tag outside the vocabulary: %r", tag)
            continue
        if canonical not in assigned:
            assigned.append(canonical)

    return AnalysisResult(
        summary=payload["summary"].strip(),
        extracted_fields=extracted_fields,
        assigned_tags=assigned,
    )


def build_prompt_variables(text: str, fields: Sequence[ExtractionField], tags: Sequence[Tag]) -> Dict[str, str]:
    field_instructions = "\n".join(
        f'- "{f.key}": ({f.label}{" - " + f.description if f.description else ""})' for f in fields
    )
    json_format = json.dumps(
        {
            "summary": "string",
            "extractedInformation": {f.key: "string or N/A" for f in fields},
            "assignedTags": ["string"],
        },
        indent=2,
    )
    return {
        "field_instructions": field_instructions,
        "tag_list": ", ".join(t.name for t in tags),
        "resume_text": text,
        "json_format": json_format,
    }


class LangChainResumeAnalyzer:
    """
    Resume analysis through a LangChain chat model (OpenAI by default).

    Malformed responses are retried up to `max_attempts` times inside a
    single call; the job itself is never retried.
    """

    def __init__(self, llm: Optional[Any], max_attempts: int = 2, retry_delay: float = 1.0):
        self.llm = llm
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay

    @classmethod
    def from_settings(
        cls,
        api_key: Optional[str],
        model: str = "gpt-4o-mini",
        temperature: float = 0.1,
        max_attempts: int = 2,
    ) -> "LangChainResumeAnalyzer":
        if not api_key:
            logger.error("OPENAI_API_KEY is not set; resume analysis jobs will fail until it is configured.")
            return cls(llm=None, max_attempts=max_attempts)

        from langchain_openai import ChatOpenAI

        llm = ChatOpenAI(model=model, temperature=temperature, api_key=api_key)
        return cls(llm=llm, max_attempts=max_attempts)

    async def analyze(
        self, text: str, fields: Sequence[ExtractionField], tags: Sequence[Tag]
    ) -> AnalysisResult:
        if self.llm is None:
            raise AnalyzerConfigurationError(
                "AI API key is not configured. Cannot analyze resume."
            )

        messages = ANALYSIS_PROMPT.format_messages(**build_prompt_variables(text, fields, tags))
        attempt = 1
        while True:
            response = await self.llm.ainvoke(messages)
            raw = getattr(response, "content", response)
            try:
                return parse_analysis_response(str(raw or ""), fields, tags)
            except AnalysisResponseError as exc:
                logger.warning("Analysis attempt %s/%s rejected: %s", attempt, self.max_attempts, exc)
                if attempt >= self.max_attempts:
                    raise
            await asyncio.sleep(self.retry_delay * attempt)
            attempt += 1
