"""
Tagged results for generated drafts.

Model output is asked to be JSON with `subject` and `body`, but replies arrive
fenced, half-quoted or as plain prose. Callers branch on the result type
instead of probing dict keys.
"""

import json
import re
from dataclasses import dataclass, field

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_SUBJECT_RE = re.compile(r'"subject"\s*:\s*"([^"]+)"')
_BODY_RE = re.compile(r'"body"\s*:\s*"([^"]+)"')


@dataclass(frozen=True, slots=True)
class StructuredDraft:
    subject: str
    body: str
    alternative_subjects: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class RawText:
    text: str


GeneratedText = StructuredDraft | RawText


def _strip_fences(text: str) -> str:
    return _FENCE_RE.sub("", text.strip()).strip()


def _from_json(text: str) -> StructuredDraft | None:
    try:
        data = json.loads(text)
    except ValueError:
        return None

    if not isinstance(data, dict):
        return None

    subject, body = data.get("subject"), data.get("body")
    if not isinstance(subject, str) or not isinstance(body, str):
        return None

    alternatives = data.get("alternativeSubjects", data.get("alternative_subjects")) or []
    if not isinstance(alternatives, list):
        alternatives = []
    return StructuredDraft(
        subject=subject,
        body=body,
        alternative_subjects=[a for a in alternatives if isinstance(a, str)],
    )


def _from_fragments(text: str) -> StructuredDraft | None:
    subject_match = _SUBJECT_RE.search(text)
    body_match = _BODY_RE.search(text)
    if not subject_match or not body_match:
        return None
    return StructuredDraft(
        subject=subject_match.group(1),
        body=body_match.group(1).replace("\\n", "\n"),
    )


def parse_generated_text(raw: str) -> GeneratedText:
    """
    Interpret a model reply.

    Full JSON first, then regex extraction of the two quoted fields, then the
    text as-is. Never raises.
    """
    cleaned = _strip_fences(raw or "")
    return _from_json(cleaned) or _from_fragments(cleaned) or RawText(text=(raw or "").strip())
