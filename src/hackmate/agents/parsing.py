"""Best-effort recovery of structured data from model output.

Each parser tries three tiers in order and reports which one succeeded:

1. ``strict``: the exact format the prompt asked for.
2. ``loose_json``: a JSON object found anywhere in the text, with code fences
   and surrounding prose ignored.
3. ``field_extraction``: per-field regular expressions, tolerant of unescaped
   content and alternate field names.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL | re.IGNORECASE)
_FENCE_LINE = re.compile(r"^\s*```[\w-]*\s*$", re.MULTILINE)


@dataclass
class ParseOutcome:
    value: dict[str, Any]
    tier: str


def _try_load_dict(raw: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return None
    if not isinstance(parsed, dict):
        return None
    return parsed


def _balanced_objects(text: str):
    """Yield each top-level ``{...}`` span, respecting JSON strings."""
    depth = 0
    start = -1
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"' and depth > 0:
            in_string = True
        elif ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                yield text[start : i + 1]


def find_json_object(text: str) -> dict[str, Any] | None:
    """First JSON object in ``text``, looking inside fences and prose."""
    fenced = _FENCED_JSON.search(text)
    if fenced is not None:
        payload = _try_load_dict(fenced.group(1))
        if payload is not None:
            return payload

    for candidate in _balanced_objects(text):
        payload = _try_load_dict(candidate)
        if payload is not None:
            return payload

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return _try_load_dict(text[start : end + 1])


def strip_fences(text: str) -> str:
    return _FENCE_LINE.sub("", text).strip()


_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", '"': '"', "\\": "\\", "/": "/"}
_ESCAPE = re.compile(r"\\(.)", re.DOTALL)


def _unescape(value: str) -> str:
    """Decode a JSON string body; unknown escapes keep their backslash."""
    try:
        return json.loads(f'"{value}"', strict=False)
    except ValueError:
        return _ESCAPE.sub(lambda m: _ESCAPES.get(m.group(1), m.group(0)), value)


def extract_string(text: str, names: tuple[str, ...]) -> str | None:
    """Value of the first ``"name": "..."`` pair found for any alias."""
    for name in names:
        match = re.search(
            rf'"{re.escape(name)}"\s*:\s*"((?:[^"\\]|\\.)*)"', text, re.DOTALL | re.IGNORECASE
        )
        if match:
            return _unescape(match.group(1))
    return None


def extract_string_list(text: str, names: tuple[str, ...]) -> list[str] | None:
    for name in names:
        match = re.search(
            rf'"{re.escape(name)}"\s*:\s*\[(.*?)\]', text, re.DOTALL | re.IGNORECASE
        )
        if match:
            items = re.findall(r'"((?:[^"\\]|\\.)*)"', match.group(1))
            return [_unescape(i) for i in items]
    return None


def first_key(payload: dict[str, Any], names: tuple[str, ...]) -> Any:
    lowered = {str(k).lower(): v for k, v in payload.items()}
    for name in names:
        if name in lowered and lowered[name] not in (None, ""):
            return lowered[name]
    return None


def _string_list(value: Any) -> list[str]:
    if isinstance(value, list):
        return [str(v) for v in value if v not in (None, "")]
    if isinstance(value, str) and value.strip():
        return [value]
    return []


class OutputParser:
    """Base class: subclasses implement the three tiers and ``normalize``."""

    def parse_strict(self, text: str) -> dict[str, Any] | None:
        payload = _try_load_dict(strip_fences(text))
        return self.normalize(payload) if payload is not None else None

    def parse_loose_json(self, text: str) -> dict[str, Any] | None:
        payload = find_json_object(text)
        return self.normalize(payload) if payload is not None else None

    def parse_field_extraction(self, text: str) -> dict[str, Any] | None:
        return None

    def normalize(self, payload: dict[str, Any]) -> dict[str, Any] | None:
        return payload

    def parse(self, text: str) -> ParseOutcome | None:
        if not text or not text.strip():
            return None
        for tier, method in (
            ("strict", self.parse_strict),
            ("loose_json", self.parse_loose_json),
            ("field_extraction", self.parse_field_extraction),
        ):
            value = method(text)
            if value:
                return ParseOutcome(value=value, tier=tier)
        return None


# ── Coder ─────────────────────────────────────────────────────────────────────

_STRICT_FILENAME = re.compile(r"FILENAME\|\|\|(.*?)\|\|\|", re.DOTALL)
_STRICT_DESCRIPTION = re.compile(r"DESCRIPTION\|\|\|(.*?)\|\|\|", re.DOTALL)
_STRICT_CODE = re.compile(r"CODE\|\|\|(.*?)\|\|\|END", re.DOTALL)

FILENAME_KEYS = ("filename", "file_name", "file", "path")
CODE_KEYS = ("code", "content", "source")
DESCRIPTION_KEYS = ("description", "summary", "explanation")


class CodeOutputParser(OutputParser):
    """Parses ``{filename, description, code}`` from coder output."""

    def parse_strict(self, text):
        filename = _STRICT_FILENAME.search(text)
        code = _STRICT_CODE.search(text)
        if not (filename and code):
            return None
        description = _STRICT_DESCRIPTION.search(text)
        return self.normalize({
            "filename": filename.group(1),
            "description": description.group(1) if description else "",
            "code": code.group(1),
        })

    def parse_field_extraction(self, text):
        return self.normalize({
            "filename": extract_string(text, FILENAME_KEYS),
            "description": extract_string(text, DESCRIPTION_KEYS),
            "code": extract_string(text, CODE_KEYS),
        })

    def normalize(self, payload):
        code = first_key(payload, CODE_KEYS)
        if not isinstance(code, str) or not code.strip():
            return None
        filename = first_key(payload, FILENAME_KEYS)
        description = first_key(payload, DESCRIPTION_KEYS)
        return {
            "filename": str(filename).strip() if filename else "",
            "description": str(description).strip() if description else "",
            "code": code.strip("\n"),
        }


# ── Planner ───────────────────────────────────────────────────────────────────

TITLE_KEYS = ("title", "name")
TASK_DESCRIPTION_KEYS = ("description", "details")
AGENT_KEYS = ("agent", "assignee", "role")


class PlanOutputParser(OutputParser):
    """Parses ``{summary, tasks: [{title, description, agent, metadata}]}``."""

    def parse_field_extraction(self, text):
        tasks = []
        for block in _balanced_inner_objects(text):
            title = extract_string(block, TITLE_KEYS)
            if not title:
                continue
            task_type = extract_string(block, ("type",))
            tasks.append({
                "title": title,
                "description": extract_string(block, TASK_DESCRIPTION_KEYS) or "",
                "agent": extract_string(block, AGENT_KEYS) or "",
                "metadata": {"type": task_type} if task_type else {},
            })
        if not tasks:
            return None
        return {"summary": extract_string(text, ("summary",)) or "", "tasks": tasks}

    def normalize(self, payload):
        raw_tasks = first_key(payload, ("tasks", "steps", "plan"))
        if not isinstance(raw_tasks, list):
            return None
        tasks = []
        for item in raw_tasks:
            if not isinstance(item, dict):
                continue
            title = first_key(item, TITLE_KEYS)
            if not title:
                continue
            metadata = item.get("metadata")
            tasks.append({
                "title": str(title),
                "description": str(first_key(item, TASK_DESCRIPTION_KEYS) or ""),
                "agent": str(first_key(item, AGENT_KEYS) or ""),
                "metadata": metadata if isinstance(metadata, dict) else {},
            })
        if not tasks:
            return None
        return {"summary": str(payload.get("summary") or ""), "tasks": tasks}


def _balanced_inner_objects(text: str):
    """Yield ``{...}`` spans that contain no nested braces."""
    return re.findall(r"\{[^{}]*\}", text, re.DOTALL)


# ── Debugger ──────────────────────────────────────────────────────────────────

DEBUG_STATUSES = ("passed", "failed", "needs_attention")


class DebugOutputParser(OutputParser):
    """Parses ``{issues, fixes, testSuggestions, status}``."""

    list_keys = {
        "issues": ("issues", "problems"),
        "fixes": ("fixes", "solutions"),
        "test_suggestions": ("testsuggestions", "test_suggestions", "testSuggestions", "tests"),
    }

    def parse_field_extraction(self, text):
        payload: dict[str, Any] = {}
        for field_name, names in self.list_keys.items():
            values = extract_string_list(text, names)
            if values is not None:
                payload[field_name] = values
        status = extract_string(text, ("status",))
        if status:
            payload["status"] = status
        return self.normalize(payload) if payload else None

    def normalize(self, payload):
        # An empty review is valid; only payloads without any review key are misses.
        known = {"status"} | {n.lower() for names in self.list_keys.values() for n in names}
        if not known & {str(k).lower() for k in payload}:
            return None
        result: dict[str, Any] = {}
        for field_name, names in self.list_keys.items():
            result[field_name] = _string_list(first_key(payload, tuple(n.lower() for n in names)))
        status = str(first_key(payload, ("status",)) or "").strip().lower().replace(" ", "_")
        result["status"] = status if status in DEBUG_STATUSES else "needs_attention"
        return result


# ── Analysis ──────────────────────────────────────────────────────────────────


class AnalysisOutputParser(OutputParser):
    """Parses ``{summary, recommendations}``."""

    def parse_field_extraction(self, text):
        return self.normalize({
            "summary": extract_string(text, ("summary", "analysis")),
            "recommendations": extract_string_list(text, ("recommendations", "steps")),
        })

    def normalize(self, payload):
        summary = first_key(payload, ("summary", "analysis"))
        if not summary:
            return None
        return {
            "summary": str(summary),
            "recommendations": _string_list(first_key(payload, ("recommendations", "steps"))),
        }
