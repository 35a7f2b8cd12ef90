"""Contact resolution: transcript + candidate names -> MatchVerdict.

The matcher behind :class:`ResolutionService` is swappable. Two backends
ship here: a local difflib matcher and an OpenAI chat model constrained by a
JSON schema. Whatever the backend says, the service only ever returns names
taken from the candidate set it was given.
"""

from __future__ import annotations

import json
import logging
import os
import re
from difflib import SequenceMatcher
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence

import openai

from .errors import ResolutionError
from .models import MatchVerdict, VerdictKind

logger = logging.getLogger("voicedial")

COMMAND_WORDS = ("call", "dial", "phone", "ring")

RESOLUTION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "match": {"type": ["string", "null"]},
        "candidates": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["match", "candidates"],
    "additionalProperties": False,
}

RESOLUTION_PROMPT = (
    "You pick the contact a user wants to call.\n"
    "The user message is JSON with 'transcript' (what the user said) and "
    "'candidates' (the contact names available).\n"
    "- Match case-insensitively; allow nicknames, phonetic spellings and "
    "partial names.\n"
    "- If exactly one contact clearly matches, put its name in 'match' and "
    "leave 'candidates' empty.\n"
    "- If several contacts plausibly match (for example a shared first "
    "name), set 'match' to null and list them all in 'candidates'.\n"
    "- If nothing matches, set 'match' to null and 'candidates' to [].\n"
    "- Only use names copied exactly from 'candidates'. Never invent names."
)


def _clean(value: str) -> str:
    value = re.sub(r"[^\w\s']", " ", value or "")
    return re.sub(r"\s+", " ", value).strip().lower()


def normalize_transcript(text: str) -> str:
    """Lower-case the transcript and drop leading command words."""
    words = _clean(text).split()
    while words and words[0] in COMMAND_WORDS:
        words = words[1:]
    return " ".join(words)


def verdict_from_names(
    names: Iterable[str], candidate_names: Sequence[str]
) -> MatchVerdict:
    canonical: Dict[str, str] = {}
    for candidate in candidate_names:
        canonical.setdefault(candidate.strip().lower(), candidate)

    found: List[str] = []
    for name in names:
        if not isinstance(name, str):
            continue
        match = canonical.get(name.strip().lower())
        if match is None:
            logger.warning("Resolver returned unknown contact %r; dropped", name)
            continue
        if match not in found:
            found.append(match)

    if len(found) == 1:
        return MatchVerdict.single(found[0])
    if found:
        return MatchVerdict.ambiguous(found)
    return MatchVerdict.none()


def parse_resolution_payload(
    payload: Any, candidate_names: Sequence[str]
) -> MatchVerdict:
    if not isinstance(payload, dict):
        raise ResolutionError("Resolution response is not a JSON object.")
    # contactToCall/suggestions are accepted from older backends.
    match = payload.get("match", payload.get("contactToCall"))
    if isinstance(match, str) and match.strip():
        verdict = verdict_from_names([match], candidate_names)
        if verdict.kind is VerdictKind.SINGLE:
            return verdict
    names = payload.get("candidates", payload.get("suggestions")) or []
    if not isinstance(names, list):
        raise ResolutionError("Resolution 'candidates' must be a list.")
    return verdict_from_names(names, candidate_names)


class ContactResolver(Protocol):
    def resolve(self, transcript: str, candidate_names: Sequence[str]) -> MatchVerdict:
        ...


class FuzzyContactResolver:
    """Local matcher: full name, any name word, or a close spelling."""

    def __init__(self, cutoff: float = 0.8) -> None:
        self.cutoff = cutoff

    def _score(self, query: str, name: str) -> float:
        target = _clean(name)
        if not target:
            return 0.0
        if query == target:
            return 2.0
        tokens = target.split()
        query_tokens = query.split()
        if query_tokens and all(token in tokens for token in query_tokens):
            return 1.5
        best = SequenceMatcher(None, query, target).ratio()
        if len(query_tokens) == 1:
            for token in tokens:
                best = max(best, SequenceMatcher(None, query, token).ratio())
        return best

    def resolve(self, transcript: str, candidate_names: Sequence[str]) -> MatchVerdict:
        query = normalize_transcript(transcript)
        if not query:
            return MatchVerdict.none()
        scored = []
        for index, name in enumerate(candidate_names):
            score = self._score(query, name)
            if score >= 2.0:
                return MatchVerdict.single(name)
            if score >= self.cutoff:
                scored.append((-score, index, name))
        scored.sort()
        return verdict_from_names([name for _, _, name in scored], candidate_names)


def build_openai_client(
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
    timeout_s: float = 15.0,
) -> "openai.OpenAI":
    key = api_key or os.environ.get("OPENAI_API_KEY")
    if not key:
        raise ResolutionError("OpenAI API key is not set (config or OPENAI_API_KEY).")
    return openai.OpenAI(
        api_key=key, base_url=base_url, timeout=timeout_s, max_retries=0
    )


def request_json(
    client: Any,
    model: str,
    system_prompt: str,
    request: Dict[str, Any],
    schema_name: str,
    schema: Dict[str, Any],
) -> Any:
    """One structured-output chat completion; returns the decoded JSON."""
    try:
        response = client.chat.completions.create(
            model=model,
            temperature=0,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": json.dumps(request, ensure_ascii=False)},
            ],
            response_format={
                "type": "json_schema",
                "json_schema": {"name": schema_name, "strict": True, "schema": schema},
            },
        )
    except openai.OpenAIError as exc:
        raise ResolutionError(f"{schema_name} request failed: {exc}") from exc

    choices = getattr(response, "choices", None) or []
    content = choices[0].message.content if choices else None
    if not isinstance(content, str) or not content.strip():
        raise ResolutionError(f"{schema_name} response was empty.")
    try:
        return json.loads(content)
    except ValueError as exc:
        raise ResolutionError(f"{schema_name} response was not JSON.") from exc


class OpenAIContactResolver:
    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_s: float = 15.0,
        client: Any = None,
    ) -> None:
        self.model = model
        self.api_key = api_key
        self.base_url = base_url
        self.timeout_s = timeout_s
        self._client = client

    def _ensure_client(self) -> Any:
        if self._client is None:
            self._client = build_openai_client(
                self.api_key, self.base_url, self.timeout_s
            )
        return self._client

    def resolve(self, transcript: str, candidate_names: Sequence[str]) -> MatchVerdict:
        payload = request_json(
            self._ensure_client(),
            self.model,
            RESOLUTION_PROMPT,
            {"transcript": transcript, "candidates": list(candidate_names)},
            "contact_resolution",
            RESOLUTION_SCHEMA,
        )
        return parse_resolution_payload(payload, candidate_names)


class ResolutionService:
    """Caller-side contract around a resolver backend."""

    def __init__(self, backend: ContactResolver) -> None:
        self.backend = backend

    def resolve(self, transcript: str, candidate_names: Iterable[str]) -> MatchVerdict:
        candidates = list(dict.fromkeys(candidate_names))
        if not candidates:
            raise ValueError("resolve() needs at least one candidate name.")

        query = normalize_transcript(transcript)
        if not query:
            return MatchVerdict.none()
        for name in candidates:
            if _clean(name) == query:
                logger.debug("Exact match for %r", query)
                return MatchVerdict.single(name)

        verdict = self.backend.resolve(query, candidates)
        checked = verdict_from_names(verdict.names, candidates)
        if verdict.kind is VerdictKind.AMBIGUOUS and checked.kind is VerdictKind.SINGLE:
            checked = MatchVerdict.ambiguous(checked.names)
        elif verdict.kind is VerdictKind.NONE:
            checked = MatchVerdict.none()
        logger.info("Resolved %r -> %s %s", query, checked.kind.value, list(checked.names))
        return checked


def build_resolver(
    backend: str = "fuzzy",
    model: str = "gpt-4o-mini",
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
    timeout_s: float = 15.0,
    fuzzy_cutoff: float = 0.8,
) -> ResolutionService:
    if backend == "openai":
        return ResolutionService(
            OpenAIContactResolver(
                model=model, api_key=api_key, base_url=base_url, timeout_s=timeout_s
            )
        )
    if backend == "fuzzy":
        return ResolutionService(FuzzyContactResolver(cutoff=fuzzy_cutoff))
    raise ValueError(f"Unknown resolver backend: {backend}")
