import json
from types import SimpleNamespace

import openai
import pytest

from voicedial.errors import ResolutionError
from voicedial.models import MatchVerdict, VerdictKind
from voicedial.resolver import (
    FuzzyContactResolver,
    OpenAIContactResolver,
    ResolutionService,
    build_resolver,
    normalize_transcript,
    parse_resolution_payload,
    verdict_from_names,
)

from conftest import StubResolver


def test_normalize_strips_leading_command_words():
    assert normalize_transcript("Call Mom") == "mom"
    assert normalize_transcript("  dial   John Smith. ") == "john smith"
    assert normalize_transcript("please call mom") == "please call mom"
    assert normalize_transcript("call") == ""


def test_normalize_keeps_names_containing_command_words():
    assert normalize_transcript("call Callum") == "callum"


def test_call_mom_is_single_match():
    service = ResolutionService(FuzzyContactResolver())
    verdict = service.resolve("call mom", ["Mom", "John Smith", "Jane Doe"])
    assert verdict == MatchVerdict.single("Mom")


def test_shared_first_name_is_ambiguous():
    service = ResolutionService(FuzzyContactResolver())
    verdict = service.resolve("call john", ["John Smith", "John Davis"])
    assert verdict.kind is VerdictKind.AMBIGUOUS
    assert set(verdict.names) == {"John Smith", "John Davis"}


def test_unknown_name_is_no_match():
    service = ResolutionService(FuzzyContactResolver())
    verdict = service.resolve("call nobody", ["Mom", "John Smith"])
    assert verdict.kind is VerdictKind.NONE
    assert verdict.names == ()


def test_fuzzy_matches_close_spelling_and_punctuation():
    resolver = FuzzyContactResolver()
    names = ["Mom", "Dr. Anya Sharma", "Jane Doe"]
    assert resolver.resolve("anya sharma", names) == MatchVerdict.single("Dr. Anya Sharma")
    assert resolver.resolve("jayne", names) == MatchVerdict.single("Jane Doe")


def test_exact_match_skips_backend():
    backend = StubResolver(verdict=MatchVerdict.ambiguous(["Mom", "Jane Doe"]))
    service = ResolutionService(backend)
    assert service.resolve("Call MOM", ["Mom", "Jane Doe"]) == MatchVerdict.single("Mom")
    assert backend.calls == []


def test_backend_receives_normalized_transcript():
    backend = StubResolver(verdict=MatchVerdict.single("Jane Doe"))
    service = ResolutionService(backend)
    service.resolve("Dial Janey", ["Mom", "Jane Doe", "Mom"])
    assert backend.calls == [("janey", ["Mom", "Jane Doe"])]


def test_empty_candidate_set_is_rejected():
    backend = StubResolver()
    with pytest.raises(ValueError):
        ResolutionService(backend).resolve("call mom", [])
    assert backend.calls == []


def test_fabricated_names_never_escape_the_service():
    candidates = ["Mom", "John Smith"]
    backend = StubResolver(verdict=MatchVerdict.single("Grandma"))
    assert ResolutionService(backend).resolve("call gran", candidates).kind is VerdictKind.NONE

    backend = StubResolver(verdict=MatchVerdict.ambiguous(["Grandma", "john smith"]))
    verdict = ResolutionService(backend).resolve("call g", candidates)
    assert verdict == MatchVerdict.ambiguous(["John Smith"])
    assert set(verdict.names) <= set(candidates)


def test_backend_failure_propagates_as_resolution_error():
    backend = StubResolver(error=ResolutionError("boom"))
    with pytest.raises(ResolutionError):
        ResolutionService(backend).resolve("call jane", ["Mom"])


def test_verdict_from_names_dedupes_and_keeps_canonical_spelling():
    verdict = verdict_from_names(["jane doe", "JANE DOE", "Mom"], ["Mom", "Jane Doe"])
    assert verdict == MatchVerdict.ambiguous(["Jane Doe", "Mom"])


def test_parse_payload_variants():
    names = ["Mom", "John Smith", "John Davis"]
    assert parse_resolution_payload({"match": "mom", "candidates": []}, names) == (
        MatchVerdict.single("Mom")
    )
    assert parse_resolution_payload(
        {"match": None, "candidates": ["John Smith", "John Davis"]}, names
    ).kind is VerdictKind.AMBIGUOUS
    assert parse_resolution_payload({"contactToCall": "John Davis"}, names) == (
        MatchVerdict.single("John Davis")
    )
    assert parse_resolution_payload({"match": None, "candidates": []}, names) == (
        MatchVerdict.none()
    )
    with pytest.raises(ResolutionError):
        parse_resolution_payload(["Mom"], names)


class _FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def test_openai_resolver_sends_contract_and_parses_reply():
    completions = _FakeCompletions(
        content=json.dumps({"match": None, "candidates": ["John Smith", "John Davis"]})
    )
    resolver = OpenAIContactResolver(model="test-model", client=_client(completions))
    verdict = resolver.resolve("john", ["John Smith", "John Davis"])
    assert verdict.kind is VerdictKind.AMBIGUOUS
    request = json.loads(completions.kwargs["messages"][1]["content"])
    assert request == {"transcript": "john", "candidates": ["John Smith", "John Davis"]}
    assert completions.kwargs["response_format"]["type"] == "json_schema"
    assert completions.kwargs["model"] == "test-model"


def test_openai_resolver_failures_are_resolution_errors():
    failing = _FakeCompletions(error=openai.OpenAIError("unreachable"))
    with pytest.raises(ResolutionError):
        OpenAIContactResolver(client=_client(failing)).resolve("mom", ["Mom"])

    garbage = _FakeCompletions(content="not json")
    with pytest.raises(ResolutionError):
        OpenAIContactResolver(client=_client(garbage)).resolve("mom", ["Mom"])

    empty = _FakeCompletions(content="")
    with pytest.raises(ResolutionError):
        OpenAIContactResolver(client=_client(empty)).resolve("mom", ["Mom"])


def test_missing_api_key_is_resolution_error(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(ResolutionError):
        OpenAIContactResolver().resolve("mom", ["Mom"])


def test_build_resolver_selects_backend():
    assert isinstance(build_resolver("fuzzy").backend, FuzzyContactResolver)
    assert isinstance(build_resolver("openai").backend, OpenAIContactResolver)
    with pytest.raises(ValueError):
        build_resolver("magic")
