"""Tests for semspine.llm and the lenient reply parsing of the batch classifier."""

import json

import httpx
import pytest

from semspine.cascade.batch import LLMBatchClassifier, clamp_confidence, parse_json_array
from semspine.cascade.models import WordOccurrence
from semspine.core.errors import (
    BudgetExhaustedError,
    LLMError,
    LLMResponseError,
    MissingConfigError,
    NetworkError,
    RateLimitError,
)
from semspine.core.settings import SemSpineSettings
from semspine.llm.budget import TokenBudget
from semspine.llm.client import LLMClient
from semspine.llm.gateway import ChatCompletionsProvider
from semspine.llm.mock import MockLLMProvider
from semspine.llm.protocol import Message, TokenUsage
from semspine.llm.usage import LLMUsageRepository


def _occ(word: str) -> WordOccurrence:
    return WordOccurrence(word=word, context_hash=f"h-{word}")


# ---------------------------------------------------------------------------
# Reply parsing
# ---------------------------------------------------------------------------


class TestParseJsonArray:
    def test_plain_array(self):
        assert parse_json_array('[{"word": "a"}]') == [{"word": "a"}]

    def test_code_fence(self):
        content = 'Claro!\n```json\n[{"word": "saudade", "tagCode": "SE.TRI"}]\n```'
        assert parse_json_array(content)[0]["tagCode"] == "SE.TRI"

    def test_array_inside_prose(self):
        content = 'Aqui está: [{"word": "pago"}] espero ter ajudado'
        assert parse_json_array(content) == [{"word": "pago"}]

    def test_object_wrapping_a_list(self):
        assert parse_json_array('{"results": [{"word": "a"}]}') == [{"word": "a"}]

    def test_non_objects_dropped(self):
        assert parse_json_array('[1, "x", {"word": "a"}]') == [{"word": "a"}]

    @pytest.mark.parametrize("content", ["", "não sei", "[{broken", '{"a": 1}'])
    def test_garbage_is_empty(self, content):
        assert parse_json_array(content) == []


class TestClampConfidence:
    @pytest.mark.parametrize(
        "value, expected",
        [(0.7, 0.7), (1.4, 1.0), (-2, 0.0), ("0.3", 0.3), (None, 0.5), ("alta", 0.5), (float("nan"), 0.5)],
    )
    def test_values(self, value, expected):
        assert clamp_confidence(value) == expected


class TestBatchClassifier:
    def _classify(self, store, reply, words=("saudade", "pago")):
        client = LLMClient(MockLLMProvider(default_response=reply))
        classifier = LLMBatchClassifier(client)
        return classifier.classify([_occ(w) for w in words], store.load_active_tagsets())

    def test_alternate_key_names(self, store):
        reply = json.dumps([
            {"palavra": "saudade", "tagset_sugerido": "SE.TRI", "confianca": 0.8, "justificativa": "dor"},
            {"word": "pago", "tag_code": "na.geo", "confidence": 0.7},
        ])
        answer = self._classify(store, reply)
        assert answer.results[0].tag_code == "SE.TRI"
        assert answer.results[0].confidence == 0.8
        assert answer.results[0].justification == "dor"
        assert answer.results[1].tag_code == "NA.GEO"

    def test_located_by_id_even_out_of_order(self, store):
        reply = json.dumps([
            {"id": 2, "tagCode": "NA.GEO"},
            {"id": 1, "tagCode": "SE.TRI"},
        ])
        answer = self._classify(store, reply)
        assert answer.results[0].tag_code == "SE.TRI"
        assert answer.results[1].tag_code == "NA.GEO"

    def test_id_with_wrong_word_falls_back_to_word(self, store):
        reply = json.dumps([{"id": 1, "word": "pago", "tagCode": "NA.GEO"}])
        answer = self._classify(store, reply)
        assert answer.results == {1: answer.results[1]}

    def test_invalid_code_rejected(self, store):
        reply = json.dumps([{"id": 1, "tagCode": "ZZ.TOP"}, {"id": 2, "tagCode": "NA.GEO"}])
        answer = self._classify(store, reply)
        assert answer.rejected == 1
        assert 0 not in answer.results
        assert 1 in answer.results

    def test_failed_call_marks_positions(self, store):
        client = LLMClient(MockLLMProvider(error=RateLimitError()))
        answer = LLMBatchClassifier(client).classify([_occ("a"), _occ("b")], store.load_active_tagsets())
        assert answer.failed == {0, 1}
        assert answer.errors

    def test_batches(self, store):
        provider = MockLLMProvider(default_response="[]")
        classifier = LLMBatchClassifier(LLMClient(provider), batch_size=3)
        answer = classifier.classify([_occ(w) for w in "abcdefg"], store.load_active_tagsets())
        assert answer.calls == 3
        assert provider.call_count == 3


# ---------------------------------------------------------------------------
# Client, budget and usage
# ---------------------------------------------------------------------------


class TestTokenBudget:
    def test_records_and_reports(self):
        budget = TokenBudget(max_tokens=100)
        budget.record(TokenUsage.of(30, 10))
        assert budget.used == 40
        assert budget.remaining == 60
        assert budget.call_count == 1

    def test_check_raises_when_over(self):
        budget = TokenBudget(max_tokens=100)
        budget.record(TokenUsage.of(80, 10))
        with pytest.raises(BudgetExhaustedError) as exc_info:
            budget.check(20)
        assert exc_info.value.budget_max == 100
        assert exc_info.value.used == 90
        assert exc_info.value.requested == 20

    def test_check_within(self):
        TokenBudget(max_tokens=100).check(100)


class TestLLMClient:
    def test_chat_records_usage(self, conn):
        provider = MockLLMProvider(default_response="[]")
        client = LLMClient(provider, usage=LLMUsageRepository(conn))
        response = client.chat([Message.user("olá")], purpose="test")
        assert response.content == "[]"
        row = conn.execute("SELECT model, purpose, success FROM sem_llm_usage").fetchone()
        assert row["model"] == "mock-model-v1"
        assert row["purpose"] == "test"
        assert row["success"] == 1

    def test_chat_reraises_after_recording(self, conn):
        client = LLMClient(MockLLMProvider(error=NetworkError("down")), usage=LLMUsageRepository(conn))
        with pytest.raises(NetworkError):
            client.chat([Message.user("olá")], purpose="test")
        assert conn.execute("SELECT COUNT(*) AS n FROM sem_llm_usage").fetchone()["n"] == 1

    def test_budget_blocks_before_calling(self):
        provider = MockLLMProvider()
        client = LLMClient(provider, max_tokens=50, budget=TokenBudget(max_tokens=10))
        with pytest.raises(BudgetExhaustedError):
            client.chat([Message.user("olá")], purpose="test")
        assert provider.call_count == 0

    def test_passes_sampling_defaults(self):
        provider = MockLLMProvider()
        LLMClient(provider, model="m-1", temperature=0.1, max_tokens=77).chat(
            [Message.user("x")], purpose="test"
        )
        call = provider.calls[0]
        assert call["model"] == "m-1"
        assert call["temperature"] == 0.1
        assert call["max_tokens"] == 77

    def test_from_settings_builds_budget(self):
        settings = SemSpineSettings(llm_model="m-2", llm_token_budget=5000)
        client = LLMClient.from_settings(MockLLMProvider(), settings)
        assert client.model == "m-2"
        assert client.budget.max_tokens == 5000


# ---------------------------------------------------------------------------
# HTTP gateway
# ---------------------------------------------------------------------------


def _provider(handler) -> ChatCompletionsProvider:
    return ChatCompletionsProvider(
        "https://gateway.test/api/v1",
        "sk-test",
        "test-model",
        transport=httpx.MockTransport(handler),
    )


class TestChatCompletionsProvider:
    def test_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "id": "cmpl-1",
                    "model": "test-model",
                    "choices": [{"message": {"content": "[]"}, "finish_reason": "stop"}],
                    "usage": {"prompt_tokens": 12, "completion_tokens": 3},
                },
            )

        response = _provider(handler).complete([Message.user("olá")], temperature=0.2)
        assert response.content == "[]"
        assert response.usage.total_tokens == 15
        assert seen["path"] == "/api/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"]["model"] == "test-model"
        assert seen["body"]["temperature"] == 0.2
        assert seen["body"]["messages"] == [{"role": "user", "content": "olá"}]

    def test_rate_limited(self):
        provider = _provider(lambda r: httpx.Response(429, headers={"retry-after": "7"}, text="slow down"))
        with pytest.raises(RateLimitError) as exc_info:
            provider.complete([Message.user("x")])
        assert exc_info.value.retry_after == 7
        assert exc_info.value.retryable

    def test_server_error_is_transient(self):
        provider = _provider(lambda r: httpx.Response(502, text="bad gateway"))
        with pytest.raises(NetworkError):
            provider.complete([Message.user("x")])

    def test_auth_error_is_not_retryable(self):
        provider = _provider(lambda r: httpx.Response(401, text="no"))
        with pytest.raises(LLMError) as exc_info:
            provider.complete([Message.user("x")])
        assert not exc_info.value.retryable

    def test_unexpected_body(self):
        provider = _provider(lambda r: httpx.Response(200, json={"nope": True}))
        with pytest.raises(LLMResponseError):
            provider.complete([Message.user("x")])

    def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(NetworkError):
            _provider(handler).complete([Message.user("x")])

    def test_requires_key(self):
        with pytest.raises(MissingConfigError):
            ChatCompletionsProvider("https://gateway.test", "", "m")
