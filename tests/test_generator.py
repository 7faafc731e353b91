"""Tests for grounded answer generation and backend fallback."""
from types import SimpleNamespace

import pytest

from newsletter_rag.chunking.schemas import Chunk
from newsletter_rag.generation.backends import GeminiBackend, OpenRouterBackend, OutcomeStatus
from newsletter_rag.generation.generator import AnswerGenerator, build_context, match_meta_question
from newsletter_rag.generation.prompts import (
    LIFE_STORY_RESPONSE,
    REFUSAL_RESPONSE,
    UNAVAILABLE_RESPONSE,
    WHO_ARE_YOU_RESPONSE,
)

from conftest import FakeBackend

CONTEXT = "[On Divorce]\nGoing through a divorce taught me a lot."


class TestContext:
    def test_build_context_format(self):
        chunks = [
            Chunk(text="body one", title="On Divorce", date="March 3, 2021"),
            Chunk(text="body two", title="Investing", date="April 10, 2021"),
        ]
        assert build_context(chunks) == "[On Divorce]\nbody one\n\n---\n\n[Investing]\nbody two"

    def test_prompt_carries_rules_and_context(self):
        backend = FakeBackend()
        AnswerGenerator([backend]).generate("What about divorce?", CONTEXT)
        system_prompt, query = backend.prompts[0]
        assert query == "What about divorce?"
        assert CONTEXT in system_prompt
        assert REFUSAL_RESPONSE in system_prompt
        assert "NEVER make up quotes" in system_prompt


class TestMetaQuestions:
    @pytest.mark.parametrize("query", ["Who are you?", "who are you", "  WHO ARE YOU?!  ", "What are you?"])
    def test_who_are_you(self, query):
        assert match_meta_question(query) == WHO_ARE_YOU_RESPONSE

    def test_life_question(self):
        assert match_meta_question("What have you done in life?") == LIFE_STORY_RESPONSE

    def test_regular_question_is_not_meta(self):
        assert match_meta_question("Who are your favourite founders?") is None

    def test_meta_answer_ignores_corpus_and_backends(self):
        backend = FakeBackend(answer="something from the corpus")
        answer = AnswerGenerator([backend]).generate("Who are you?", CONTEXT)
        assert answer == WHO_ARE_YOU_RESPONSE
        assert backend.prompts == []


class TestFallback:
    def test_primary_answer_wins(self):
        primary, fallback = FakeBackend("primary", "from primary"), FakeBackend("fallback", "from fallback")
        result = AnswerGenerator([primary, fallback]).generate_detailed("q about divorce", CONTEXT)
        assert result.answer == "from primary"
        assert result.backend == "primary"
        assert fallback.prompts == []

    def test_primary_error_falls_back(self):
        primary = FakeBackend("primary", error=RuntimeError("502 bad gateway"))
        fallback = FakeBackend("fallback", "from fallback")
        result = AnswerGenerator([primary, fallback]).generate_detailed("q about divorce", CONTEXT)
        assert result.answer == "from fallback"
        assert [o.status for o in result.attempts] == [OutcomeStatus.FAILED, OutcomeStatus.OK]
        assert "502" in result.attempts[0].error

    def test_primary_empty_content_falls_back(self):
        primary = FakeBackend("primary", answer="   ")
        fallback = FakeBackend("fallback", "from fallback")
        result = AnswerGenerator([primary, fallback]).generate_detailed("q about divorce", CONTEXT)
        assert result.answer == "from fallback"
        assert result.attempts[0].status is OutcomeStatus.EMPTY

    def test_unconfigured_primary_is_skipped(self):
        primary = FakeBackend("primary", configured=False)
        fallback = FakeBackend("fallback", "from fallback")
        result = AnswerGenerator([primary, fallback]).generate_detailed("q about divorce", CONTEXT)
        assert result.attempts[0].status is OutcomeStatus.SKIPPED
        assert primary.prompts == []
        assert result.answer == "from fallback"

    def test_all_backends_fail_returns_unavailable(self):
        backends = [
            FakeBackend("primary", error=RuntimeError("down")),
            FakeBackend("fallback", error=RuntimeError("also down")),
        ]
        result = AnswerGenerator(backends).generate_detailed("q about divorce", CONTEXT)
        assert result.answer == UNAVAILABLE_RESPONSE
        assert result.backend == "unavailable"

    def test_no_credentials_returns_unavailable_without_raising(self):
        generator = AnswerGenerator([OpenRouterBackend(api_key=None), GeminiBackend(api_key=None)])
        assert generator.available_backends == []
        assert generator.generate("What do you think about divorce?", CONTEXT) == UNAVAILABLE_RESPONSE

    def test_refusal_string_passes_through_verbatim(self):
        backend = FakeBackend(answer=REFUSAL_RESPONSE)
        assert AnswerGenerator([backend]).generate("What's the weather today?", CONTEXT) == REFUSAL_RESPONSE

    def test_empty_context_refuses_without_backend_call(self):
        backend = FakeBackend()
        assert AnswerGenerator([backend]).generate("What's the weather today?", "") == REFUSAL_RESPONSE
        assert backend.prompts == []


class TestProviderBackends:
    def test_openrouter_uses_chat_completions(self):
        calls = []

        def create(**kwargs):
            calls.append(kwargs)
            return SimpleNamespace(
                choices=[SimpleNamespace(message=SimpleNamespace(content="quoted answer"))],
                usage=SimpleNamespace(prompt_tokens=120, completion_tokens=30),
                model="some/model",
            )

        client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
        backend = OpenRouterBackend(api_key="k", client=client, max_tokens=800)
        outcome = backend.attempt("SYSTEM", "question")

        assert outcome.ok and outcome.answer == "quoted answer"
        assert calls[0]["model"] == "openrouter/auto"
        assert calls[0]["max_tokens"] == 800
        assert calls[0]["messages"] == [
            {"role": "system", "content": "SYSTEM"},
            {"role": "user", "content": "question"},
        ]

    def test_openrouter_without_choices_is_empty(self):
        client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(
            create=lambda **kw: SimpleNamespace(choices=[], usage=None)
        )))
        outcome = OpenRouterBackend(api_key="k", client=client).attempt("SYSTEM", "question")
        assert outcome.status is OutcomeStatus.EMPTY

    def test_gemini_concatenates_prompt_and_question(self):
        seen = {}

        def generate_content(model, contents):
            seen.update(model=model, contents=contents)
            return SimpleNamespace(text="gemini answer")

        client = SimpleNamespace(models=SimpleNamespace(generate_content=generate_content))
        outcome = GeminiBackend(api_key="k", client=client, model="gemini-2.5-flash").attempt("SYSTEM", "question")

        assert outcome.answer == "gemini answer"
        assert seen == {"model": "gemini-2.5-flash", "contents": "SYSTEM\n\nQuestion: question"}
