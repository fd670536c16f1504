import json

import httpx
import pytest

from adaptlearn.core.config import AIConfig
from adaptlearn.core.exceptions import GenerationError, GenerationTimeoutError
from adaptlearn.services.content_generator import LLMContentGenerator, extract_json


def chat_response(content: str, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json={"choices": [{"message": {"role": "assistant", "content": content}}]})


def make_generator(handler, **config) -> LLMContentGenerator:
    return LLMContentGenerator(
        AIConfig(AI_API_BASE="http://llm.test", **config),
        transport=httpx.MockTransport(handler),
    )


class TestExtractJson:

    def test_plain_json(self):
        assert extract_json('{"a": 1}') == {"a": 1}

    def test_fenced_json(self):
        assert extract_json('```json\n[1, 2]\n```') == [1, 2]

    def test_json_surrounded_by_prose(self):
        assert extract_json('Sure! Here it is: {"score": 3} Hope it helps.') == {"score": 3}

    def test_trailing_commas(self):
        assert extract_json('{"a": [1, 2,],}') == {"a": [1, 2]}

    def test_single_quotes(self):
        assert extract_json("{'a': 'b'}") == {"a": "b"}

    @pytest.mark.parametrize("raw", ["", "no json here", "{broken"])
    def test_invalid(self, raw):
        with pytest.raises(GenerationError):
            extract_json(raw)


class TestLLMContentGenerator:

    async def test_posts_chat_completion(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = json.loads(request.content)
            return chat_response('[{"question": "q"}]')

        generator = make_generator(handler, AI_API_KEY="secret", AI_DEFAULT_MODEL="tiny")
        result = await generator.generate_quiz("Graph theory")

        assert result == [{"question": "q"}]
        assert seen["url"] == "http://llm.test/v1/chat/completions"
        assert seen["auth"] == "Bearer secret"
        assert seen["body"]["model"] == "tiny"
        assert "Graph theory" in seen["body"]["messages"][0]["content"]

    async def test_no_auth_header_without_key(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert "authorization" not in request.headers
            return chat_response("# Lesson")

        assert await make_generator(handler).generate_lesson("Joins", "Beginner") == "# Lesson"

    async def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(GenerationTimeoutError) as exc_info:
            await make_generator(handler).generate_lesson("Joins", "Beginner")
        assert exc_info.value.retryable

    async def test_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(GenerationError):
            await make_generator(handler).generate_lesson("Joins", "Beginner")

    async def test_server_error_status(self):
        with pytest.raises(GenerationError):
            await make_generator(lambda r: httpx.Response(500, text="boom")).generate_lesson("Joins", "Beginner")

    @pytest.mark.parametrize("body", [{}, {"choices": []}, {"choices": [{"message": {"content": "  "}}]}])
    async def test_malformed_response(self, body):
        with pytest.raises(GenerationError):
            await make_generator(lambda r: httpx.Response(200, json=body)).generate_lesson("Joins", "Beginner")

    async def test_tutor_prompt_includes_lesson_context(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["prompt"] = json.loads(request.content)["messages"][0]["content"]
            return chat_response("Because of indexes.")

        answer = await make_generator(handler).answer_question(
            "Why is it fast?", "Databases", "Beginner", lesson_topic="B-trees", lesson_text="A B-tree is..."
        )
        assert answer == "Because of indexes."
        assert "B-trees" in seen["prompt"]
        assert "A B-tree is..." in seen["prompt"]
