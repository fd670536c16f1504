import pytest

from adaptlearn.core.exceptions import GenerationError
from adaptlearn.core.schemas.content import CourseLevel
from adaptlearn.services.content_validation import clean_markdown, parse_diagnostic_quiz, parse_grading
from adaptlearn.services.syllabus import build_syllabus, parse_syllabus, resolve_level

from conftest import FakeContentGenerator, make_diagnostic_quiz, make_syllabus_payload


class TestParseSyllabus:

    def test_valid_payload(self):
        syllabus = parse_syllabus(make_syllabus_payload("intermediate"), score=3)
        assert len(syllabus.modules) == 6
        assert syllabus.level is CourseLevel.INTERMEDIATE
        doc = syllabus.modules[0].to_document()
        assert doc["exit_quiz"][0]["correctIndex"] == 1

    @pytest.mark.parametrize("modules", [5, 7])
    def test_wrong_module_count(self, modules):
        with pytest.raises(GenerationError):
            parse_syllabus(make_syllabus_payload(modules=modules), score=3)

    @pytest.mark.parametrize("raw", [None, [], {"modules": []}, {"syllabus": "six"}])
    def test_wrong_shape(self, raw):
        with pytest.raises(GenerationError):
            parse_syllabus(raw, score=3)

    def test_missing_fields_get_defaults(self):
        payload = make_syllabus_payload()
        payload["syllabus"][2] = {"topics": ["  Joins ", ""]}
        syllabus = parse_syllabus(payload, score=1)
        module = syllabus.modules[2]
        assert module.title == "Module 3"
        assert module.description == ""
        assert module.topics == ["Joins"]
        assert [q.review_topic for q in module.exit_quiz] == ["Joins", "Joins", "Joins"]

    def test_malformed_exit_quiz_is_rejected(self):
        payload = make_syllabus_payload()
        payload["syllabus"][0]["exit_quiz"][1]["options"] = ["only", "three", "options"]
        with pytest.raises(GenerationError):
            parse_syllabus(payload, score=1)

    def test_exit_quiz_with_wrong_size_is_rejected(self):
        payload = make_syllabus_payload()
        payload["syllabus"][0]["exit_quiz"] = payload["syllabus"][0]["exit_quiz"][:2]
        with pytest.raises(GenerationError):
            parse_syllabus(payload, score=1)

    def test_non_string_topic_is_rejected(self):
        payload = make_syllabus_payload()
        payload["syllabus"][0]["topics"] = ["ok", 42]
        with pytest.raises(GenerationError):
            parse_syllabus(payload, score=1)


class TestLevel:

    @pytest.mark.parametrize("score, expected", [
        (0, CourseLevel.BEGINNER),
        (2, CourseLevel.BEGINNER),
        (3, CourseLevel.INTERMEDIATE),
        (4, CourseLevel.INTERMEDIATE),
        (5, CourseLevel.ADVANCED),
    ])
    def test_missing_level_derived_from_score(self, score, expected):
        assert resolve_level(None, score) is expected
        assert parse_syllabus(make_syllabus_payload(level=None), score).level is expected

    def test_level_is_case_insensitive(self):
        assert resolve_level(" ADVANCED ", 0) is CourseLevel.ADVANCED

    def test_unknown_level(self):
        with pytest.raises(GenerationError):
            resolve_level("Expert", 5)


async def test_build_syllabus_calls_generator():
    generator = FakeContentGenerator()
    syllabus = await build_syllabus(generator, "SQL", 2, ["Joins"])
    assert generator.calls["generate_syllabus"] == 1
    assert syllabus.level is CourseLevel.BEGINNER


class TestDiagnosticQuiz:

    def test_valid_quiz(self):
        quiz = parse_diagnostic_quiz(make_diagnostic_quiz())
        assert [q.correct_index for q in quiz] == [0, 1, 2, 3, 0]

    @pytest.mark.parametrize("count", [4, 6])
    def test_wrong_count(self, count):
        with pytest.raises(GenerationError):
            parse_diagnostic_quiz(make_diagnostic_quiz(count))

    @pytest.mark.parametrize("field, value", [
        ("options", ["a", "b", "c"]),
        ("options", ["a", "b", "c", 4]),
        ("correctIndex", 4),
        ("correctIndex", "1"),
        ("question", "   "),
    ])
    def test_malformed_question(self, field, value):
        quiz = make_diagnostic_quiz()
        quiz[3][field] = value
        with pytest.raises(GenerationError):
            parse_diagnostic_quiz(quiz)


class TestGrading:

    def test_rounds_and_clamps_score(self):
        assert parse_grading({"score": 2.5}).score == 3
        assert parse_grading({"score": 9}).score == 5
        assert parse_grading({"score": -2}).score == 0

    @pytest.mark.parametrize("raw", [{}, {"score": "3"}, {"score": True}, {"score": float("nan")}, []])
    def test_missing_score(self, raw):
        with pytest.raises(GenerationError):
            parse_grading(raw)

    def test_normalizes_optional_fields(self):
        grading = parse_grading({"score": 3, "weak_topics": [" Joins ", 5, ""], "feedback_text": None})
        assert grading.weak_topics == ["Joins"]
        assert grading.feedback_text == ""


class TestCleanMarkdown:

    def test_strips_wrapping_fence(self):
        assert clean_markdown("```markdown\n# Title\n\nBody\n```") == "# Title\n\nBody"

    def test_keeps_inner_code_blocks(self):
        text = "# Title\n\n```python\nprint(1)\n```\n\nMore"
        assert clean_markdown(text) == text

    @pytest.mark.parametrize("text", ["", "   ", None, "```markdown\n```"])
    def test_empty_is_error(self, text):
        with pytest.raises(GenerationError):
            clean_markdown(text)
