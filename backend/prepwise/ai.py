from __future__ import annotations

import logging
import math
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from prepwise.errors import BadRequest
from prepwise.llm import DecodeResult, Fallback, GeminiClient, Parsed, extract_json

LOG = logging.getLogger("prepwise.ai")

Runner = Callable[[Awaitable[Optional[str]]], Awaitable[Optional[str]]]

MIN_SCORE = 1
MAX_SCORE = 10
DEFAULT_SCORE = 5
MAX_QUESTION_COUNT = 20
DEFAULT_QUESTION_TEXT = "Please describe your experience with this role."

GENERIC_SUGGESTIONS = [
    "Try to be more specific in your answer",
    "Provide concrete examples",
    "Structure your response clearly",
]


class KeywordAnalysis(BaseModel):
    keywords_used: List[str] = Field(default_factory=list)
    keywords_missing: List[str] = Field(default_factory=list)


class FeedbackResult(BaseModel):
    feedback: str
    score: int
    suggestions: List[str] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    keyword_analysis: KeywordAnalysis = Field(default_factory=KeywordAnalysis)


class GeneratedQuestion(BaseModel):
    question: str
    category: str = "general"
    expected_keywords: List[str] = Field(default_factory=list)
    sample_answer: Optional[str] = None
    expected_answer: Optional[str] = None


FALLBACK_QUESTIONS: List[Dict[str, Any]] = [
    {
        "question": "Tell me about yourself and your experience in this field.",
        "category": "general",
        "expected_keywords": ["experience", "skills", "background"],
        "expected_answer": "A concise summary of relevant experience and skills",
        "sample_answer": "I have X years of experience in [field] with expertise in [specific skills]...",
    },
    {
        "question": "What are your strengths and weaknesses?",
        "category": "behavioral",
        "expected_keywords": ["strengths", "weaknesses", "improvement"],
        "expected_answer": "Honest assessment with examples and improvement plans",
        "sample_answer": "My strengths include [specific examples]. For weaknesses, I'm working on [improvement plan]...",
    },
]


def fallback_questions() -> List[GeneratedQuestion]:
    return [GeneratedQuestion(**item) for item in FALLBACK_QUESTIONS]


def fallback_feedback() -> FeedbackResult:
    return FeedbackResult(
        feedback="I couldn't analyze your response at this time. Please try again.",
        score=DEFAULT_SCORE,
        suggestions=list(GENERIC_SUGGESTIONS),
    )


async def _direct(call: Awaitable[Optional[str]]) -> Optional[str]:
    return await call


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def coerce_score(value: Any) -> int:
    """Map whatever the model sent to an int in [1, 10]; unusable values become the default."""
    if isinstance(value, bool):
        return DEFAULT_SCORE
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return DEFAULT_SCORE
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return DEFAULT_SCORE
    if value < MIN_SCORE or value > MAX_SCORE:
        return DEFAULT_SCORE
    return max(MIN_SCORE, min(MAX_SCORE, int(round(value))))


def coerce_question(item: Any) -> Optional[GeneratedQuestion]:
    if isinstance(item, str):
        text = item.strip()
        return GeneratedQuestion(question=text) if text else None
    if not isinstance(item, dict):
        return None
    text = _optional_text(item.get("question") or item.get("question_text") or item.get("text"))
    return GeneratedQuestion(
        question=text or DEFAULT_QUESTION_TEXT,
        category=_optional_text(item.get("category")) or "general",
        expected_keywords=_str_list(item.get("expected_keywords") or item.get("keywords")),
        sample_answer=_optional_text(item.get("sample_answer")),
        expected_answer=_optional_text(item.get("expected_answer")),
    )


def decode_questions(text: Optional[str], count: int) -> DecodeResult:
    result = extract_json(text, "[", "]")
    if isinstance(result, Fallback):
        return result
    if not isinstance(result.value, list):
        return Fallback("model output is not a JSON array")
    items = [q for q in (coerce_question(item) for item in result.value) if q is not None]
    if not items:
        return Fallback("model returned no usable questions")
    return Parsed(items[:count])


def decode_feedback(text: Optional[str]) -> DecodeResult:
    result = extract_json(text, "{", "}")
    if isinstance(result, Fallback):
        return result
    data = result.value
    if not isinstance(data, dict):
        return Fallback("model output is not a JSON object")

    raw_score = data.get("score")
    score = coerce_score(raw_score)
    if raw_score != score:
        LOG.info("Feedback score %r normalised to %s", raw_score, score)

    suggestions = data.get("suggestions")
    analysis = data.get("keyword_analysis") or data.get("keywordAnalysis") or {}
    if not isinstance(analysis, dict):
        analysis = {}
    return Parsed(
        FeedbackResult(
            feedback=_optional_text(data.get("feedback")) or "No detailed feedback was provided.",
            score=score,
            suggestions=_str_list(suggestions) if isinstance(suggestions, list) else list(GENERIC_SUGGESTIONS),
            strengths=_str_list(data.get("strengths")),
            improvements=_str_list(data.get("improvements")),
            keyword_analysis=KeywordAnalysis(
                keywords_used=_str_list(analysis.get("keywords_used")),
                keywords_missing=_str_list(analysis.get("keywords_missing")),
            ),
        )
    )


def build_questions_prompt(job_role: str, industry: Optional[str], difficulty: Optional[str], count: int) -> str:
    industry_part = f" in the {industry} industry" if industry else ""
    return (
        f"Generate {count} interview questions for a {difficulty or 'medium'} level {job_role} position{industry_part}.\n\n"
        "Please provide questions that are appropriate for the difficulty level and relevant to the role.\n\n"
        "For each question, provide:\n"
        "1. The question text\n"
        "2. The category (technical, behavioral, situational, general)\n"
        "3. Expected keywords that should be mentioned\n"
        "4. A sample answer or key points to cover\n\n"
        "Respond with a JSON array only, no commentary:\n"
        "[\n"
        "  {\n"
        '    "question": "question text here",\n'
        '    "category": "technical|behavioral|situational|general",\n'
        '    "expected_keywords": ["keyword1", "keyword2"],\n'
        '    "expected_answer": "brief description of what a good answer should include",\n'
        '    "sample_answer": "example of a good answer"\n'
        "  }\n"
        "]"
    )


def build_feedback_prompt(question: str, response: str) -> str:
    return (
        "You are an expert interview coach. Analyze this interview response and provide constructive feedback.\n\n"
        f"Question: {question}\n"
        f"Response: {response}\n\n"
        "Please provide:\n"
        "1. A score from 1-10 (where 10 is excellent)\n"
        "2. Specific feedback on what was good and what could be improved\n"
        "3. 2-3 actionable suggestions for improvement\n"
        "4. Keyword analysis of what was mentioned and what was missing\n\n"
        "Respond with a JSON object only:\n"
        "{\n"
        '  "feedback": "detailed feedback here",\n'
        '  "score": number,\n'
        '  "suggestions": ["suggestion1", "suggestion2", "suggestion3"],\n'
        '  "strengths": ["strength1", "strength2"],\n'
        '  "improvements": ["improvement1", "improvement2"],\n'
        '  "keyword_analysis": {"keywords_used": ["keyword1"], "keywords_missing": ["missing1"]}\n'
        "}"
    )


def validate_question_request(job_role: Optional[str], count: int) -> str:
    role = (job_role or "").strip()
    if not role:
        raise BadRequest("Job role required")
    if count < 1 or count > MAX_QUESTION_COUNT:
        raise BadRequest(f"count must be between 1 and {MAX_QUESTION_COUNT}")
    return role


def validate_feedback_request(question: Optional[str], response: Optional[str]) -> None:
    if not (question or "").strip() or not (response or "").strip():
        raise BadRequest("Question and response required")


async def generate_questions(
    llm: GeminiClient,
    job_role: Optional[str],
    industry: Optional[str] = None,
    difficulty: Optional[str] = None,
    count: int = 5,
    runner: Runner = _direct,
) -> List[GeneratedQuestion]:
    role = validate_question_request(job_role, count)
    prompt = build_questions_prompt(role, industry, difficulty, count)
    text = await runner(llm.generate(prompt, purpose="questions", temperature=0.7))
    result = decode_questions(text, count)
    if isinstance(result, Fallback):
        LOG.warning("Question generation degraded (%s); raw content: %s", result.reason, (text or "")[:200])
        return fallback_questions()
    return result.value


async def score_answer(
    llm: GeminiClient,
    question: Optional[str],
    response: Optional[str],
    runner: Runner = _direct,
) -> FeedbackResult:
    validate_feedback_request(question, response)
    prompt = build_feedback_prompt(question.strip(), response.strip())
    text = await runner(llm.generate(prompt, purpose="feedback", temperature=0.4))
    result = decode_feedback(text)
    if isinstance(result, Fallback):
        LOG.warning("Answer feedback degraded (%s); raw content: %s", result.reason, (text or "")[:200])
        return fallback_feedback()
    return result.value
