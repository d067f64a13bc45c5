"""
Code review orchestration: validate the submission, ask the LLM for a structured
report, validate it and store it.
"""
import json
import logging
from typing import Optional, Tuple

from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.core.exceptions import InvalidSubmissionError, ReviewGenerationError
from app.core.models import Review, User
from app.schemas import ReviewReport
from app.services.llm_service import LLMService
from app.services.review_archive import append_review

logger = logging.getLogger(__name__)


REVIEW_CATEGORIES = [
    "Bugs & Errors",
    "Security",
    "Performance",
    "Best Practices & Readability",
    "Suggestions for Improvement",
]
SEVERITIES = ["Critical", "High", "Medium", "Low", "Informational"]


SYSTEM_INSTRUCTION = """
You are an expert Senior Software Engineer specializing in security and performance optimization.
Your task is to perform a detailed, professional code review.
You MUST analyze the provided code snippet for the following five categories:
1. Bugs & Errors: Obvious syntax errors, logical flaws, and potential runtime exceptions.
2. Security: Injection risks, data leakage, improper authentication/authorization logic, and insecure defaults.
3. Performance: Inefficient algorithms, unnecessary loops, or database query issues.
4. Best Practices & Readability: Code style, maintainability, naming conventions, and proper use of language features.
5. Suggestions for Improvement: High-level architectural or design recommendations, or better external libraries.

For every review, you MUST return the output as a single JSON object that strictly adheres to the provided JSON Schema. Do not include any text outside of the JSON block.
"""


REVIEW_JSON_SCHEMA = {
    "type": "object",
    "properties": {
        "overall_summary": {
            "type": "string",
            "description": "A concise summary (2-3 sentences) of the overall code quality, "
                           "highlighting the most critical issue and the best part.",
        },
        "issues_by_category": {
            "type": "array",
            "description": "Detailed findings grouped by category.",
            "items": {
                "type": "object",
                "properties": {
                    "category": {
                        "type": "string",
                        "enum": REVIEW_CATEGORIES,
                        "description": "The type of issue.",
                    },
                    "findings": {
                        "type": "array",
                        "description": "A list of specific, actionable findings for this category.",
                        "items": {
                            "type": "object",
                            "properties": {
                                "line": {
                                    "type": "integer",
                                    "description": "The approximate line number where the issue occurs. "
                                                   "Use 0 if the finding is general or conceptual.",
                                },
                                "severity": {
                                    "type": "string",
                                    "enum": SEVERITIES,
                                    "description": "The severity level of the finding.",
                                },
                                "description": {
                                    "type": "string",
                                    "description": "A detailed description of the issue and a suggestion for how to fix it.",
                                },
                            },
                            "required": ["line", "severity", "description"],
                        },
                    },
                },
                "required": ["category", "findings"],
            },
        },
    },
    "required": ["overall_summary", "issues_by_category"],
}


def validate_submission(code: Optional[str], language: Optional[str]) -> Tuple[str, str]:
    if not code or not code.strip() or not language or not language.strip():
        raise InvalidSubmissionError("Please provide both code and language for review.")
    return code, language.strip()


def build_review_prompt(code: str, language: str) -> str:
    return (
        f"Review the following {language} code for bugs, security, performance, and best practices. "
        f"Code:\n\n```{language}\n{code}\n```"
    )


def _strip_code_fence(raw: str) -> str:
    text = raw.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def parse_review_report(raw: str) -> ReviewReport:
    """Parses the raw LLM answer and checks it against the report schema"""
    try:
        obj = json.loads(_strip_code_fence(raw))
    except json.JSONDecodeError as e:
        logger.error("LLM returned non-JSON output: %s", e)
        raise ReviewGenerationError("AI returned a response that is not JSON.") from e

    try:
        return ReviewReport.model_validate(obj)
    except ValidationError as e:
        logger.error("LLM output does not match the report schema: %s", e)
        raise ReviewGenerationError("AI returned a report that does not match the schema.") from e


async def generate_report(llm: Optional[LLMService], code: str, language: str) -> ReviewReport:
    if llm is None:
        raise ReviewGenerationError("AI review service is not configured.")

    prompt = build_review_prompt(code, language)
    try:
        raw = await llm.generate_json(
            system=SYSTEM_INSTRUCTION,
            prompt=prompt,
            schema=REVIEW_JSON_SCHEMA,
            schema_name="code_review",
        )
    except Exception as e:
        raise ReviewGenerationError("Failed to generate AI review. API or parsing error.") from e

    return parse_review_report(raw)


async def submit_review(
    db: Session,
    llm: Optional[LLMService],
    user: User,
    code: Optional[str],
    language: Optional[str],
) -> Tuple[Review, ReviewReport]:
    """
    Runs one review end to end.

    Nothing is called or stored when the input is invalid, and nothing is stored
    when generation fails. A ReviewStorageError raised by the archive still
    carries the generated report.
    """
    code, language = validate_submission(code, language)

    logger.info("Review requested by user_id=%s (%s, %d chars)", user.id, language, len(code))
    report = await generate_report(llm, code, language)

    review = append_review(db, user_id=user.id, code=code, language=language, report=report)
    return review, report
