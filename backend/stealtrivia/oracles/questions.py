from __future__ import annotations

import json
import logging

from ..game.models import Question
from .llm import ChatClient, OracleError


logger = logging.getLogger(__name__)


PROMPT_TEMPLATE = """You are a meticulous trivia author creating questions for a two-team game.

ABSOLUTE PRIORITY
- Every answer must be verifiably correct according to well-established public sources.
- Do not generate a question unless you are certain of the answer.

GOAL
- Produce EXACTLY {count} questions based on these themes: {tags}.
- Difficulty target: EASY to MEDIUM. Players type one short answer (no choices).

QUESTION REQUIREMENTS
- One unambiguous factual answer per question.
- Avoid questions whose wording telegraphs the answer.
- Prefer timeless facts over recent news or yearly statistics.
- Answers should be concise (3 words or fewer) or a simple number/year, and must
  match what the question asks for.

OUTPUT FORMAT
Return ONLY a JSON array (no prose, no code fences) of length {count}.
Each item has EXACTLY these keys:
- "category": short string (derived from a tag)
- "prompt": clear, self-contained question
- "answer": single canonical correct answer (string)
- "acceptable_answers": array of common synonyms/variants (can be empty)"""


def build_prompt(count: int, tags: list[str]) -> str:
    return PROMPT_TEMPLATE.format(count=count, tags=",".join(tags))


def strip_code_fence(text: str) -> str:
    t = text.strip()
    if t.startswith("```"):
        first_newline = t.find("\n")
        t = t[first_newline + 1 :] if first_newline != -1 else t[3:]
        if t.rstrip().endswith("```"):
            t = t.rstrip()[:-3]
    return t.strip()


def parse_questions(text: str, count: int) -> list[Question]:
    """Parse the model reply into exactly ``count`` questions or raise OracleError."""
    try:
        data = json.loads(strip_code_fence(text))
    except ValueError as e:
        raise OracleError(f"question reply is not JSON: {e}") from e

    if isinstance(data, dict) and isinstance(data.get("questions"), list):
        items = data["questions"]
    elif isinstance(data, list):
        items = data
    else:
        raise OracleError("unexpected question reply format")

    questions: list[Question] = []
    for item in items[:count]:
        if not isinstance(item, dict):
            continue
        prompt = str(item.get("prompt") or item.get("question") or "").strip()
        if not prompt:
            continue
        variants = item.get("acceptable_answers") or []
        questions.append(
            Question(
                question=prompt,
                answer=str(item.get("answer") or "No answer provided").strip(),
                tag=str(item.get("category") or item.get("tag") or "General").strip(),
                acceptable_answers=[str(v).strip() for v in variants if str(v).strip()]
                if isinstance(variants, list)
                else [],
            )
        )

    if len(questions) != count:
        raise OracleError(f"expected {count} questions, got {len(questions)}")
    return questions


class LLMQuestionGenerator:
    def __init__(self, client: ChatClient) -> None:
        self.client = client

    def generate(self, count: int, tags: list[str]) -> list[Question]:
        reply = self.client.complete(build_prompt(count, tags), max_tokens=400 + 200 * count, temperature=0.7)
        questions = parse_questions(reply, count)
        logger.debug("generated %d questions for tags %s", len(questions), tags)
        return questions


def build_question_generator(config) -> LLMQuestionGenerator | None:
    if not config.get("LLM_API_URL"):
        return None
    client = ChatClient(
        config["LLM_API_URL"],
        model=config.get("LLM_MODEL", ""),
        api_key=config.get("LLM_API_KEY", ""),
        # Generating a whole bank takes longer than judging one answer.
        timeout=float(config.get("LLM_TIMEOUT_SEC", 10)) * 6,
    )
    return LLMQuestionGenerator(client)
