"""Lesson content generation through the Gemini API."""
import json
import logging
import re
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

from safety_tutor.curriculum import DAY_TITLES, day_title, get_topic
from safety_tutor.errors import GenerationError

log = logging.getLogger(__name__)

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

_FENCE = re.compile(r"```(?:json)?\s*")


@dataclass(frozen=True)
class LessonRequest:
    topic_id: str
    day_id: int
    is_checkpoint: bool
    question_count: int
    title: str
    review_range: Optional[tuple[int, int]] = None
    avoid_duplicates: bool = False


class ContentGenerator(Protocol):
    def generate(self, request: LessonRequest) -> dict:
        """Return raw lesson content (vocabulary, dialogue, scenario, quiz) or raise GenerationError."""


class TermGenerator(Protocol):
    def generate_vocabulary(self, topic_id: str, count: int, existing: list[str]) -> dict:
        """Return {"terms": [...]} with new dictionary entries or raise GenerationError."""


SCHEMA_HINT = """{
  "vocabulary": [
    {"term": "Hard hat", "meaning": "Protective helmet worn on construction sites",
     "example": "Always wear your hard hat in the work area.", "pronunciation": "/hɑːrd hæt/"}
  ],
  "dialogue": [
    {"speaker": "Tom", "role": "Worker", "text": "Where is my hard hat?"},
    {"speaker": "Sam", "role": "Safety Officer", "text": "It's on the table. Always wear it on site!"}
  ],
  "scenario": {"title": "Missing PPE Situation",
               "description": "A colleague enters a work area without safety equipment. What should you do?",
               "risk_level": "High"},
  "quiz": [
    {"prompt": "What is the main purpose of a hard hat?",
     "options": ["Protect head from falling objects", "Keep your head warm", "Look professional", "Company requirement only"],
     "correct_option": 0}
  ]
}"""


def build_prompt(request: LessonRequest, topic_name: str) -> str:
    if request.is_checkpoint:
        start, end = request.review_range
        reviewed = ", ".join(DAY_TITLES[start - 1:end])
        body = (
            f"You are creating a CHECKPOINT TEST for an occupational safety English course "
            f"in the track \"{topic_name}\".\n"
            f"This test reviews Days {start}-{end}, covering: {reviewed}\n\n"
            f"- Include 5 review vocabulary words.\n"
            f"- Include 3 lines of dialogue between an Examiner (role \"Examiner\") and the trainee (role \"Trainee\").\n"
            f"- The scenario is the checkpoint assessment itself, risk_level \"Critical\".\n"
            f"- Create exactly {request.question_count} challenging questions covering ALL topics from "
            f"Days {start}-{end}: vocabulary, procedures and scenario-based.\n"
        )
    else:
        body = (
            f"You are an expert English teacher for occupational safety training.\n"
            f"Create a complete English lesson for beginners working in construction/manufacturing.\n\n"
            f"Track: \"{topic_name}\"\n"
            f"Topic: \"{request.title}\"\n"
            f"Day: {request.day_id}/60\n\n"
            f"- Include 5 vocabulary words directly related to the topic, with accurate IPA pronunciation.\n"
            f"- Include 3-4 lines of realistic workplace dialogue.\n"
            f"- Present one realistic safety scenario.\n"
            f"- Create exactly {request.question_count} multiple-choice questions that test understanding.\n"
        )
    rules = (
        "\nRules:\n"
        "- Every question has exactly 4 options; correct_option is the 0-based index and must vary.\n"
        "- role is one of: Engineer, Safety Officer, Worker, Manager, Examiner, Trainee, You.\n"
        "- risk_level is one of: Low, Medium, High, Critical.\n"
        "- All content must be beginner-friendly (A1-A2 English level).\n"
    )
    if request.avoid_duplicates:
        rules += "- IMPORTANT: every question prompt must be different. Do not repeat any question.\n"
    return (
        body + rules
        + "\nRespond with JSON using exactly these keys:\n" + SCHEMA_HINT
        + "\n\nReturn ONLY valid JSON, no markdown."
    )


def build_vocabulary_prompt(topic_name: str, count: int, existing: list[str]) -> str:
    avoid = ", ".join(existing) if existing else "none"
    return (
        f"You are an expert English teacher for occupational safety training.\n"
        f"Create {count} new English vocabulary terms for the track \"{topic_name}\".\n"
        f"Do NOT repeat any of these existing terms: {avoid}\n\n"
        f"- Each term has a short beginner-friendly meaning (A1-A2 English level).\n"
        f"- Each term has one example sentence from a real workplace.\n"
        f"- Include accurate IPA pronunciation.\n"
        f"\nRespond with JSON of the form:\n"
        f"{{\"terms\": [{{\"term\": \"Lockout\", \"meaning\": \"Locking a machine's power source before work\", "
        f"\"example\": \"Apply the lockout before you open the panel.\", \"pronunciation\": \"/ˈlɒk.aʊt/\"}}]}}"
        f"\n\nReturn ONLY valid JSON, no markdown."
    )


def parse_reply(text: str) -> dict:
    cleaned = _FENCE.sub("", text).strip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise GenerationError(f"Generator returned invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise GenerationError("Generator returned JSON that is not an object")
    return data


class GeminiGenerator:
    def __init__(self, api_key: str, model: str, timeout: float = 30.0, client: httpx.Client | None = None):
        if not api_key:
            log.warning("GEMINI_API_KEY is not set; lessons will use fallback content")
        self.api_key = api_key
        self.model = model
        self.client = client or httpx.Client(timeout=httpx.Timeout(timeout, connect=10.0))

    def generate(self, request: LessonRequest) -> dict:
        topic = get_topic(request.topic_id)
        prompt = build_prompt(request, topic["name"] if topic else request.topic_id)
        log.info("Generating %s day %d: %s", request.topic_id, request.day_id, day_title(request.day_id))
        return self._complete(prompt)

    def generate_vocabulary(self, topic_id: str, count: int, existing: list[str]) -> dict:
        topic = get_topic(topic_id)
        prompt = build_vocabulary_prompt(topic["name"] if topic else topic_id, count, existing)
        log.info("Generating %d dictionary terms for %s", count, topic_id)
        return self._complete(prompt)

    def _complete(self, prompt: str) -> dict:
        """Send one prompt and return the JSON object from the first candidate."""
        if not self.api_key:
            raise GenerationError("No Gemini API key configured")
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"responseMimeType": "application/json"},
        }
        try:
            r = self.client.post(
                GEMINI_URL.format(model=self.model),
                json=payload,
                headers={"x-goog-api-key": self.api_key},
            )
            r.raise_for_status()
            data = r.json()
        except httpx.TimeoutException as e:
            raise GenerationError(f"Generation timed out: {e}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise GenerationError(f"Generation request failed: {e}") from e
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise GenerationError("Generator reply has no candidate text") from e
        if not isinstance(text, str):
            raise GenerationError(f"Generator candidate text is {type(text).__name__}, not a string")
        return parse_reply(text)

    def close(self) -> None:
        self.client.close()
