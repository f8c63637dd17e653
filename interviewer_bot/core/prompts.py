from collections.abc import Sequence

from interviewer_bot.core.constants import TRANSCRIPT_WINDOW
from interviewer_bot.core.exceptions import InterviewValidationError
from interviewer_bot.core.models import (
    Difficulty,
    Language,
    PolicyDecision,
    Tier,
    TranscriptLine,
    Turn,
    TurnRole,
)

DIFFICULTY_LABELS = {
    Difficulty.EASY: "Junior / friendly",
    Difficulty.MEDIUM: "Mid-level / professional",
    Difficulty.HARD: "Senior / challenging",
}

LANGUAGE_NAMES = {
    Language.EN: "English",
    Language.FR: "French",
    Language.ES: "Spanish",
    Language.AR: "Arabic",
}

OPENING_QUESTIONS = {
    Difficulty.EASY: {
        Language.EN: "Tell me about yourself.",
        Language.FR: "Parlez-moi de vous.",
        Language.ES: "Háblame de ti.",
        Language.AR: "أخبرني عن نفسك.",
    },
    Difficulty.MEDIUM: {
        Language.EN: "Describe a challenging project you worked on.",
        Language.FR: "Décrivez un projet difficile sur lequel vous avez travaillé.",
        Language.ES: "Describe un proyecto difícil en el que trabajaste.",
        Language.AR: "صف مشروعًا صعبًا عملت عليه.",
    },
    Difficulty.HARD: {
        Language.EN: "Walk me through a complex technical decision you made.",
        Language.FR: "Expliquez une décision technique complexe que vous avez prise.",
        Language.ES: "Explica una decisión técnica compleja que tomaste.",
        Language.AR: "اشرح لي قرارًا تقنيًا معقدًا اتخذته.",
    },
}

SYSTEM_INSTRUCTIONS = {
    "interviewer": "You are a professional interviewer.",
}


def opening_question(difficulty: Difficulty, language: Language) -> str:
    return OPENING_QUESTIONS[Difficulty(difficulty)][Language(language)]


def require_text(field: str, value: str | None) -> str:
    if value is None or not str(value).strip():
        raise InterviewValidationError(field)
    return str(value).strip()


def parse_difficulty(value) -> Difficulty:
    if value is None or value == "":
        raise InterviewValidationError("difficulty")
    try:
        return Difficulty(value)
    except ValueError as e:
        raise InterviewValidationError("difficulty", f"Unknown difficulty: {value}") from e


def parse_language(value) -> Language:
    if value is None or value == "":
        raise InterviewValidationError("language")
    try:
        return Language(value)
    except ValueError as e:
        raise InterviewValidationError("language", f"Unsupported language: {value}") from e


def parse_tier(value) -> Tier:
    if value is None or value == "":
        raise InterviewValidationError("plan")
    try:
        return Tier(value)
    except ValueError as e:
        raise InterviewValidationError("plan", f"Unknown plan: {value}") from e


def render_transcript(turns: Sequence[Turn | TranscriptLine], window: int = TRANSCRIPT_WINDOW) -> str:
    recent = list(turns)[-window:] if window > 0 else []
    return "\n".join(
        f"{'Interviewer' if TurnRole(t.role) is TurnRole.AI else 'Candidate'}: {t.text}" for t in recent
    )


def follow_up_rule(decision: PolicyDecision) -> str:
    if decision.tier is Tier.PREMIUM:
        return "Premium plan: You may ask follow-ups as needed."

    usage = f"{decision.follow_ups_used}/{decision.follow_ups_limit}"
    if decision.follow_up_allowed:
        return (
            f"Free plan rule: You may ask a follow-up ONLY while under the follow-up budget "
            f"(currently {usage} used). Once the budget is reached you MUST ask a NEW main interview question."
        )
    return (
        f"Free plan rule: The follow-up budget is used up ({usage}). "
        f"You MUST ask a NEW main interview question that introduces a new topic (not a follow-up)."
    )


def next_question_prompt(
    job_title: str | None,
    job_description: str | None,
    difficulty,
    language,
    turns: Sequence[Turn | TranscriptLine],
    decision: PolicyDecision,
) -> str:
    """Compose the instruction asking the oracle for the next interview question.

    Raises:
        InterviewValidationError: if the job context, difficulty or language is missing
    """
    title = require_text("job_title", job_title)
    description = require_text("job_description", job_description)
    level = DIFFICULTY_LABELS[parse_difficulty(difficulty)]
    lang_name = LANGUAGE_NAMES[parse_language(language)]

    transcript = render_transcript(turns) or "(no turns yet)"
    if decision.follow_up_allowed:
        next_step = "- If the last answer is weak or short, you may ask one probing follow-up."
    else:
        next_step = "- Do NOT ask a follow-up. Move to a new topic relevant to the job."

    return f"""You are a realistic job interviewer conducting a structured interview.

Role: {title}
Difficulty: {level}
Language: {lang_name}

Job Description:
{description}

Recent transcript:
{transcript}

{follow_up_rule(decision)}

Task:
Ask ONE single next interview question.
- Output MUST be only the question text (no quotes, no bullets, no explanations).
- Must be in {lang_name}.
- Must feel natural and realistic.
{next_step}"""


def clean_question(raw: str | None) -> str:
    """Trim oracle output down to the bare question text."""
    if not raw:
        return ""
    text = raw.strip()
    for left, right in (('"', '"'), ("'", "'"), ("“", "”"), ("«", "»")):
        if len(text) >= 2 and text.startswith(left) and text.endswith(right):
            text = text[1:-1].strip()
    return text
