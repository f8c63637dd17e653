"""Heuristic follow-up detection.

A follow-up is an interviewer question that probes the candidate's previous
answer instead of opening a new topic. Detection is a cue phrase match on
the lowercased text, so false positives and negatives are expected.
"""

from collections.abc import Callable, Iterable

from interviewer_bot.core.models import Turn, TurnRole

FollowUpClassifier = Callable[[str], bool]

FOLLOW_UP_CUES: dict[str, tuple[str, ...]] = {
    "en": ("you said", "you mentioned", "elaborate", "clarify", "can you explain"),
    "fr": ("pourquoi", "pouvez-vous"),
    "es": ("¿puedes", "¿podrías"),
    "ar": ("لماذا", "هل يمكنك"),
}

_ALL_CUES: tuple[str, ...] = tuple(cue for cues in FOLLOW_UP_CUES.values() for cue in cues)


def is_follow_up(text: str) -> bool:
    lowered = text.lower()
    return any(cue in lowered for cue in _ALL_CUES)


def count_follow_ups(ai_texts: Iterable[str], classifier: FollowUpClassifier = is_follow_up) -> int:
    """Count interviewer questions that look like follow-ups.

    Args:
        ai_texts: Interviewer turn texts in chronological order
        classifier: Predicate deciding whether one text is a follow-up

    Returns:
        Number of texts the classifier flagged
    """
    return sum(1 for text in ai_texts if classifier(text))


def count_follow_ups_in_turns(turns: Iterable[Turn], classifier: FollowUpClassifier = is_follow_up) -> int:
    return count_follow_ups((t.text for t in turns if TurnRole(t.role) is TurnRole.AI), classifier)
