"""
Heuristic conversation analysis: topics, tone, conversation type, semantic
chunks, flow markers and user preferences.

Every function is deterministic over its input text. The word lists below are
configuration; any classifier producing the same output shapes can replace them.
"""

import re
from typing import Iterable, List, Optional, Sequence

from ..models.core import CommunicationStyle, ConversationFlow, ConversationType, EmotionalTone, Role, UserPreferences

MAX_KEY_TOPICS = 5
MIN_SENTENCE_LENGTH = 10
DETAILED_MESSAGE_LENGTH = 100

TOPIC_VOCABULARY = [
    'theology', 'philosophy', 'apologetics', 'bible', 'scripture',
    'faith', 'religion', 'christianity', 'god', 'jesus', 'holy spirit',
    'salvation', 'grace', 'sin', 'redemption', 'prayer', 'worship',
    'church', 'community', 'discipleship', 'evangelism', 'mission',
    'creation', 'evolution', 'science', 'history', 'morality', 'ethics',
    'love', 'forgiveness', 'hope', 'peace', 'joy', 'patience',
    'kindness', 'goodness', 'faithfulness', 'gentleness', 'self-control',
]

POSITIVE_WORDS = [
    'love', 'joy', 'peace', 'hope', 'faith', 'grace', 'blessed',
    'wonderful', 'amazing', 'beautiful', 'good', 'great', 'excellent',
]

NEGATIVE_WORDS = [
    'hate', 'anger', 'fear', 'sadness', 'pain', 'suffering', 'evil',
    'terrible', 'awful', 'horrible', 'bad', 'wrong',
]

# First matching category wins
CONVERSATION_TYPE_KEYWORDS = [
    (ConversationType.BIBLE_STUDY, ('bible', 'scripture')),
    (ConversationType.APOLOGETICS, ('apologetics', 'defense')),
    (ConversationType.SPIRITUAL, ('prayer', 'worship')),
    (ConversationType.THEOLOGICAL, ('philosophy', 'theology')),
    (ConversationType.PERSONAL, ('personal', 'struggle')),
]

SENTENCE_BOUNDARY = re.compile(r'[.!?]+')


def _joined(texts: Iterable[str]) -> str:
    return ' '.join(text for text in texts if text).lower()


def extract_key_topics(texts: Iterable[str], limit: int = MAX_KEY_TOPICS) -> List[str]:
    """Vocabulary terms found in the texts, in vocabulary order, at most limit."""
    all_text = _joined(texts)
    return [topic for topic in TOPIC_VOCABULARY if topic in all_text][:limit]


def analyze_emotional_tone(texts: Iterable[str]) -> str:
    """Positive, negative or neutral by counting which listed words appear."""
    all_text = _joined(texts)
    positive_count = sum(1 for word in POSITIVE_WORDS if word in all_text)
    negative_count = sum(1 for word in NEGATIVE_WORDS if word in all_text)

    if positive_count > negative_count:
        return EmotionalTone.POSITIVE.value
    if negative_count > positive_count:
        return EmotionalTone.NEGATIVE.value
    return EmotionalTone.NEUTRAL.value


def detect_conversation_type(texts: Iterable[str]) -> str:
    all_text = _joined(texts)
    for conversation_type, keywords in CONVERSATION_TYPE_KEYWORDS:
        if any(keyword in all_text for keyword in keywords):
            return conversation_type.value
    return ConversationType.GENERAL.value


def create_semantic_chunk(content: str) -> str:
    """The longest sentence of content, or content itself if no sentence is long enough."""
    sentences = [s for s in SENTENCE_BOUNDARY.split(content) if len(s.strip()) > MIN_SENTENCE_LENGTH]
    if not sentences:
        return content

    longest = sentences[0]
    for sentence in sentences[1:]:
        if len(sentence) > len(longest):
            longest = sentence
    return longest.strip()


def analyze_conversation_flow(roles: Sequence[str], index: int) -> str:
    """Position/role marker for the message at index within its batch."""
    if index == 0:
        return ConversationFlow.START.value
    if index == len(roles) - 1:
        return ConversationFlow.END.value

    current, previous = roles[index], roles[index - 1]
    if current == Role.ASSISTANT.value and previous == Role.USER.value:
        return ConversationFlow.ANSWER.value
    if current == Role.USER.value and previous == Role.ASSISTANT.value:
        return ConversationFlow.QUESTION.value
    return ConversationFlow.CONTINUATION.value


def word_jaccard(first: str, second: str) -> float:
    """Jaccard similarity of the lowercase whitespace-separated word sets."""
    words_first = set(first.lower().split())
    words_second = set(second.lower().split())
    union = words_first | words_second
    if not union:
        return 0.0
    return len(words_first & words_second) / len(union)


def extract_user_preferences(messages: Iterable) -> Optional[UserPreferences]:
    """Preferences derived from the user-authored messages only.

    Args:
        messages: Objects with 'role' and 'content' attributes

    Returns:
        UserPreferences, or None when there are no user messages
    """
    user_texts = [message.content for message in messages if message.role == Role.USER.value]
    if not user_texts:
        return None

    average_length = sum(len(text) for text in user_texts) / len(user_texts)
    style = CommunicationStyle.DETAILED if average_length > DETAILED_MESSAGE_LENGTH else CommunicationStyle.CONCISE
    return UserPreferences(preferred_topics=extract_key_topics(user_texts),
                           communication_style=style.value,
                           emotional_pattern=analyze_emotional_tone(user_texts))
