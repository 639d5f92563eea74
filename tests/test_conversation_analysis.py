"""Tests for the heuristic conversation analysis functions.

The word lists are configuration; these tests pin the output shapes and a few
representative classifications.
"""

from shield_memory.models.core import (CommunicationStyle, ContextMessage, ConversationFlow, ConversationType, EmotionalTone,
                                       Role)
from shield_memory.services.conversation_analysis import (MAX_KEY_TOPICS, analyze_conversation_flow, analyze_emotional_tone,
                                                          create_semantic_chunk, detect_conversation_type, extract_key_topics,
                                                          extract_user_preferences, word_jaccard)


def message(role: str, content: str) -> ContextMessage:
    return ContextMessage(id='m', content=content, role=role, timestamp='', relevance=1.0)


class TestKeyTopics:
    """Tests for topic extraction."""

    def test_finds_topics_case_insensitively(self) -> None:
        topics = extract_key_topics(['What does the Bible say about Grace?'])
        assert topics == ['bible', 'grace']

    def test_bounded(self) -> None:
        text = 'theology philosophy apologetics bible scripture faith religion prayer'
        assert len(extract_key_topics([text])) == MAX_KEY_TOPICS

    def test_no_topics(self) -> None:
        assert extract_key_topics(['The weather is nice today']) == []


class TestEmotionalTone:
    """Tests for tone classification."""

    def test_positive(self) -> None:
        assert analyze_emotional_tone(['This is wonderful news, full of hope']) == EmotionalTone.POSITIVE.value

    def test_negative(self) -> None:
        assert analyze_emotional_tone(['I feel terrible and full of fear']) == EmotionalTone.NEGATIVE.value

    def test_neutral_when_balanced_or_empty(self) -> None:
        assert analyze_emotional_tone(['good but bad']) == EmotionalTone.NEUTRAL.value
        assert analyze_emotional_tone([]) == EmotionalTone.NEUTRAL.value

    def test_deterministic(self) -> None:
        texts = ['Grace is amazing', 'Sin is wrong']
        assert analyze_emotional_tone(texts) == analyze_emotional_tone(texts)


class TestConversationType:
    """Tests for conversation type detection."""

    def test_first_matching_category_wins(self) -> None:
        """Bible study is checked before spiritual."""
        assert detect_conversation_type(['Let us read scripture and then prayer']) == ConversationType.BIBLE_STUDY.value

    def test_spiritual(self) -> None:
        assert detect_conversation_type(['Teach me about worship']) == ConversationType.SPIRITUAL.value

    def test_general_fallback(self) -> None:
        assert detect_conversation_type(['How do I bake bread?']) == ConversationType.GENERAL.value


class TestSemanticChunk:
    """Tests for semantic chunk selection."""

    def test_longest_sentence(self) -> None:
        content = 'Grace is unmerited favor. It is given freely to everyone who asks for it! Amen.'
        assert create_semantic_chunk(content) == 'It is given freely to everyone who asks for it'

    def test_short_content_returned_whole(self) -> None:
        assert create_semantic_chunk('Thank you') == 'Thank you'


class TestConversationFlow:
    """Tests for flow markers."""

    def test_start_answer_question_end(self) -> None:
        roles = [Role.USER.value, Role.ASSISTANT.value, Role.USER.value, Role.ASSISTANT.value]
        flows = [analyze_conversation_flow(roles, i) for i in range(len(roles))]

        assert flows == [
            ConversationFlow.START.value,
            ConversationFlow.ANSWER.value,
            ConversationFlow.QUESTION.value,
            ConversationFlow.END.value,
        ]

    def test_same_role_continuation(self) -> None:
        roles = [Role.USER.value, Role.USER.value, Role.USER.value]
        assert analyze_conversation_flow(roles, 1) == ConversationFlow.CONTINUATION.value

    def test_single_message_is_start(self) -> None:
        assert analyze_conversation_flow([Role.USER.value], 0) == ConversationFlow.START.value


class TestWordJaccard:

    def test_identical(self) -> None:
        assert word_jaccard('what is grace', 'What is Grace') == 1.0

    def test_partial_overlap(self) -> None:
        assert word_jaccard('what is grace', 'grace is free') == 0.5

    def test_empty(self) -> None:
        assert word_jaccard('', '') == 0.0


class TestUserPreferences:
    """Tests for preferences derived from user messages."""

    def test_only_user_messages_count(self) -> None:
        messages = [
            message(Role.USER.value, 'Tell me about prayer'),
            message(Role.ASSISTANT.value, 'Prayer and worship and bible and scripture are wonderful. ' * 5),
        ]
        preferences = extract_user_preferences(messages)

        assert preferences.preferred_topics == ['prayer']
        assert preferences.communication_style == CommunicationStyle.CONCISE.value
        assert preferences.emotional_pattern == EmotionalTone.NEUTRAL.value

    def test_long_messages_are_detailed(self) -> None:
        preferences = extract_user_preferences([message(Role.USER.value, 'x' * 150)])
        assert preferences.communication_style == CommunicationStyle.DETAILED.value

    def test_none_without_user_messages(self) -> None:
        assert extract_user_preferences([message(Role.ASSISTANT.value, 'Hello')]) is None
