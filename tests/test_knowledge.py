"""Knowledge matcher ranking and contract."""
from mitr.pipeline.knowledge import KnowledgeMatcher, THERAPEUTIC_KNOWLEDGE_BASE


def test_ranked_by_overlap_then_table_order():
    matcher = KnowledgeMatcher()
    matches = matcher.find("My thinking is so negative and I worry constantly", current_emotion="anxious")

    topics = [m.topic for m in matches]
    # Both score 2: CBT on two keywords, anxiety on one keyword plus the emotion
    assert topics == ["Cognitive Behavioral Therapy", "Anxiety Management"]
    assert matches[0].relevance_score == 0.4
    assert matches[1].relevance_score == round(1 / 6, 3)


def test_top_five_without_duplicates():
    message = ("listening thinking breathing crisis anxiety depression trauma motivation "
               "safety empathy patterns worry sad")
    matches = KnowledgeMatcher().find(message, current_emotion="sad")

    assert len(matches) == 5
    assert len({m.topic for m in matches}) == 5


def test_emotion_only_match_scores_half():
    matches = KnowledgeMatcher().find("I just don't know", current_emotion="sad")
    assert [m.topic for m in matches] == ["Depression Support"]
    assert matches[0].relevance_score == 0.5


def test_gratitude_message_returns_empty_list():
    matches = KnowledgeMatcher().find("thanks, that really helped", current_emotion="grateful")
    assert matches == []


def test_matching_is_case_insensitive():
    matches = KnowledgeMatcher().find("MINDFULNESS and BREATHING")
    assert matches[0].topic == "Mindfulness Techniques"
    assert matches[0].category == "coping_strategies"


def test_empty_message_and_unknown_emotion():
    assert KnowledgeMatcher().find("", current_emotion="bewildered") == []
    assert KnowledgeMatcher().find(None) == []


def test_top_n_is_tunable():
    matcher = KnowledgeMatcher(top_n=2)
    message = " ".join(entry.keywords[0] for entry in THERAPEUTIC_KNOWLEDGE_BASE)
    assert len(matcher.find(message)) == 2
