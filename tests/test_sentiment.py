"""Local keyword sentiment analyzer."""
from mitr.pipeline.sentiment import SentimentAnalyzer


def test_positive_message():
    metrics = SentimentAnalyzer().analyze_text("I'm so happy and grateful, thank you")
    assert metrics.primary == "happy"
    assert metrics.distress_level == 0.0
    assert metrics.wellness_score == 70
    assert metrics.alliance == 80


def test_distressed_message():
    metrics = SentimentAnalyzer().analyze_text("I'm sad, anxious and overwhelmed, it's too much")
    assert metrics.primary == "overwhelmed"
    assert metrics.distress_level == 0.8
    assert metrics.stress_level == 80
    assert metrics.wellness_score == 10


def test_empty_message_is_neutral():
    metrics = SentimentAnalyzer().analyze_text("")
    assert metrics.primary == "neutral"
    assert metrics.confidence == 0.0
    assert metrics.wellness_score == 50
    assert metrics.alliance == 75


def test_alliance_drops_on_negative_markers():
    analyzer = SentimentAnalyzer()
    # "understand" also counts as a positive marker
    assert analyzer.estimate_alliance("this is useless and you don't understand") == 60


def test_alliance_is_clamped():
    analyzer = SentimentAnalyzer(alliance_base=98)
    assert analyzer.estimate_alliance("thank you, that helps, I appreciate the support") == 100


def test_injected_keywords():
    analyzer = SentimentAnalyzer(emotion_keywords={"calm": ("serene",)})
    assert analyzer.analyze_text("feeling serene").primary == "calm"


def test_to_dict():
    data = SentimentAnalyzer().analyze_text("fine").to_dict()
    assert set(data) == {"primary", "confidence", "distress_level", "wellness_score", "stress_level", "alliance"}
