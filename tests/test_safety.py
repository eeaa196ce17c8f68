"""Crisis screen and safety floor."""
import pytest

from mitr.pipeline.models import RiskLevel
from mitr.pipeline.safety import CrisisScreen, SafetyAssessor, risk_for_score
from mitr.pipeline.schemas import ConversationTurn, SafetyAssessment


@pytest.fixture
def screen():
    return CrisisScreen()


def test_plain_message_not_flagged(screen):
    result = screen.screen("I had a nice walk today")
    assert result.risk_floor == RiskLevel.LOW
    assert not result.flagged
    assert result.score == 0.0


def test_hopelessness_is_at_least_medium(screen):
    result = screen.screen("I feel hopeless and exhausted all the time")
    assert result.risk_floor.rank >= RiskLevel.MEDIUM.rank
    assert result.matched == ["hopeless"]


def test_direct_language_is_critical(screen):
    result = screen.screen("Sometimes I want to end my life")
    assert result.risk_floor == RiskLevel.CRITICAL


def test_euphemisms_are_caught(screen):
    assert screen.screen("honestly i might just unalive").risk_floor == RiskLevel.CRITICAL
    assert screen.screen("I wish I could sleep forever").risk_floor == RiskLevel.CRITICAL


def test_protective_context_never_drops_serious_match_below_medium(screen):
    result = screen.screen("I want to kill myself, just kidding, it's from a movie")
    assert result.protective_factors == 2
    assert result.risk_floor.rank >= RiskLevel.MEDIUM.rank


def test_protective_context_reduces_score(screen):
    plain = screen.screen("I hate my life")
    joking = screen.screen("I hate my life lol jk")
    assert joking.score < plain.score


def test_escalation_across_messages(screen):
    recent = ["I feel worthless", "everyone hates me"]
    result = screen.screen("I feel hopeless", recent)
    assert result.escalation
    assert result.risk_floor == RiskLevel.CRITICAL


def test_no_escalation_without_sustained_distress(screen):
    result = screen.screen("I feel hopeless", ["work was fine", "had lunch"])
    assert not result.escalation
    assert result.risk_floor == RiskLevel.HIGH


def test_risk_for_score_thresholds():
    assert risk_for_score(0.9) == RiskLevel.CRITICAL
    assert risk_for_score(0.7) == RiskLevel.HIGH
    assert risk_for_score(0.5) == RiskLevel.MEDIUM
    assert risk_for_score(0.49) == RiskLevel.LOW


def test_floor_raises_model_assessment(screen):
    assessment = SafetyAssessment(risk_level="low")
    floored = SafetyAssessor.apply_floor(assessment, screen.screen("I want to die"))

    assert floored.risk_level == RiskLevel.CRITICAL
    assert floored.urgent_intervention is True
    assert floored.follow_up is True
    assert any("Crisis language screen" in c for c in floored.concerns)
    assert floored.actions


def test_floor_never_lowers_model_assessment(screen):
    assessment = SafetyAssessment(risk_level="high", concerns=["Model concern"])
    floored = SafetyAssessor.apply_floor(assessment, screen.screen("I hate my life"))
    assert floored.risk_level == RiskLevel.HIGH
    assert floored.concerns == ["Model concern"]


def test_floor_adds_concern_when_model_listed_none(screen):
    assessment = SafetyAssessment(risk_level="high")
    floored = SafetyAssessor.apply_floor(assessment, screen.screen("I feel hopeless"))
    assert floored.risk_level == RiskLevel.HIGH
    assert floored.concerns


def test_unflagged_screen_leaves_assessment_alone(screen):
    assessment = SafetyAssessment(risk_level="medium", concerns=["c"])
    assert SafetyAssessor.apply_floor(assessment, screen.screen("hello")) is assessment


def test_from_screen(screen):
    assert SafetyAssessor.from_screen(screen.screen("hello")).risk_level == RiskLevel.LOW
    block = SafetyAssessor.from_screen(screen.screen("I want to die"))
    assert block.risk_level == RiskLevel.CRITICAL
    assert block.urgent_intervention is True
    assert block.concerns


def test_resources_only_for_high_and_above():
    assert SafetyAssessor.resources_for(RiskLevel.MEDIUM) == []
    assert SafetyAssessor.resources_for(RiskLevel.HIGH)
    assert SafetyAssessor.resources_for(RiskLevel.CRITICAL)


def test_assessor_screen_uses_user_turns_only():
    assessor = SafetyAssessor(prompt_engine=None)
    history = [
        ConversationTurn(speaker="user", message="I feel worthless", timestamp="t1"),
        ConversationTurn(speaker="agent", message="I'm sorry you feel that way", timestamp="t2"),
        ConversationTurn(speaker="user", message="nobody cares", timestamp="t3"),
    ]
    assert assessor.screen("I feel hopeless", history).escalation
