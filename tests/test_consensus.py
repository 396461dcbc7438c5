"""
Consensus tally evaluator: acceptance thresholds per track and the
ballot acceptance ratio. Pure functions, no database access.
"""

import pytest

from stageflow.models.acceptance import (
    RESPONSE_ABSTENTION,
    RESPONSE_AGREE_ADVANCE,
    RESPONSE_AGREE_CIRCULATE_CD,
    RESPONSE_NO_AGREEMENT,
)
from stageflow.services.consensus import count_votes, evaluate_acceptance, evaluate_ballot


def _r(response, committed=False):
    return {"response": response, "is_committed_to_participate": committed}


def _round(favorable, unfavorable, committed_favorable=0, committed_unfavorable=0, abstentions=0):
    responses = [_r(RESPONSE_AGREE_ADVANCE, i < committed_favorable) for i in range(favorable)]
    responses += [_r(RESPONSE_NO_AGREEMENT, i < committed_unfavorable) for i in range(unfavorable)]
    responses += [_r(RESPONSE_ABSTENTION, True) for _ in range(abstentions)]
    return responses


# ── Counting ─────────────────────────────────────────────────────────────


def test_count_votes_excludes_abstentions():
    counts = count_votes(_round(4, 2, committed_favorable=1, committed_unfavorable=1, abstentions=3))
    assert counts.counted == 6
    assert counts.abstentions == 3
    assert counts.favorable == 4
    assert counts.participating == 2
    assert counts.favorable_and_participating == 1


def test_count_votes_accepts_objects():
    class Row:
        def __init__(self, response, committed):
            self.response = response
            self.is_committed_to_participate = committed

    counts = count_votes([Row(RESPONSE_AGREE_CIRCULATE_CD, True), Row(RESPONSE_NO_AGREEMENT, False)])
    assert (counts.counted, counts.favorable, counts.participating) == (2, 1, 1)


# ── Floor ────────────────────────────────────────────────────────────────


@pytest.mark.parametrize("international", [True, False])
@pytest.mark.parametrize("favorable,unfavorable", [(5, 0), (0, 5), (3, 2)])
def test_fewer_than_six_counted_votes_always_fails(international, favorable, unfavorable):
    met, justification = evaluate_acceptance(
        _round(favorable, unfavorable, committed_favorable=favorable), international,
    )
    assert met is False
    assert "at least 6 votes" in justification


def test_abstentions_do_not_reach_the_floor():
    met, justification = evaluate_acceptance(
        _round(5, 0, committed_favorable=5, abstentions=4), True,
    )
    assert met is False
    assert "at least 6 votes" in justification


# ── International track ──────────────────────────────────────────────────


def test_international_exactly_half_fails():
    met, justification = evaluate_acceptance(_round(3, 3, committed_favorable=3), True)
    assert met is False
    assert "50.0%" in justification


def test_international_two_thirds_passes():
    met, justification = evaluate_acceptance(_round(4, 2, committed_favorable=1), True)
    assert met is True
    assert "66.7%" in justification


def test_international_needs_a_participating_favorable_voter():
    met, justification = evaluate_acceptance(
        _round(4, 2, committed_favorable=0, committed_unfavorable=2), True,
    )
    assert met is False
    assert "committed to participate" in justification


def test_international_five_of_seven():
    met, justification = evaluate_acceptance(_round(5, 2, committed_favorable=2), True)
    assert met is True
    assert "71.4%" in justification


# ── Non-international track ──────────────────────────────────────────────


def test_non_international_two_participating_fails():
    met, justification = evaluate_acceptance(_round(6, 0, committed_favorable=2), False)
    assert met is False
    assert "Only 2 member(s)" in justification


def test_non_international_three_participating_passes():
    met, justification = evaluate_acceptance(_round(1, 5, committed_favorable=1,
                                                    committed_unfavorable=2), False)
    assert met is True
    assert "6 votes counted" in justification
    assert "3 members" in justification


def test_decision_unpacks_and_exposes_fields():
    decision = evaluate_acceptance(_round(4, 2, committed_favorable=1), True)
    assert decision.met is True
    met, justification = decision
    assert justification == decision.justification


# ── Ballot ───────────────────────────────────────────────────────────────


def test_ballot_without_votes_never_passes():
    result = evaluate_ballot([])
    assert result.criteria_met is False
    assert result.message == "No votes recorded for this project."


def test_ballot_exactly_three_quarters_passes():
    votes = [{"acceptance": True}] * 3 + [{"acceptance": False}]
    result = evaluate_ballot(votes)
    assert result.criteria_met is True
    assert result.acceptance_rate == pytest.approx(0.75)
    assert result.message == "Project accepted with 75.0% approval (required: 75.0%)"


def test_ballot_below_ratio_fails():
    votes = [{"acceptance": True}] * 2 + [{"acceptance": False}]
    result = evaluate_ballot(votes)
    assert result.criteria_met is False
    assert result.message == "Project not accepted. Current approval: 66.7% (required: 75.0%)"
    assert result.to_dict()["total_votes"] == 3
