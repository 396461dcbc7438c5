"""
Consensus tally evaluator: pure computation, no I/O.

Acceptance rule (NSB responses to a proposal):

    counted votes   = responses that are not abstentions
    favorable       = counted votes in the agreement family
    participating   = counted votes committed to participate

    * fewer than 6 counted votes always fails
    * international track: favorable share must be strictly above 50 %
      and at least one favorable voter must be participating
    * other tracks: at least 6 counted votes and 3 participating

Ballot rule: accepted / total >= 0.75, no votes never passes.

Thresholds are policy constants. Exactly 50 % is a failure on the
international track.
"""

from dataclasses import dataclass
from typing import NamedTuple

from stageflow.models.acceptance import AGREEMENT_RESPONSES, RESPONSE_ABSTENTION
from stageflow.models.balloting import BALLOT_ACCEPTANCE_RATIO

MIN_COUNTED_VOTES = 6
MIN_PARTICIPATING = 3
INTERNATIONAL_MAJORITY_PCT = 50.0


class ConsensusDecision(NamedTuple):
    met: bool
    justification: str


@dataclass(frozen=True)
class VoteCounts:
    counted: int = 0
    abstentions: int = 0
    favorable: int = 0
    participating: int = 0
    favorable_and_participating: int = 0

    @property
    def favorable_pct(self) -> float:
        if not self.counted:
            return 0.0
        return self.favorable / self.counted * 100


def _field(item, name):
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def count_votes(responses) -> VoteCounts:
    """Partition responses into the sub-counts the rules work on."""
    counted = abstentions = favorable = participating = both = 0
    for item in responses:
        decision = _field(item, "response")
        if decision == RESPONSE_ABSTENTION:
            abstentions += 1
            continue
        counted += 1
        is_favorable = decision in AGREEMENT_RESPONSES
        is_participating = bool(_field(item, "is_committed_to_participate"))
        if is_favorable:
            favorable += 1
        if is_participating:
            participating += 1
        if is_favorable and is_participating:
            both += 1
    return VoteCounts(
        counted=counted,
        abstentions=abstentions,
        favorable=favorable,
        participating=participating,
        favorable_and_participating=both,
    )


def evaluate_acceptance(responses, is_international_standard: bool) -> ConsensusDecision:
    """Decide whether a round of NSB responses meets the acceptance criteria.

    ``responses`` is any iterable of objects (or dicts) exposing
    ``response`` and ``is_committed_to_participate``.
    """
    counts = count_votes(responses)

    if counts.counted < MIN_COUNTED_VOTES:
        return ConsensusDecision(
            False,
            f"Insufficient votes: at least {MIN_COUNTED_VOTES} votes are required "
            f"(excluding abstentions), got {counts.counted}",
        )

    if is_international_standard:
        pct = counts.favorable_pct
        if not pct > INTERNATIONAL_MAJORITY_PCT:
            return ConsensusDecision(
                False,
                f"Only {pct:.1f}% of votes are favorable; more than "
                f"{INTERNATIONAL_MAJORITY_PCT:.1f}% is required",
            )
        if counts.favorable_and_participating <= 0:
            return ConsensusDecision(
                False,
                "No favorable voter committed to participate in the work",
            )
        return ConsensusDecision(
            True,
            f"{pct:.1f}% of votes are favorable and "
            f"{counts.favorable_and_participating} favorable voter(s) committed to participate",
        )

    # Same floor as above, checked again on this track
    if counts.counted < MIN_COUNTED_VOTES:
        return ConsensusDecision(
            False,
            f"Insufficient votes: at least {MIN_COUNTED_VOTES} votes are required, "
            f"got {counts.counted}",
        )
    if counts.participating < MIN_PARTICIPATING:
        return ConsensusDecision(
            False,
            f"Only {counts.participating} member(s) committed to participate; "
            f"at least {MIN_PARTICIPATING} are required",
        )
    return ConsensusDecision(
        True,
        f"{counts.counted} votes counted and {counts.participating} members "
        f"committed to participate",
    )


# ── Balloting ────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class BallotResult:
    criteria_met: bool
    acceptance_rate: float
    required_rate: float
    total_votes: int
    accepted_votes: int
    message: str

    def to_dict(self):
        return {
            "criteria_met": self.criteria_met,
            "acceptance_rate": self.acceptance_rate,
            "required_rate": self.required_rate,
            "total_votes": self.total_votes,
            "accepted_votes": self.accepted_votes,
            "message": self.message,
        }


def evaluate_ballot(votes, required_rate: float = BALLOT_ACCEPTANCE_RATIO) -> BallotResult:
    """Check a ballot against the acceptance ratio.

    ``votes`` is any iterable of objects (or dicts) exposing a boolean
    ``acceptance``.
    """
    votes = list(votes)
    total = len(votes)
    accepted = sum(1 for v in votes if _field(v, "acceptance"))

    if total == 0:
        return BallotResult(
            criteria_met=False,
            acceptance_rate=0.0,
            required_rate=required_rate,
            total_votes=0,
            accepted_votes=0,
            message="No votes recorded for this project.",
        )

    rate = accepted / total
    met = rate >= required_rate
    if met:
        message = (
            f"Project accepted with {rate * 100:.1f}% approval "
            f"(required: {required_rate * 100:.1f}%)"
        )
    else:
        message = (
            f"Project not accepted. Current approval: {rate * 100:.1f}% "
            f"(required: {required_rate * 100:.1f}%)"
        )
    return BallotResult(
        criteria_met=met,
        acceptance_rate=rate,
        required_rate=required_rate,
        total_votes=total,
        accepted_votes=accepted,
        message=message,
    )
