"""
Release decision policy.

This is the single place that decides whether a run acts. Everything
downstream follows the returned outcome.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from ..snapshot.differ import DiffResult
from .version import BumpKind

logger = logging.getLogger(__name__)


class ReleaseDecision(str, Enum):
    """What a run does after diffing."""
    NOOP = "noop"
    BUMP_ONLY = "bump_only"
    BUMP_AND_SYNC = "bump_and_sync"


@dataclass(frozen=True)
class DecisionOutcome:
    """The decision and the bump kind it resolved to."""
    decision: ReleaseDecision
    bump_kind: BumpKind

    @property
    def acts(self) -> bool:
        return self.decision != ReleaseDecision.NOOP


def decide_release(diff: DiffResult, requested: BumpKind = BumpKind.NONE) -> DecisionOutcome:
    """
    Combine the diff verdict with the caller's bump request.

    - Empty diff, no bump requested: NOOP
    - Empty diff, bump forced: BUMP_ONLY with the requested kind
    - Non-empty diff: BUMP_AND_SYNC, with an unspecified request
      resolved to PATCH
    """
    requested = BumpKind(requested)

    if diff.is_empty():
        if requested == BumpKind.NONE:
            outcome = DecisionOutcome(ReleaseDecision.NOOP, BumpKind.NONE)
        else:
            outcome = DecisionOutcome(ReleaseDecision.BUMP_ONLY, requested)
    else:
        kind = BumpKind.PATCH if requested == BumpKind.NONE else requested
        outcome = DecisionOutcome(ReleaseDecision.BUMP_AND_SYNC, kind)

    logger.info(
        "Decision: %s (bump=%s, requested=%s, diff %s)",
        outcome.decision.value, outcome.bump_kind.value, requested.value, diff.summary(),
    )
    return outcome
