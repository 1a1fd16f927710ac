"""Success-probability scoring for prospects.

Pure and deterministic: the same signals and reference time always
produce the same score.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from outbound_engine.core.errors import ScoringError
from outbound_engine.models import AccountStatus, ApproachStrategy, CRMData, EnrichmentData

logger = logging.getLogger(__name__)

BASE_SCORE = 50

ACCOUNT_STATUS_DELTAS = {
    AccountStatus.QUALIFIED: 20,
    AccountStatus.CONTACTED: 10,
    AccountStatus.UNQUALIFIED: -30,
}

POSITIVE_INTERACTION_BONUS = 5
POSITIVE_INTERACTION_THRESHOLD = 0.5
RECENT_INTERACTION_WINDOW = timedelta(days=30)
RECENT_INTERACTION_THRESHOLD = 0.6
RECENT_INTERACTION_BONUS = 15
FUNDING_KEYWORDS = ("Series", "Growth")
FUNDING_BONUS = 10
GROWTH_RATE_THRESHOLD = 20
GROWTH_BONUS = 10
DEAL_VALUE_THRESHOLD = 50_000
DEAL_VALUE_BONUS = 10
ALIGNMENT_BONUS = 5


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _validate(crm: CRMData, enrichment: EnrichmentData) -> None:
    for interaction in crm.past_interactions:
        if interaction.sentiment is not None and not 0.0 <= interaction.sentiment <= 1.0:
            raise ScoringError(
                f"Interaction {interaction.id} sentiment {interaction.sentiment} outside [0, 1]"
            )
    if crm.deal_value is not None and crm.deal_value < 0:
        raise ScoringError(f"Negative deal value: {crm.deal_value}")
    if crm.company_size is not None and crm.company_size < 0:
        raise ScoringError(f"Negative CRM company size: {crm.company_size}")
    if enrichment.company_size < 0:
        raise ScoringError(f"Negative enriched company size: {enrichment.company_size}")


def score(
    crm_signals: CRMData,
    enrichment_signals: EnrichmentData,
    strategy_hint: Optional[Union[ApproachStrategy, str]] = None,
    as_of: Optional[datetime] = None,
) -> int:
    """
    Compute a 0-100 success probability for a prospect.

    Args:
        crm_signals: Account status, interactions and deal value from the CRM
        enrichment_signals: Funding and growth signals from enrichment
        strategy_hint: Approach strategy chosen for the prospect
        as_of: Reference time for recency checks (defaults to now, UTC)

    Returns:
        Integer score clamped to [0, 100]

    Raises:
        ScoringError: If any signal is malformed
    """
    _validate(crm_signals, enrichment_signals)
    as_of = _aware(as_of or datetime.now(timezone.utc))

    total = BASE_SCORE
    total += ACCOUNT_STATUS_DELTAS.get(crm_signals.account_status, 0)

    interactions = crm_signals.past_interactions
    positive = [
        i for i in interactions
        if i.sentiment is not None and i.sentiment > POSITIVE_INTERACTION_THRESHOLD
    ]
    total += len(positive) * POSITIVE_INTERACTION_BONUS

    # Only the first recent interaction counts towards the recency bonus
    recent = next(
        (i for i in interactions if as_of - _aware(i.date) < RECENT_INTERACTION_WINDOW),
        None,
    )
    if recent is not None and recent.sentiment is not None and recent.sentiment > RECENT_INTERACTION_THRESHOLD:
        total += RECENT_INTERACTION_BONUS

    if any(keyword in enrichment_signals.funding_stage for keyword in FUNDING_KEYWORDS):
        total += FUNDING_BONUS

    growth = enrichment_signals.employee_growth_rate
    if growth is not None and growth > GROWTH_RATE_THRESHOLD:
        total += GROWTH_BONUS

    if crm_signals.deal_value is not None and crm_signals.deal_value > DEAL_VALUE_THRESHOLD:
        total += DEAL_VALUE_BONUS

    try:
        strategy = ApproachStrategy(strategy_hint) if strategy_hint else None
    except ValueError as e:
        raise ScoringError(f"Unknown approach strategy: {strategy_hint}") from e
    if strategy == ApproachStrategy.CONSULTATIVE and crm_signals.account_status == AccountStatus.CONTACTED:
        total += ALIGNMENT_BONUS

    clamped = max(0, min(100, int(total)))
    logger.debug(f"Raw score {total} clamped to {clamped}")
    return clamped
