"""Runs one AI call behind the token quota gate."""

import logging
from dataclasses import dataclass
from typing import Optional

from ..models.ai import AiRequestEnvelope, AiResponseEnvelope
from ..models.quota import QuotaSnapshot
from ..providers.base import AIProvider
from .quota import InsufficientQuotaError, UsageQuotaGate

logger = logging.getLogger(__name__)


@dataclass
class MeteredResult:
    """Outcome of a metered call. Error envelopes are never charged."""
    response: AiResponseEnvelope
    snapshot: Optional[QuotaSnapshot]
    charged: bool = False


def _remaining(gate: UsageQuotaGate) -> Optional[int]:
    snapshot = gate.snapshot
    if snapshot is None or snapshot.is_premium:
        return None
    return max(snapshot.record.remaining_credits, 0)


async def run_metered(
    gate: UsageQuotaGate,
    provider: AIProvider,
    account_id: str,
    envelope: AiRequestEnvelope,
    cost: int = 1,
    description: Optional[str] = None,
) -> MeteredResult:
    """
    Check, call, then charge.

    1. Load (or provision) the quota and check it against `cost`. If the
       check fails the provider is never called.
    2. Send the request.
    3. Charge only when the provider returned text or structured output.
       If the authoritative charge is refused (another request spent the
       balance meanwhile) the response is withheld.

    Raises:
        InsufficientQuotaError: the balance does not cover `cost`
        QuotaNotFoundError: the quota record vanished before the charge
        QuotaUnavailableError: quota storage failed (fail closed)
    """
    await gate.load_or_provision(account_id)

    if not gate.check_available(cost):
        logger.info(f"User {account_id} cannot afford {cost} tokens, skipping AI call")
        raise InsufficientQuotaError(cost, _remaining(gate))

    response = await provider.complete(envelope)

    if response.is_error:
        logger.info(
            f"AI call for user {account_id} failed with {response.error_kind.value}, no tokens charged"
        )
        return MeteredResult(response=response, snapshot=gate.snapshot, charged=False)

    if not await gate.charge(account_id, cost, description=description):
        raise InsufficientQuotaError(cost, _remaining(gate))

    return MeteredResult(response=response, snapshot=gate.snapshot, charged=True)
