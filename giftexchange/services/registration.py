import logging
from typing import Sequence, Tuple

from ..errors import ValidationError
from ..models.participants import Participant, build_participant_or_raise
from ..settings import DEFAULT_PARTICIPANT_TARGET
from .store import DocumentStore

logger = logging.getLogger(__name__)


def register_participant(
    store: DocumentStore,
    *,
    name: str,
    email: str,
    spouse_name: str = "",
    wishlist: str = "",
    quick_picks: Sequence[Tuple[str, str]] = (),
    target: int = DEFAULT_PARTICIPANT_TARGET,
) -> Participant:
    """Signs one person up, refusing once the exchange is full."""
    existing = store.list_participants()
    taken = max(store.participant_count(), len(existing))
    if taken >= target:
        logger.info("Signup refused for %s: %d of %d places taken", name, taken, target)
        raise ValidationError("Sign-ups are full this year. If you need to update your info, contact the organizer.")

    participant = build_participant_or_raise(
        name=name,
        email=email,
        spouse_name=spouse_name,
        wishlist=wishlist,
        quick_picks=quick_picks,
        existing=existing,
    )
    participant = store.add_participant(participant)
    store.set_participant_count(taken + 1)
    return participant
