from __future__ import annotations

import random
from dataclasses import dataclass
from typing import FrozenSet, Hashable, Iterable, List, MutableSequence, Optional, Sequence, Tuple

DEFAULT_MAX_ATTEMPTS = 5000


class AssignmentError(RuntimeError):
    pass


class InsufficientParticipants(AssignmentError):
    def __init__(self, count: int) -> None:
        self.count = count
        super().__init__(f"At least 2 participants are required for a draw (got {count}).")


class AssignmentInfeasible(AssignmentError):
    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(
            f"Could not generate a draw without group collisions after {attempts} attempts."
        )


@dataclass(frozen=True)
class DrawParticipant:
    id: Hashable
    group_ids: FrozenSet[Hashable] = frozenset()

    def shares_group_with(self, other: "DrawParticipant") -> bool:
        return not self.group_ids.isdisjoint(other.group_ids)


def build_participants(
    records: Iterable[Tuple[Hashable, Iterable[Hashable]]],
) -> List[DrawParticipant]:
    return [
        DrawParticipant(id=participant_id, group_ids=frozenset(group_ids or ()))
        for participant_id, group_ids in records
    ]


def shuffle(items: MutableSequence, rng: random.Random) -> None:
    """Fisher-Yates shuffle in place, drawing indices from ``rng``."""
    for i in range(len(items) - 1, 0, -1):
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]


def is_valid(givers: Sequence[DrawParticipant], receivers: Sequence[DrawParticipant]) -> bool:
    for giver, receiver in zip(givers, receivers):
        if giver.id == receiver.id:
            return False
        if giver.shares_group_with(receiver):
            return False
    return True


def generate_assignments(
    participants: Sequence[DrawParticipant],
    seed: Optional[int] = None,
    rng: Optional[random.Random] = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> List[Tuple[Hashable, Hashable]]:
    """Pair every participant with a receiver outside their own exclusion groups.

    Receivers are reshuffled until the positional pairing with the givers
    has no self-assignment and no shared group, at most ``max_attempts``
    times. Pairs come back in the order of ``participants``.
    """
    if len(participants) < 2:
        raise InsufficientParticipants(len(participants))

    ids = [participant.id for participant in participants]
    if len(set(ids)) != len(ids):
        raise ValueError("Participant ids must be unique within a draw.")

    if rng is None:
        rng = random.Random(seed)

    givers = list(participants)
    receivers = list(participants)

    for _ in range(max_attempts):
        shuffle(receivers, rng)
        if is_valid(givers, receivers):
            return [(giver.id, receiver.id) for giver, receiver in zip(givers, receivers)]

    raise AssignmentInfeasible(max_attempts)
