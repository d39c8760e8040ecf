import logging
import random
from collections import deque
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from ..errors import InfeasibleError, ValidationError
from ..models.participants import Participant
from .history import index_historical_text, normalize

logger = logging.getLogger(__name__)

MIN_PARTICIPANTS = 3
DEFAULT_MAX_TRIES = 400
# Receivers one attempt may place (including re-placements after undo)
# before it gives up and the next attempt starts with a fresh order.
DEFAULT_NODE_BUDGET = 2000


@dataclass(frozen=True)
class Assignment:
    giver: Participant
    receiver: Participant


class _BudgetSpent(Exception):
    """An attempt used up its node budget without finishing."""


def build_exclusion_sets(
    participants: Iterable[Participant],
    historical_index: Mapping[str, Set[str]],
) -> Dict[str, Set[str]]:
    """
    Receivers each giver may not draw, keyed by normalized giver name:
    themself, their spouse (if any) and anyone they drew in a recorded year.
    A spouse who is signed up too gets the reverse exclusion, even when
    they left their own spouse field blank.
    """
    participants = list(participants)
    exclusions: Dict[str, Set[str]] = {}
    for p in participants:
        key = normalize(p.name)
        excluded = {key}
        spouse = normalize(p.spouse_name)
        if spouse:
            excluded.add(spouse)
        excluded.update(historical_index.get(key, ()))
        exclusions[key] = excluded
    for p in participants:
        spouse = normalize(p.spouse_name)
        if spouse in exclusions:
            exclusions[spouse].add(normalize(p.name))
    return exclusions


def _candidate_indices(keys: Sequence[str], exclusions: Mapping[str, Set[str]]) -> List[List[int]]:
    out: List[List[int]] = []
    for giver_key in keys:
        excluded = exclusions.get(giver_key, {giver_key})
        out.append([j for j, receiver_key in enumerate(keys) if receiver_key not in excluded])
    return out


def _has_perfect_matching(candidates: List[List[int]]) -> bool:
    """
    Whether every giver can get a distinct receiver, ignoring the
    reciprocal rule. Augments one giver at a time along alternating
    paths found breadth-first.
    """
    n = len(candidates)
    giver_of = [-1] * n
    receiver_of = [-1] * n
    for root in range(n):
        parent: Dict[int, int] = {}
        queue = deque([root])
        free = -1
        while queue and free < 0:
            g = queue.popleft()
            for r in candidates[g]:
                if r in parent:
                    continue
                parent[r] = g
                if giver_of[r] < 0:
                    free = r
                    break
                queue.append(giver_of[r])
        if free < 0:
            return False
        r = free
        while True:
            g = parent[r]
            previous = receiver_of[g]
            receiver_of[g] = r
            giver_of[r] = g
            if previous < 0:
                break
            r = previous
    return True


def check_feasibility(keys: Sequence[str], candidates: List[List[int]]) -> None:
    """
    Fails fast, before any search, when the exclusions already rule out
    every assignment. Raises InfeasibleError naming the stuck giver or
    receiver where there is one.
    """
    for giver_key, options in zip(keys, candidates):
        if not options:
            raise InfeasibleError(
                f"Nobody is left for {giver_key} to draw under the current constraints.",
                reason="no-candidates",
                giver=giver_key,
            )
    drawable: Set[int] = set()
    for options in candidates:
        drawable.update(options)
    for j, receiver_key in enumerate(keys):
        if j not in drawable:
            raise InfeasibleError(
                f"Nobody is allowed to draw {receiver_key} under the current constraints.",
                reason="no-candidates",
                receiver=receiver_key,
            )
    if not _has_perfect_matching(candidates):
        raise InfeasibleError(
            "The exclusions leave no way for everyone to give and receive exactly once.",
            reason="no-matching",
        )


def _giver_order(candidates: List[List[int]], rng) -> List[int]:
    # Shuffle first so the stable sort breaks ties randomly; fewest options go first.
    order = list(range(len(candidates)))
    rng.shuffle(order)
    order.sort(key=lambda i: len(candidates[i]))
    return order


def _backtrack(
    order: List[int],
    candidates: List[List[int]],
    allow_reciprocal: bool,
    rng,
    node_budget: Optional[int] = None,
) -> Optional[List[int]]:
    """
    One randomized depth-first pass over givers in `order`.
    Returns receiver indices aligned with `order`, or None once every
    branch has been tried. Raises _BudgetSpent after `node_budget`
    placements. Frames are [options, cursor] on an explicit stack instead
    of recursion.
    """
    n = len(order)
    if n == 0:
        return []
    used: Set[int] = set()
    gives_to: Dict[int, int] = {}
    chosen: List[int] = []
    placed = 0

    def live_options(depth: int) -> List[int]:
        giver = order[depth]
        options = [
            r for r in candidates[giver]
            if r not in used and (allow_reciprocal or gives_to.get(r) != giver)
        ]
        rng.shuffle(options)
        return options

    stack: List[list] = [[live_options(0), 0]]
    while stack:
        depth = len(stack) - 1
        frame = stack[-1]
        if len(chosen) > depth:
            # coming back to this frame: undo its previous pick
            prev = chosen.pop()
            used.discard(prev)
            del gives_to[order[depth]]
        options, cursor = frame
        if cursor >= len(options):
            stack.pop()
            continue
        placed += 1
        if node_budget is not None and placed > node_budget:
            raise _BudgetSpent()
        receiver = options[cursor]
        frame[1] = cursor + 1
        chosen.append(receiver)
        used.add(receiver)
        gives_to[order[depth]] = receiver
        if depth + 1 == n:
            return chosen
        stack.append([live_options(depth + 1), 0])
    return None


def _search(
    participants: Sequence[Participant],
    candidates: List[List[int]],
    max_tries: int,
    allow_reciprocal: bool,
    rng,
    node_budget: Optional[int],
) -> Tuple[Optional[List[Assignment]], int]:
    """Retry loop. Returns (assignments or None, attempts run)."""
    for attempt in range(1, max_tries + 1):
        order = _giver_order(candidates, rng)
        try:
            receivers = _backtrack(order, candidates, allow_reciprocal, rng, node_budget)
        except _BudgetSpent:
            logger.debug("Attempt %d gave up after %d placements", attempt, node_budget)
            continue
        if receivers is None:
            # every branch was tried, so another order cannot help
            logger.warning("No assignment exists; search exhausted on attempt %d", attempt)
            return None, attempt
        logger.debug("Found assignment on attempt %d of %d", attempt, max_tries)
        return [Assignment(participants[g], participants[r]) for g, r in zip(order, receivers)], attempt

    logger.warning("No assignment found after %d attempts", max_tries)
    return None, max_tries


def find_secret_santa_assignment(
    participants: Sequence[Participant],
    exclusions: Mapping[str, Set[str]],
    max_tries: int = DEFAULT_MAX_TRIES,
    allow_reciprocal: bool = False,
    rng: Optional[random.Random] = None,
    node_budget: Optional[int] = DEFAULT_NODE_BUDGET,
) -> Optional[List[Assignment]]:
    """
    Randomized backtracking with retry.
    Constraints:
      - Nobody draws a name in their exclusion set (self, spouse, past years).
      - Each participant gives exactly once and receives exactly once.
      - Unless allow_reciprocal, no two people draw each other.
    Returns the assignments in giver order, or None if nothing was found.

    Quick impossibility (a giver with no candidates, a receiver nobody may
    draw, no one-to-one drawing) returns None before any search. Each
    attempt places at most `node_budget` receivers; an attempt that tries
    every branch ends the retries.
    """
    rng = rng or random
    keys = [normalize(p.name) for p in participants]
    candidates = _candidate_indices(keys, exclusions)
    try:
        check_feasibility(keys, candidates)
    except InfeasibleError as e:
        logger.debug("Feasibility precheck failed (%s); skipping search", e.reason)
        return None
    assignments, _ = _search(participants, candidates, max_tries, allow_reciprocal, rng, node_budget)
    return assignments


def verify_assignments(
    assignments: Sequence[Assignment],
    participants: Sequence[Participant],
    exclusions: Mapping[str, Set[str]],
) -> None:
    expected = {normalize(p.name) for p in participants}
    givers = [normalize(a.giver.name) for a in assignments]
    receivers = [normalize(a.receiver.name) for a in assignments]

    issues = []
    if set(givers) != expected or len(givers) != len(expected):
        issues.append(f"Givers do not match participants: {sorted(set(givers) ^ expected)}")
    if set(receivers) != expected or len(receivers) != len(expected):
        issues.append(f"Receivers do not match participants: {sorted(set(receivers) ^ expected)}")
    if len(set(receivers)) != len(receivers):
        issues.append("Duplicate receivers detected")
    forbidden = [g for g, r in zip(givers, receivers) if r in exclusions.get(g, {g})]
    if forbidden:
        issues.append(f"Excluded receivers drawn by: {sorted(forbidden)}")

    if issues:
        raise ValueError("Assignment verification failed; " + "; ".join(issues))


def generate_assignments(
    participants: Sequence[Participant],
    historical_blocks: Sequence[Optional[str]] = (),
    *,
    max_tries: int = DEFAULT_MAX_TRIES,
    allow_reciprocal: bool = False,
    strict_history: bool = False,
    rng: Optional[random.Random] = None,
    node_budget: Optional[int] = DEFAULT_NODE_BUDGET,
) -> List[Assignment]:
    """
    Checks preconditions, builds exclusions and runs the search.
    Raises ValidationError for bad input and InfeasibleError when the
    constraints leave no assignment.
    """
    participants = list(participants)
    if len(participants) < MIN_PARTICIPANTS:
        raise ValidationError(f"Need at least {MIN_PARTICIPANTS} participants!")
    keys = [normalize(p.name) for p in participants]
    if not all(keys):
        raise ValidationError("All participants need a name before assignments can be created.")
    if len(set(keys)) != len(keys):
        raise ValidationError("Every name must be unique (duplicate names found).")

    history = index_historical_text(*historical_blocks, strict=strict_history)
    exclusions = build_exclusion_sets(participants, history)
    candidates = _candidate_indices(keys, exclusions)
    check_feasibility(keys, candidates)

    assignments, attempts = _search(
        participants, candidates, max_tries, allow_reciprocal, rng or random, node_budget
    )
    if assignments is None:
        raise InfeasibleError(
            "Could not create valid assignments with current constraints.",
            reason="exhausted",
            attempts=attempts,
        )
    verify_assignments(assignments, participants, exclusions)
    logger.info("Generated %d assignments", len(assignments))
    return assignments
