"""
Round Robin Pairings: circle method (single source of truth)

Every group schedule in the engine comes from here. Do NOT duplicate the
rotation logic elsewhere: match generation and any display of upcoming
rounds must call these functions so they agree on who plays whom.
"""

from typing import List, Sequence, Tuple

from stage_engine.services.errors import InvalidInput

Pairing = Tuple[str, str]


# =============================================================================
# Counts
# =============================================================================

def round_count(team_count: int) -> int:
    """Number of rounds in a full round robin of an even team count: n - 1."""
    return team_count - 1


def round_robin_match_count(team_count: int) -> int:
    """Matches in a full round robin: C(n, 2) = n*(n-1)/2."""
    return (team_count * (team_count - 1)) // 2


# =============================================================================
# Circle Method
# =============================================================================

def generate_round_robin_rounds(team_ids: Sequence[str]) -> List[List[Pairing]]:
    """
    Full round-robin schedule for an even number of teams.

    Returns n-1 rounds (index 0 = round 1), each a list of n/2 pairings.

    Circle method:
    - positions 0..n-1 hold the team ids in input order
    - pair position i with position n-1-i
    - after each round keep position 0 fixed, move the last team to position 1
      and shift the others one step right
    - odd rounds emit (a, b), even rounds emit (b, a) so nobody is always
      listed first

    Example, 4 teams [A, B, C, D]:
    - Round 1: (A, D), (B, C)
    - Round 2: (C, A), (B, D)
    - Round 3: (A, B), (C, D)

    Deterministic: same input list, same schedule.
    """
    n = len(team_ids)
    if n < 2:
        raise InvalidInput(f"Round robin requires at least 2 teams. Got {n}.", team_count=n)
    if n % 2 != 0:
        raise InvalidInput(f"Round robin requires an even team count. Got {n}.", team_count=n)

    positions = list(team_ids)
    rounds: List[List[Pairing]] = []

    for round_num in range(1, n):
        pairings: List[Pairing] = []
        for i in range(n // 2):
            a, b = positions[i], positions[n - 1 - i]
            if round_num % 2 == 0:
                pairings.append((b, a))
            else:
                pairings.append((a, b))
        rounds.append(pairings)
        # Rotate: keep 0, move last to second, shift others
        positions = [positions[0]] + [positions[-1]] + positions[1:-1]

    return rounds


def round_pairings(team_ids: Sequence[str], round_number: int) -> List[Pairing]:
    """Pairings for a single 1-based round of the circle-method schedule."""
    n = len(team_ids)
    rounds = generate_round_robin_rounds(team_ids)
    if round_number < 1 or round_number > len(rounds):
        raise InvalidInput(
            f"Invalid round {round_number}. Expected 1..{round_count(n)}",
            team_count=n,
        )
    return rounds[round_number - 1]
