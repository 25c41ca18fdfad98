"""
Vote counting.

Everything here is a pure function over election vote rows
(``candidate_delegate_id``, ``voter_delegate_id``, ``vote_rank``).
"""

from collections import Counter, defaultdict
from collections.abc import Iterable, Mapping
from typing import Any


def count_votes(votes: Iterable[Mapping[str, Any]]) -> list[dict[str, int]]:
    """
    Count rows per candidate, ignoring rank.

    Candidates without votes are absent. Ordered by count descending, then id.
    """
    counts = Counter(vote["candidate_delegate_id"] for vote in votes)
    return [
        {"candidate_delegate_id": candidate_id, "count": count}
        for candidate_id, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    ]


def ballots_from_votes(votes: Iterable[Mapping[str, Any]]) -> list[list[int]]:
    """
    Rebuild one ordered preference list per voter.

    Rows are ordered by rank (unranked rows last, in insertion order). A candidate
    repeated on the same ballot only counts at its best rank.
    """
    by_voter: dict[int, list[Mapping[str, Any]]] = defaultdict(list)
    for vote in votes:
        by_voter[vote["voter_delegate_id"]].append(vote)

    ballots = []
    for voter_id in sorted(by_voter):
        rows = sorted(
            by_voter[voter_id],
            key=lambda v: (v.get("vote_rank") is None, v.get("vote_rank") or 0, v.get("id") or 0),
        )
        ballot: list[int] = []
        for row in rows:
            if row["candidate_delegate_id"] not in ballot:
                ballot.append(row["candidate_delegate_id"])
        ballots.append(ballot)
    return ballots


def instant_runoff(ballots: Iterable[list[int]]) -> dict[str, Any]:
    """
    Single-winner instant-runoff count.

    Each round credits every ballot to its highest-ranked continuing candidate.
    A candidate holding more than half of the non-exhausted ballots wins.
    Otherwise every candidate tied for the fewest votes is eliminated together;
    if that would eliminate everyone still standing, the count ends in a tie
    with no winner.
    """
    ballots = [ballot for ballot in ballots if ballot]
    continuing = {candidate for ballot in ballots for candidate in ballot}
    rounds: list[dict[str, Any]] = []
    winner = None
    tied: list[int] = []

    while continuing:
        counts = {candidate: 0 for candidate in continuing}
        exhausted = 0
        for ballot in ballots:
            choice = next((c for c in ballot if c in continuing), None)
            if choice is None:
                exhausted += 1
            else:
                counts[choice] += 1

        active = sum(counts.values())
        round_result: dict[str, Any] = {
            "round": len(rounds) + 1,
            "counts": [
                {"candidate_delegate_id": c, "count": n}
                for c, n in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
            ],
            "exhausted": exhausted,
            "eliminated": [],
        }
        rounds.append(round_result)

        if active == 0:
            break

        leader = round_result["counts"][0]
        if leader["count"] * 2 > active:
            winner = leader["candidate_delegate_id"]
            break

        fewest = min(counts.values())
        losers = sorted(c for c, n in counts.items() if n == fewest)
        if len(losers) == len(continuing):
            tied = losers
            break

        round_result["eliminated"] = losers
        continuing.difference_update(losers)

    return {"winner": winner, "tied": tied, "rounds": rounds}


def _plurality(tally: list[dict[str, int]], seat_count: int) -> tuple[list[int], list[int]]:
    """Top ``seat_count`` candidates; candidates tied across the last seat are reported as tied."""
    if len(tally) <= seat_count:
        return [row["candidate_delegate_id"] for row in tally], []

    cutoff = tally[seat_count - 1]["count"]
    if tally[seat_count]["count"] < cutoff:
        return [row["candidate_delegate_id"] for row in tally[:seat_count]], []

    winners = [row["candidate_delegate_id"] for row in tally if row["count"] > cutoff]
    tied = [row["candidate_delegate_id"] for row in tally if row["count"] == cutoff]
    return winners, tied


def determine_outcome(
    method: str, votes: list[Mapping[str, Any]], seat_count: int = 1
) -> dict[str, Any]:
    """
    Decide the winners of an election from its vote rows.

    - ``plurality``: the ``seat_count`` most-voted candidates.
    - ``majority``: the leader wins only with more than half of all votes;
      otherwise ``runoff_required`` is set and the runoff field is every
      candidate polling at least as well as the runner-up.
    - ``ranked``: instant-runoff over the voters' ranked ballots (single seat).
    """
    tally = count_votes(votes)
    outcome: dict[str, Any] = {
        "method": method,
        "total_votes": len(votes),
        "winners": [],
        "tied": [],
        "runoff_required": False,
    }

    if method == "ranked":
        ballots = ballots_from_votes(votes)
        irv = instant_runoff(ballots)
        outcome["ballots"] = len(ballots)
        outcome["rounds"] = irv["rounds"]
        outcome["tied"] = irv["tied"]
        if irv["winner"] is not None:
            outcome["winners"] = [irv["winner"]]
        return outcome

    if method == "majority":
        if not tally:
            return outcome
        leader = tally[0]
        if leader["count"] * 2 > len(votes):
            outcome["winners"] = [leader["candidate_delegate_id"]]
        else:
            runner_up = tally[1]["count"] if len(tally) > 1 else 0
            outcome["runoff_required"] = True
            outcome["runoff_candidates"] = [
                row["candidate_delegate_id"] for row in tally if row["count"] >= runner_up
            ]
        return outcome

    winners, tied = _plurality(tally, max(seat_count, 1))
    outcome["winners"] = winners
    outcome["tied"] = tied
    return outcome
