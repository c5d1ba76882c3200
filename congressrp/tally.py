from __future__ import annotations

from collections.abc import Mapping

from .bills import Category, Choice, Tally


def required_yeas(quorum_base: int, category: Category) -> int:
    # amendments need two-thirds, everything else a simple majority
    if category is Category.AMENDMENT:
        # ceil(2n/3), kept in integers
        return -(-2 * quorum_base // 3)
    return (quorum_base // 2) + 1


def tally(ballots: Mapping[int, Choice], category: Category, quorum_base: int | None = None) -> Tally:
    """
    Count a round's ballots and decide it.

    ``quorum_base`` defaults to the number of ballots actually recorded, so
    members who never pressed a button do not count against the bill. With
    zero ballots nothing is required on paper, but a round with no Yea never
    passes.
    """
    yea = nay = abs_ = 0
    for choice in ballots.values():
        if choice is Choice.YEA:
            yea += 1
        elif choice is Choice.NAY:
            nay += 1
        else:
            abs_ += 1

    base = len(ballots) if quorum_base is None else quorum_base
    required = required_yeas(base, category)
    return Tally(yea=yea, nay=nay, abs=abs_, required=required, passed=yea > 0 and yea >= required)


def describe_tally(result: Tally) -> str:
    return f"Yea {result.yea} · Nay {result.nay} · Abs {result.abs} · Required {result.required}"
