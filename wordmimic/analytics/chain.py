import math
import re
from dataclasses import dataclass
from typing import Iterable, Mapping, NamedTuple

from wordmimic.errors import ReservedSymbolError

# Sentinels bounding every example; never valid inside user text
START = "\x02"
END = "\x03"

LINE_BREAK = re.compile(r"\r\n|\r|\n")

# premise -> next -> weight
Chain = dict[str, dict[str, int]]


class Match(NamedTuple):
    premise: str
    next: str


@dataclass
class ChainStats:
    contexts: int
    total_transitions: int
    avg_transitions_per_context: float
    entropy: float


def new_chain() -> Chain:
    return {}


def split_lines(text: str) -> list[str]:
    lines = (line.strip() for line in LINE_BREAK.split(text))
    return [line for line in lines if line]


def tokenize_example(line: str) -> list[Match]:
    if START in line or END in line:
        raise ReservedSymbolError(line=line)
    symbols = [START, *line, END]
    return [Match(a, b) for a, b in zip(symbols, symbols[1:])]


def fold(chain: Chain, match: Match) -> Chain:
    """Return a copy of ``chain`` with one more occurrence of ``match``.

    Only the touched premise row is reallocated; every other row is shared
    with the input chain, which is left untouched.
    """
    row = dict(chain.get(match.premise, {}))
    row[match.next] = row.get(match.next, 0) + 1
    updated = dict(chain)
    updated[match.premise] = row
    return updated


def fold_all(chain: Chain, matches: Iterable[Match]) -> Chain:
    for m in matches:
        chain = fold(chain, m)
    return chain


def merge(chain: Chain, other: Mapping[str, Mapping[str, int]]) -> Chain:
    """Add every weight of ``other`` into a copy of ``chain``."""
    if not other:
        return chain
    updated = dict(chain)
    for premise, nexts in other.items():
        row = dict(updated.get(premise, {}))
        for nxt, weight in nexts.items():
            row[nxt] = row.get(nxt, 0) + weight
        updated[premise] = row
    return updated


def build_from_text(text: str) -> Chain:
    chain = new_chain()
    for line in split_lines(text):
        chain = fold_all(chain, tokenize_example(line))
    return chain


def next_weights(chain: Chain, premise: str) -> dict[str, int]:
    return chain.get(premise, {})


def to_shape(chain: Chain) -> dict[str, dict[str, dict[str, int]]]:
    return {p: {n: {'weight': w} for n, w in row.items()} for p, row in chain.items()}


def from_shape(shape: Mapping[str, Mapping[str, Mapping[str, int]]]) -> Chain:
    chain = new_chain()
    for premise, row in shape.items():
        weights = {}
        for nxt, info in row.items():
            weight = int(info['weight'])
            if weight < 1:
                raise ValueError(f"weight must be >= 1 for {premise!r} -> {nxt!r}")
            weights[nxt] = weight
        if weights:
            chain[premise] = weights
    return chain


def chain_stats(chain: Chain) -> ChainStats:
    if not chain:
        return ChainStats(contexts=0, total_transitions=0,
                          avg_transitions_per_context=0.0, entropy=0.0)
    total = 0
    H = 0.0
    for row in chain.values():
        n = sum(row.values())
        total += n
        h = 0.0
        for c in row.values():
            p = c / n
            h -= p * math.log(p, 2)
        H += h
    return ChainStats(
        contexts=len(chain),
        total_transitions=total,
        avg_transitions_per_context=total / len(chain),
        entropy=H / len(chain),
    )
