from dataclasses import dataclass
from enum import Enum

from wordmimic.analytics.chain import END, START, Chain, next_weights
from wordmimic.core.rng import DeterministicRng
from wordmimic.core.validation import is_valid_length_range


class Ending(str, Enum):
    WALKING = 'walking'
    CLEAN = 'clean'          # drew END inside the allowed bounds
    PREMATURE = 'premature'  # dead end before ending was allowed
    FORCED = 'forced'        # cut off at max length, or dead end once ending was allowed
    NO_PATH = 'no_path'      # every candidate was excluded


MARKERS = {
    Ending.CLEAN: '.',
    Ending.PREMATURE: '!',
    Ending.FORCED: '',
    Ending.NO_PATH: '!!',
}


@dataclass
class Imitation:
    body: str
    ending: Ending

    @property
    def text(self) -> str:
        return self.body + MARKERS[self.ending]


class Imitator:
    """Random walk over a learned chain, producing strings that imitate the examples."""

    def __init__(self, chain: Chain, seed: int = 0, rng: DeterministicRng | None = None):
        self.chain = chain
        self.rng = rng if rng is not None else DeterministicRng(seed=seed)

    def imitate_char_after(self, premise: str, can_end: bool) -> str | None:
        excluded = () if can_end else (END,)
        return self.rng.select_weighted(next_weights(self.chain, premise), excluded)

    def imitate_detailed(self, min_len: int, max_len: int) -> Imitation:
        """
        Walk from START for at most ``max_len`` symbols.

        END is excluded until more than ``min_len`` steps were taken. Every run
        emits at least one symbol or marker, except ``max_len == 0``: the walk
        never starts and the result is an empty, unmarked FORCED imitation.
        """
        if not is_valid_length_range(min_len, max_len):
            raise ValueError(f"need 0 <= min_len <= max_len, got {min_len}, {max_len}")
        body = ''
        symbol = START
        for i in range(max_len):
            can_end = i > min_len
            if not next_weights(self.chain, symbol):
                return Imitation(body, Ending.FORCED if can_end else Ending.PREMATURE)
            symbol = self.imitate_char_after(symbol, can_end)
            if symbol is None:
                return Imitation(body, Ending.NO_PATH)
            if symbol == END:
                return Imitation(body, Ending.CLEAN)
            body += symbol
        return Imitation(body, Ending.FORCED)

    def imitate(self, min_len: int, max_len: int) -> str:
        return self.imitate_detailed(min_len, max_len).text

    def imitate_many(self, count: int, min_len: int, max_len: int) -> list[str]:
        return [self.imitate(min_len, max_len) for _ in range(count)]
