"""
Error types for wordmimic.
"""

from __future__ import annotations


class NotLearnedError(RuntimeError):
    """
    Imitation was requested before any chain was learned successfully.
    """

    def __init__(self) -> None:
        super().__init__("No chain learned yet: call learn() with example text first")


class ReservedSymbolError(ValueError):
    """
    An example line contains one of the reserved sentinel characters.

    :param line: Offending example line.
    :type line: str
    """

    def __init__(self, *, line: str) -> None:
        self.line = line
        super().__init__(f"Example contains a reserved sentinel character: {line!r}")
