"""
Probe construction.

Turns a guessed prefix plus one candidate character into the exact
input delivered to the target. Probe shape feeds straight into the
measured score, so the concatenation order is fixed.
"""

from dataclasses import dataclass


DEFAULT_FILLER = "A"


@dataclass(frozen=True)
class ProbeBuilder:
    """
    Builds probes as input_beg + body + input_end.

    Attributes:
        input_beg: Literal text placed before the guessed body
        input_end: Literal text placed after the guessed body
        length: Target password length (0 when still unknown)
        padding: Filler character used to pad the body to `length`;
            empty disables padding

    Example:
        >>> builder = ProbeBuilder("FLAG{", "}", length=6, padding="_")
        >>> builder.prepare("ab")
        'FLAG{ab____}'
    """
    input_beg: str = ""
    input_end: str = ""
    length: int = 0
    padding: str = ""

    def prepare(self, body: str) -> str:
        """
        Build the probe for a guessed body (prefix + candidate).

        Args:
            body: Discovered prefix with the candidate character appended

        Returns:
            The full input for the target
        """
        if self.length > 0:
            if self.padding:
                body = body.ljust(self.length, self.padding)
            body = body[:self.length]

        return f"{self.input_beg}{body}{self.input_end}"

    def prepare_filler(self, length: int) -> str:
        """
        Build a probe whose body is `length` filler characters.

        Used by length discovery before any character is known.

        Args:
            length: Number of filler characters

        Returns:
            The full input for the target
        """
        filler = self.padding or DEFAULT_FILLER
        return f"{self.input_beg}{filler * length}{self.input_end}"
