"""
Known-plaintext checks on the discovered prefix.
"""

from perf_solver.core.exceptions import ConfigurationError, ConstraintMismatch


class ConstraintValidator:
    """
    Compares the discovered prefix with optional starts_with/ends_with text.

    starts_with is checked over whatever overlaps the prefix. ends_with
    covers the last len(ends_with) characters of the password, so it only
    applies once the prefix has grown into that window.

    Example:
        >>> validator = ConstraintValidator(target_length=5, starts_with="ab")
        >>> validator.validate("a")
        >>> validator.validate("ab")

    validate("ax") would raise ConstraintMismatch for starts_with.
    """

    def __init__(self, target_length: int, starts_with: str = "", ends_with: str = ""):
        if len(starts_with) > target_length:
            raise ConfigurationError(
                f"starts_with is longer than the password length ({target_length})"
            )
        if len(ends_with) > target_length:
            raise ConfigurationError(
                f"ends_with is longer than the password length ({target_length})"
            )

        self.target_length = target_length
        self.starts_with = starts_with
        self.ends_with = ends_with

    def validate(self, prefix: str) -> None:
        """
        Raise if the prefix contradicts either constraint.

        Raises:
            ConstraintMismatch: On the first conflicting constraint
        """
        if self.starts_with:
            overlap = min(len(prefix), len(self.starts_with))
            if prefix[:overlap] != self.starts_with[:overlap]:
                raise ConstraintMismatch("starts_with", prefix, self.starts_with)

        if self.ends_with:
            window_start = self.target_length - len(self.ends_with)
            if len(prefix) > window_start:
                tail = prefix[window_start:]
                if tail != self.ends_with[:len(tail)]:
                    raise ConstraintMismatch("ends_with", prefix, self.ends_with)
