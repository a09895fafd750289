"""Custom validators for argument parsing."""

import argparse
from typing import Any, Sequence


class PositiveIntegerAction(argparse.Action):
    """Argparse action that validates the value is >= 1."""

    minimum = 1

    def __call__(
        self,
        parser: argparse.ArgumentParser,
        namespace: argparse.Namespace,
        values: str | Sequence[Any] | None,
        option_string: str | None = None,
    ) -> None:
        """
        Validate and set the value.

        Raises:
            ArgumentError: If the value is below the minimum.
        """
        # Since this is used with type=int in the argument parser,
        # values will already be converted to int by argparse
        if not isinstance(values, int):
            parser.error(f"{option_string} must be an integer")

        if values < self.minimum:
            parser.error(f"Minimum value for {option_string} is {self.minimum}")
        setattr(namespace, self.dest, values)


class NonNegativeIntegerAction(PositiveIntegerAction):
    """Argparse action that validates the value is >= 0."""

    minimum = 0
