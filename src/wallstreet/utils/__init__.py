"""Utility modules for the settlement engine."""

from wallstreet.utils.numbers import MONEY_PRECISION, RETURN_PRECISION, round_to

__all__ = ["MONEY_PRECISION", "RETURN_PRECISION", "round_to"]
