"""Conversion layer -- amount propagation, pair conversion, and bounded history."""

from fxsync.conversion.engine import apply_edit, convert_pair, parse_amount, round_amount
from fxsync.conversion.history import (
    MAX_HISTORY,
    HistoryLog,
    history_currencies,
    history_to_csv,
    query_history,
)

__all__ = [
    "MAX_HISTORY",
    "HistoryLog",
    "apply_edit",
    "convert_pair",
    "history_currencies",
    "history_to_csv",
    "parse_amount",
    "query_history",
    "round_amount",
]
