"""Pure decoders for values found in model output."""

from scan_organizer.decoders.amount import amount_token, format_amount_token, parse_amount, to_minor_units

__all__ = [
    "amount_token",
    "format_amount_token",
    "parse_amount",
    "to_minor_units",
]
