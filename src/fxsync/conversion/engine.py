"""Multi-currency amount propagation and single-pair conversion.

Every derived amount is computed from one anchor: the edited amount
expressed in the snapshot's base currency. Amounts are rounded with
ROUND_HALF_UP (half away from zero) to the configured decimal places.

All monetary values use Decimal. Never use float for amounts or rates.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from fxsync.exceptions import InvalidAmountError
from fxsync.models import ConversionRecord, RateSnapshot


def parse_amount(value: Decimal | int | str) -> Decimal:
    """Convert user input to a finite Decimal. Raises InvalidAmountError otherwise."""
    try:
        amount = Decimal(str(value))
    except InvalidOperation as e:
        raise InvalidAmountError(f"{value!r} is not a number") from e
    if not amount.is_finite():
        raise InvalidAmountError(f"{value!r} is not a finite amount")
    return amount


def round_amount(value: Decimal, decimal_places: int) -> Decimal:
    """Round half away from zero to `decimal_places`.

    Args:
        value: The raw amount.
        decimal_places: Digits after the point; 0 rounds to a whole unit.

    Returns:
        The rounded amount, e.g. round_amount(Decimal("2.345"), 2) == Decimal("2.35").

    Raises:
        InvalidAmountError: The result needs more digits than the context
            precision (28), e.g. 1e21 at 8 places.
    """
    try:
        return value.quantize(Decimal(1).scaleb(-decimal_places), rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise InvalidAmountError(
            f"{value} cannot be represented with {decimal_places} decimal places"
        ) from e


def apply_edit(
    amounts: dict[str, Decimal],
    edited: str,
    new_amount: Decimal,
    snapshot: RateSnapshot | None,
    decimal_places: int,
) -> dict[str, Decimal]:
    """Propagate one edited amount to every currency the snapshot prices.

    Returns a new mapping; `amounts` is not modified. The edited currency
    always takes the (rounded) new amount. Nothing else changes when there
    is no snapshot, the amount is not positive, or the edited currency has
    no rate. Currencies missing from the snapshot keep their prior amounts.
    Raises InvalidAmountError if any result cannot be rounded.
    """
    result = dict(amounts)
    result[edited] = round_amount(new_amount, decimal_places)

    if snapshot is None or new_amount <= 0:
        return result

    edited_rate = snapshot.rate_for(edited)
    if edited_rate is None or edited_rate <= 0:
        return result

    anchor = new_amount if edited == snapshot.base else new_amount / edited_rate

    for code, rate in snapshot.rates.items():
        if code != edited:
            result[code] = round_amount(anchor * rate, decimal_places)

    if edited != snapshot.base:
        result[snapshot.base] = round_amount(anchor, decimal_places)

    return result


def convert_pair(
    from_currency: str,
    to_currency: str,
    amount: Decimal,
    snapshot: RateSnapshot | None,
    decimal_places: int,
    record_id: int,
    timestamp_ms: int,
) -> ConversionRecord | None:
    """Convert `amount` between two currencies and describe it as a record.

    The effective rate is rate(to) / rate(from), both against the snapshot
    base. Returns None when there is no snapshot or either rate is missing
    or not positive.
    """
    if snapshot is None:
        return None

    from_rate = snapshot.rate_for(from_currency)
    to_rate = snapshot.rate_for(to_currency)
    if from_rate is None or to_rate is None or from_rate <= 0 or to_rate <= 0:
        return None

    anchor = amount / from_rate
    converted = anchor * to_rate

    return ConversionRecord(
        id=record_id,
        from_currency=from_currency,
        to_currency=to_currency,
        from_amount=amount,
        to_amount=round_amount(converted, decimal_places),
        exchange_rate=to_rate / from_rate,
        timestamp_ms=timestamp_ms,
        source=snapshot.source,
    )
