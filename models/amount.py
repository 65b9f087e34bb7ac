import math
from typing import Annotated, Any

from pydantic import BeforeValidator


def coerce_number(value: Any) -> float:
    """
    Coerce a numeric-like value to a float.

    Anything that does not parse as a finite number (None, booleans, empty or
    non-numeric strings, NaN, infinities) becomes 0.0.  Never raises.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


# Float field that tolerates string-typed or missing input from the store/backend
Amount = Annotated[float, BeforeValidator(coerce_number)]
