import re
from decimal import Decimal, InvalidOperation
from typing import NamedTuple

# <sign><number><suffix> as accepted by the Kubernetes API server.
_QUANTITY_PATTERN = re.compile(
    r"^(?P<number>[+-]?(?:\d+(?:\.\d*)?|\.\d+))"
    r"(?P<suffix>Ki|Mi|Gi|Ti|Pi|Ei|[numkMGTPE]|[eE][+-]?\d+)?$"
)


class Quantity(NamedTuple):
    """A parsed Kubernetes resource quantity, e.g. `128Mi` or `1.5G`."""

    text: str
    number: Decimal
    suffix: str

    @classmethod
    def parse(cls, value: str) -> "Quantity":
        """Parse a quantity string.

        Raises:
            ValueError: If the value is not a valid quantity.
        """
        if value is None:
            raise ValueError("Quantity cannot be empty")
        text = str(value).strip()
        if not text:
            raise ValueError("Quantity cannot be empty")
        match = _QUANTITY_PATTERN.match(text)
        if match is None:
            raise ValueError(f"Invalid quantity: {value!r}")
        try:
            number = Decimal(match.group("number"))
        except InvalidOperation:
            raise ValueError(f"Invalid quantity: {value!r}")
        return cls(text, number, match.group("suffix") or "")

    def __str__(self) -> str:
        return self.text
