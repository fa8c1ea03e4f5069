"""
Claim Field Validator

Format checks shared by the HTTP API and the bulk loader. The checks have no
side effects and never touch the database; existence of the referenced
pharmacy is checked by the claims service.
"""

from decimal import Decimal
from typing import Protocol

from pharmacy_claims.core.enums import PharmacyChain
from pharmacy_claims.utils.errors import ValidationError

NDC_MIN_DIGITS = 9
NDC_MAX_DIGITS = 11
NPI_DIGITS = 10

# Column domain of claims.quantity and claims.price: Numeric(10, 2)
AMOUNT_SCALE = 2
AMOUNT_MAX_INTEGER_DIGITS = 8
AMOUNT_STEP = Decimal(1).scaleb(-AMOUNT_SCALE)
AMOUNT_LIMIT = Decimal(10) ** AMOUNT_MAX_INTEGER_DIGITS


class ClaimFields(Protocol):
    """Anything carrying the four validated claim fields."""

    ndc: str
    npi: str
    quantity: Decimal
    price: Decimal


def _is_ascii_digits(value: str) -> bool:
    # str.isdigit() also accepts non-ASCII digits such as "¹" or "٣"
    return value.isascii() and value.isdigit()


def _fits_amount_column(value: Decimal) -> bool:
    """True when ``value`` is stored without rounding or overflow."""
    if abs(value) >= AMOUNT_LIMIT:
        return False
    return value == value.quantize(AMOUNT_STEP)


class ClaimValidator:
    """
    Stateless claim field validator.

    Each ``validate_*`` method raises :class:`ValidationError` with ``field``
    set to the offending field name.
    """

    def validate_ndc(self, ndc: str) -> None:
        if not (NDC_MIN_DIGITS <= len(ndc) <= NDC_MAX_DIGITS) or not _is_ascii_digits(ndc):
            raise ValidationError(
                f"NDC must be {NDC_MIN_DIGITS}-{NDC_MAX_DIGITS} digits, got {ndc!r}", field="ndc"
            )

    def validate_npi(self, npi: str) -> None:
        if len(npi) != NPI_DIGITS or not _is_ascii_digits(npi):
            raise ValidationError(f"NPI must be exactly {NPI_DIGITS} digits, got {npi!r}", field="npi")

    def validate_quantity(self, quantity: Decimal) -> None:
        if not quantity.is_finite() or quantity <= 0:
            raise ValidationError(f"quantity must be positive, got {quantity}", field="quantity")
        self._check_amount_precision("quantity", quantity)

    def validate_price(self, price: Decimal) -> None:
        if not price.is_finite() or price < 0:
            raise ValidationError(f"price must not be negative, got {price}", field="price")
        self._check_amount_precision("price", price)

    def _check_amount_precision(self, field: str, value: Decimal) -> None:
        if not _fits_amount_column(value):
            raise ValidationError(
                f"{field} must have at most {AMOUNT_MAX_INTEGER_DIGITS} integer digits "
                f"and {AMOUNT_SCALE} decimal places, got {value}",
                field=field,
            )

    def validate_chain(self, chain: str) -> None:
        if chain not in PharmacyChain.values():
            allowed = ", ".join(PharmacyChain.values())
            raise ValidationError(f"chain must be one of {allowed}, got {chain!r}", field="chain")

    def validate_claim_request(self, request: ClaimFields) -> None:
        """Run the claim checks in order: ndc, npi, quantity, price."""
        self.validate_ndc(request.ndc)
        self.validate_npi(request.npi)
        self.validate_quantity(request.quantity)
        self.validate_price(request.price)
