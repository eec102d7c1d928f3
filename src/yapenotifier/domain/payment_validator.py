"""Backend re-check of submitted payments.

Submissions that fail are stored with status "inconsistent" rather than
rejected, so operators keep the full audit trail.
"""

from dataclasses import dataclass
from decimal import Decimal

from yapenotifier.domain.classifier import (
    DEFAULT_MAX_AMOUNT,
    count_exclusion_keywords,
    has_payment_action,
    is_amount_in_range,
)


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    reason: str | None = None


def validate_payment(
    title: str | None,
    body: str | None,
    amount: Decimal | None,
    *,
    max_amount: Decimal = DEFAULT_MAX_AMOUNT,
) -> ValidationResult:
    """Apply the classifier's structural rules to a submitted payment.

    Args:
        title: Submitted title (may be None).
        body: Submitted body text.
        amount: Submitted amount, if the device extracted one.
        max_amount: Sanity ceiling for amounts.

    Returns:
        ValidationResult; reason is a machine code when invalid.
    """
    text = f"{title or ''} {body or ''}"

    if not (body or "").strip():
        return ValidationResult(False, "empty_text")

    if count_exclusion_keywords(text) >= 2:
        return ValidationResult(False, "promotional")

    if not has_payment_action(text):
        return ValidationResult(False, "no_payment_action")

    if amount is not None and not is_amount_in_range(Decimal(str(amount)), max_amount):
        return ValidationResult(False, "amount_out_of_range")

    return ValidationResult(True)
