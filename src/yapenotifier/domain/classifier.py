"""Deterministic payment-notification classifier.

NO ML. Ordered keyword tables and regex cascades, first match wins.
The order of every table below changes real-world outcomes; append new
entries, do not reorder existing ones.
Security: NEVER log raw text (PII).
"""

import re
from decimal import Decimal, InvalidOperation

from yapenotifier.domain.events import PaymentEvent, Rejected
from yapenotifier.infra.time import from_epoch_ms, to_iso

DEFAULT_MAX_AMOUNT = Decimal("1000000")

# The listener's own package never maps to a bank
OWN_PACKAGE = "com.yapenotifier.android"

# Ordered substring table: "com.bcp.innovacxion.yapeapp" is Yape, not BCP
_PACKAGE_SOURCE_TABLE: tuple[tuple[str, str], ...] = (
    ("yape", "yape"),
    ("plin", "plin"),
    ("bancadigital", "bcp"),
    ("bcp", "bcp"),
    ("interbank", "interbank"),
    ("bbva", "bbva"),
    ("scotiabank", "scotiabank"),
)

# Payment-receipt cues; at least one must be present in the body
INCLUSION_KEYWORDS: tuple[str, ...] = (
    "te envió",
    "te envio",
    "te yapeó",
    "te yapeo",
    "plineado",
    "te plineó",
    "te plineo",
    "te transfirió",
    "te transfirio",
    "recibiste",
    "pago recibido",
    "transferencia",
    "depósito",
    "deposito",
    "s/",
    "soles",
    "us$",
    "$",
    "dólares",
    "dolares",
)

# Cues that only ever appear in PEN-denominated notifications
_PEN_ONLY_CUES = frozenset({
    "te yapeó", "te yapeo", "plineado", "te plineó", "te plineo", "s/", "soles",
})

# Promotional / informational vocabulary. Counted, never decisive alone.
EXCLUSION_KEYWORDS: tuple[str, ...] = (
    # Publicidad y promociones
    "descuento", "dscto", "oferta", "promoción", "promocion", "aprovecha",
    "solo hoy", "exclusivo", "campaña", "gana", "participa", "sorteo",
    "regalo", "gratis", "hasta", "despegar", "booking", "trivago", "viaje",
    "vuelo", "hotel",
    # Recordatorios e informativos
    "recuerda", "recordatorio", "no dejes", "venza", "vencer", "revisa",
    "ingresa", "ingresa al app", "ya te depositaron", "revisa tu dinero",
    "revisa tu saldo", "consulta tu saldo", "disponible", "úsalo",
    "cuando quieras", "cambia ahora", "vender dólares", "comprar dólares",
    "tipo de cambio",
    # Consumos y movimientos propios
    "realizaste un consumo", "consumo", "movimiento", "saldo", "consulta",
    "información",
)

# Verbs that describe money arriving at the account holder
PAYMENT_ACTIONS: tuple[str, ...] = (
    "te envió",
    "te envio",
    "te yapeó",
    "te yapeo",
    "te ha plineado",
    "te plineó",
    "te plineo",
    "te transfirió",
    "te transfirio",
    "recibiste",
    "pago recibido",
    "transferencia recibida",
    "depósito recibido",
    "deposito recibido",
)


def _keyword_regex(keywords: tuple[str, ...]) -> re.Pattern[str]:
    # Longest first so a phrase consumes its own sub-keywords
    ordered = sorted(set(keywords), key=len, reverse=True)
    alternation = "|".join(re.escape(k) for k in ordered)
    return re.compile(rf"(?<!\w)(?:{alternation})(?!\w)", re.IGNORECASE)


_EXCLUSION_RE = _keyword_regex(EXCLUSION_KEYWORDS)

# Thousands-grouped numbers first, so "1,250.50" is not read as "1"
_NUMBER = r"(\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)"

# Amount cascade, tried in order
_AMOUNT_WITH_SYMBOL = re.compile(
    rf"(?P<symbol>S/\.?|US\$|\$)\s*{_NUMBER}(?!\d)", re.IGNORECASE
)
_AMOUNT_WITH_WORD = re.compile(
    rf"{_NUMBER}\s*(?P<word>soles|sol|dólares|dolares|pen|usd)(?!\w)", re.IGNORECASE
)
_AMOUNT_BARE = re.compile(rf"(?<![\w.,]){_NUMBER}(?![\w,]|\.\d)")

_PEN_MARKERS = frozenset({"s/", "s/.", "soles", "sol", "pen"})

_PEN_CUE_RE = re.compile(r"(?<!\w)s/|(?<!\w)(?:soles|pen)(?!\w)", re.IGNORECASE)
_USD_CUE_RE = re.compile(r"us\$|\$|(?<!\w)(?:dólares|dolares|usd)(?!\w)", re.IGNORECASE)

# Payer cascade: a capitalised name sequence next to a connector word
_NAME_TOKEN = r"[A-ZÁÉÍÓÚÑÜ][\w'-]*(?:\.[\w'-]+)*"
# A trailing period ends the sentence, not the name
_NAME = rf"(?P<name>{_NAME_TOKEN}(?:[ \t]+{_NAME_TOKEN})*)"
_PAYER_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"{_NAME}\s+te\b"),
    re.compile(rf"\bde\s+{_NAME}"),
)

PAYER_MIN_LEN = 2
PAYER_MAX_LEN = 50


def map_source_app(package_name: str | None) -> str | None:
    """Map an Android package name to its canonical source app."""
    if not package_name or not package_name.strip():
        return None
    normalized = package_name.strip().lower()
    if normalized == OWN_PACKAGE:
        return None
    for fragment, source_app in _PACKAGE_SOURCE_TABLE:
        if fragment in normalized:
            return source_app
    return None


def matched_inclusion_keyword(text: str) -> str | None:
    """Return the first inclusion keyword found in text, if any."""
    lowered = text.lower()
    for keyword in INCLUSION_KEYWORDS:
        if keyword in lowered:
            return keyword
    return None


def has_inclusion_keyword(text: str) -> bool:
    return matched_inclusion_keyword(text) is not None


def count_exclusion_keywords(text: str) -> int:
    """Count non-overlapping promotional keyword occurrences."""
    return sum(1 for _ in _EXCLUSION_RE.finditer(text))


def has_payment_action(text: str) -> bool:
    lowered = text.lower()
    return any(action in lowered for action in PAYMENT_ACTIONS)


def _parse_number(raw: str) -> Decimal | None:
    try:
        return Decimal(raw.replace(",", ""))
    except InvalidOperation:
        return None


def _match_amount(text: str) -> tuple[Decimal | None, str | None]:
    """Run the amount cascade. Returns (amount, currency_hint)."""
    match = _AMOUNT_WITH_SYMBOL.search(text)
    if match:
        symbol = match.group("symbol").lower()
        currency = "PEN" if symbol in _PEN_MARKERS else "USD"
        return _parse_number(match.group(2)), currency

    match = _AMOUNT_WITH_WORD.search(text)
    if match:
        word = match.group("word").lower()
        currency = "PEN" if word in _PEN_MARKERS else "USD"
        return _parse_number(match.group(1)), currency

    match = _AMOUNT_BARE.search(text)
    if match:
        return _parse_number(match.group(1)), None

    return None, None


def extract_amount(text: str) -> Decimal | None:
    """Extract the payment amount (first cascade pattern that matches)."""
    amount, _ = _match_amount(text)
    return amount


def extract_payer_name(text: str) -> str | None:
    """Extract the payer name (first 2-50 char match of the cascade)."""
    for pattern in _PAYER_PATTERNS:
        for match in pattern.finditer(text):
            name = match.group("name").strip()
            if PAYER_MIN_LEN <= len(name) <= PAYER_MAX_LEN:
                return name
    return None


def extract_currency(
    text: str,
    *,
    amount_hint: str | None = None,
    inclusion_cue: str | None = None,
) -> str | None:
    """Resolve the ISO currency code of a payment text."""
    if amount_hint:
        return amount_hint
    if _PEN_CUE_RE.search(text):
        return "PEN"
    if _USD_CUE_RE.search(text):
        return "USD"
    if inclusion_cue in _PEN_ONLY_CUES:
        return "PEN"
    return None


def is_amount_in_range(amount: Decimal, max_amount: Decimal = DEFAULT_MAX_AMOUNT) -> bool:
    return Decimal("0") < amount <= max_amount


def classify(
    package_name: str,
    title: str | None,
    body: str | None,
    *,
    captured_at_ms: int | None = None,
    max_amount: Decimal = DEFAULT_MAX_AMOUNT,
) -> PaymentEvent | Rejected:
    """Decide whether a captured text is a genuine received payment.

    Pure function: same input, same output. No I/O.

    Args:
        package_name: Android package that posted the notification.
        title: Notification title (may be empty).
        body: Notification text.
        captured_at_ms: Capture time, copied into received_at when given.
        max_amount: Sanity ceiling; larger amounts are parsing noise.

    Returns:
        PaymentEvent on acceptance, Rejected with a reason code otherwise.
    """
    title = title or ""
    body = body or ""

    source_app = map_source_app(package_name)
    if source_app is None:
        return Rejected("unmonitored_package", "package does not map to a source app")

    if not body.strip():
        return Rejected("empty_text", "notification body is empty")

    inclusion_cue = matched_inclusion_keyword(body)
    if inclusion_cue is None:
        return Rejected("no_payment_keyword", "body has no payment-receipt keyword")

    combined = f"{title} {body}"
    exclusion_count = count_exclusion_keywords(combined)
    if exclusion_count >= 2:
        return Rejected("promotional", f"{exclusion_count} exclusion keywords")

    if not has_payment_action(combined):
        return Rejected("no_payment_action", "no inbound-payment verb")

    amount, amount_hint = _match_amount(body)
    if amount is not None and not is_amount_in_range(amount, max_amount):
        return Rejected("amount_out_of_range", f"amount outside (0, {max_amount}]")

    raw_json: dict = {"package_name": package_name, "title": title, "body": body}
    received_at = None
    if captured_at_ms is not None:
        raw_json["original_timestamp"] = captured_at_ms
        received_at = to_iso(from_epoch_ms(captured_at_ms))

    return PaymentEvent(
        source_app=source_app,
        title=title,
        body=body,
        amount=amount,
        currency=extract_currency(body, amount_hint=amount_hint, inclusion_cue=inclusion_cue),
        payer_name=extract_payer_name(body),
        received_at=received_at,
        raw_json=raw_json,
    )
