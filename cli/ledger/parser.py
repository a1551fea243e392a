import re

MULTIPLIERS = {
    "k": 1_000,
    "rb": 1_000,
    "ribu": 1_000,
    "jt": 1_000_000,
    "juta": 1_000_000,
}

AMOUNT = re.compile(r"^([+-]?)(\d[\d.,\s]*?)\s*(ribu|rb|k|juta|jt)?$")
DECIMAL_TAIL = re.compile(r"^(\d[\d.,\s]*?)[.,](\d{1,2})$")

# An amount token as typed in a command: "15rb", "1.500.000", "2,5jt", "20 k"
AMOUNT_TOKEN = r"[+-]?(?:\d{1,3}(?:[.\s]\d{3})*|\d+)(?:[.,]\d+)?\s*(?:ribu|rb|k|juta|jt)?"
INCOME_BODY = re.compile(rf"^({AMOUNT_TOKEN})\b\s*(.*)$", re.IGNORECASE | re.DOTALL)
EXPENSE_BODY = re.compile(rf"^(.+?)\s+({AMOUNT_TOKEN})\b\s*(.*)$", re.IGNORECASE | re.DOTALL)


def parse_amount(text: str) -> int | None:
    """
    Turns a loosely written amount into whole currency units.

    "15rb" -> 15000, "20k" -> 20000, "100.000" -> 100000, "1,5jt" -> 1500000.
    Dots, commas and spaces are thousands separators, except that with a
    k/rb/jt suffix a trailing separator plus one or two digits is a decimal
    part. Returns None when the text is not an amount. Negative values are
    returned as-is; rejecting them is up to the caller.
    """
    if not text:
        return None
    m = AMOUNT.match(text.strip().lower())
    if not m:
        return None
    sign, digits, suffix = m.groups()
    multiplier = MULTIPLIERS.get(suffix, 1)

    fraction = ""
    if suffix:
        d = DECIMAL_TAIL.match(digits.strip())
        if d:
            digits, fraction = d.group(1), d.group(2)
    digits = re.sub(r"[.,\s]", "", digits)
    if not digits.isdigit():
        return None

    value = float(f"{digits}.{fraction or 0}") * multiplier
    amount = int(round(value))
    return -amount if sign == "-" else amount


def split_income(body: str) -> tuple[str, str] | None:
    """'500k bonus' -> ('500k', 'bonus')."""
    m = INCOME_BODY.match((body or "").strip())
    if not m:
        return None
    return m.group(1).strip(), m.group(2).strip()


def split_expense(body: str) -> tuple[str, str, str] | None:
    """'food 15rb nasi padang' -> ('food', '15rb', 'nasi padang')."""
    m = EXPENSE_BODY.match((body or "").strip())
    if not m:
        return None
    return m.group(1).strip(), m.group(2).strip(), m.group(3).strip()
