import random
import re
import time
from typing import Collection

ID_LENGTH = 8
_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"
# Sheets turns "01234567" or "123456e7" into numbers on USER_ENTERED writes
NUMBER_LIKE = re.compile(r"^\d+(?:e\d+)?$")


def to_base36(number: int) -> str:
    if number < 0:
        raise ValueError("negative numbers have no base-36 form here")
    if number == 0:
        return "0"
    out = []
    while number:
        number, rem = divmod(number, 36)
        out.append(_DIGITS[rem])
    return "".join(reversed(out))


def generate_id(existing: Collection[str], rng: random.Random | None = None) -> str:
    """
    Returns a short transaction ID that is not in `existing`.

    The ID is the tail of a base-36 millisecond clock followed by a base-36
    random number. `existing` must hold every ID currently used in the
    target month tab, otherwise uniqueness is not guaranteed. Candidates the
    spreadsheet would store as a number are skipped, so the ID reads back
    exactly as written.
    """
    rng = rng or random
    while True:
        clock = to_base36(int(time.time() * 1000))
        noise = to_base36(rng.randrange(1_000_000))
        candidate = (clock + noise)[-ID_LENGTH:]
        if candidate not in existing and not NUMBER_LIKE.match(candidate):
            return candidate
