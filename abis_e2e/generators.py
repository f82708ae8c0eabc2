from __future__ import annotations

import random
import re
import string
from dataclasses import asdict, dataclass
from datetime import date, timedelta

from faker import Faker

_LETTERS = string.ascii_uppercase
_TXN_ALPHABET = string.ascii_uppercase + string.digits
_FALLBACK_PAN = "ABCDE1234F"
_PAN_RE = re.compile(r"[A-Z]{5}[0-9]{4}[A-Z]")


@dataclass
class LeadData:
    name: str
    email: str
    phone: str
    company: str
    address: str
    city: str
    zip: str

    def to_dict(self) -> dict:
        return asdict(self)


def fake_lead(faker: Faker | None = None, rng: random.Random | None = None) -> LeadData:
    faker = faker or Faker()
    rng = rng or random
    return LeadData(
        name=faker.name(),
        email=faker.email(),
        phone=faker.numerify("999#######"),
        company=faker.company(),
        address=faker.street_address(),
        city=faker.city(),
        zip=str(rng.randint(100000, 999999)),
    )


def generate_pan(rng: random.Random | None = None) -> str:
    rng = rng or random
    letters = "".join(rng.choice(_LETTERS) for _ in range(5))
    digits = str(rng.randint(1000, 9999))
    return f"{letters}{digits}{rng.choice(_LETTERS)}"


def is_valid_pan(pan: str) -> bool:
    return _PAN_RE.fullmatch(pan or "") is not None


def generate_gst(pan: str, rng: random.Random | None = None) -> str:
    # state code + PAN + entity code + default "Z" + check character
    rng = rng or random
    state_code = f"{rng.randint(1, 35):02d}"
    pan_part = pan if is_valid_pan(pan) else _FALLBACK_PAN
    if rng.random() < 0.5:
        check = rng.choice(_LETTERS)
    else:
        check = str(rng.randint(0, 9))
    return f"{state_code}{pan_part}1Z{check}"


def transaction_id(length: int = 12, rng: random.Random | None = None) -> str:
    rng = rng or random
    return "".join(rng.choice(_TXN_ALPHABET) for _ in range(length))


def format_ddmmyyyy(value: date) -> str:
    return value.strftime("%d-%m-%Y")


def days_from_today(days: int, today: date | None = None) -> str:
    today = today or date.today()
    return format_ddmmyyyy(today + timedelta(days=days))
