# app/schemas/common.py

from datetime import time
from typing import Annotated

from pydantic import BeforeValidator, PlainSerializer

from app.core.timeutils import format_time, parse_time


def _to_time(v):
    return parse_time(v) if isinstance(v, (str, time)) else v


# Clock time on the wire: "HH:MM", 24h, zero padded
HHMM = Annotated[
    time,
    BeforeValidator(_to_time),
    PlainSerializer(format_time, return_type=str),
]
