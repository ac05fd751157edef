"""Human-facing order numbers: ``FS<epoch millis><shard><sequence>``.

The shard is 8 random hex characters chosen once per generator, the sequence
a lock-protected counter. Two numbers from one generator never repeat unless
a million orders are issued inside the same millisecond; numbers from
different processes differ by shard. The unique index on ``order_number`` is
the last line of defence.
"""

import itertools
import secrets
import threading
import time
from typing import Callable, Optional

PREFIX = "FS"
SEQUENCE_MODULO = 1_000_000


class OrderNumberGenerator:
    def __init__(self, shard: Optional[str] = None, clock: Callable[[], float] = time.time):
        self.shard = (shard or secrets.token_hex(4)).upper()
        self._clock = clock
        self._counter = itertools.count()
        self._lock = threading.Lock()

    def next(self) -> str:
        with self._lock:
            seq = next(self._counter) % SEQUENCE_MODULO
            millis = int(self._clock() * 1000)
        return f"{PREFIX}{millis}{self.shard}{seq:06d}"


default_generator = OrderNumberGenerator()


def generate_order_number() -> str:
    return default_generator.next()
