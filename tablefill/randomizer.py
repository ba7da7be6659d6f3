from __future__ import annotations

import random
from datetime import datetime, timedelta
from typing import Optional

from faker import Faker


class Randomizer:
    """
    Uniform primitive values drawn from a single seedable source.

    Faker is bound to the same `random.Random` instance, so a seeded
    Randomizer replays exactly the same strings and UUIDs.
    """

    def __init__(self, seed: Optional[int] = None, rng: Optional[random.Random] = None):
        self.rng = rng if rng is not None else random.Random(seed)
        self.fake = Faker()
        self.fake.random = self.rng

    def random_int(self, min_value: int, max_value: int) -> int:
        return self.rng.randint(int(min_value), int(max_value))

    def random_float(self, min_value: float, max_value: float) -> float:
        return self.rng.uniform(float(min_value), float(max_value))

    def random_bit(self, length: int) -> str:
        return "".join(str(self.rng.randint(0, 1)) for _ in range(int(length)))

    def random_string(self, length: int) -> str:
        if length <= 0:
            return ""
        return self.fake.lexify("?" * int(length))

    def random_date(self, min_value: datetime, max_value: datetime) -> datetime:
        span = (max_value - min_value).total_seconds()
        if span <= 0:
            return min_value
        return min_value + timedelta(seconds=self.rng.uniform(0, span))

    def random_uuid(self) -> str:
        return self.fake.uuid4()

    def chance(self, probability: float) -> bool:
        return self.rng.random() < probability

    def pick(self, items):
        return items[self.rng.randint(0, len(items) - 1)]
