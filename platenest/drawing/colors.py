"""Color assignment for cloned plate geometry."""

import random
from typing import Optional

# AutoCAD Color Index range usable for entities (0 = BYBLOCK, 256 = BYLAYER)
ACI_MIN = 1
ACI_MAX = 255


class ColorStrategy:
    """
    Picks one ACI color per plate block.

    Seeded instances produce the same sequence on every run, which keeps
    consolidated drawings reproducible.
    """

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self._rng = random.Random(seed)

    def next_color(self) -> int:
        return self._rng.randint(ACI_MIN, ACI_MAX)


class FixedColor(ColorStrategy):
    """Always returns the same color."""

    def __init__(self, color: int = 7):
        if not ACI_MIN <= color <= ACI_MAX:
            raise ValueError(f"ACI color must be in {ACI_MIN}..{ACI_MAX}, got {color}")
        super().__init__(seed=None)
        self.color = color

    def next_color(self) -> int:
        return self.color
