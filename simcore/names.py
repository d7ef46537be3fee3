"""
TribeSim: simcore/names.py
Procedural tribe identities: names and display colours per seed.
"""

from __future__ import annotations

import random
from typing import Optional

from simcore.config import COLORS, TRIBE_PALETTE


class TribeNameGenerator:
    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng if rng is not None else random.Random()
        self.prefixes = [
            "Ash", "Bright", "Storm", "Swift", "Sly",
            "Wise", "Bold", "Free", "Still", "Thunder",
        ]
        self.suffixes = [
            "folk", "kin", "clan", "born", "walkers",
            "hands", "riders", "hearth", "blood", "watch",
        ]

    def generate_name(self) -> str:
        return self.rng.choice(self.prefixes) + self.rng.choice(self.suffixes)

    def generate_color(self, is_player: bool = False) -> str:
        if is_player:
            return COLORS["player"]
        return self.rng.choice(TRIBE_PALETTE)
