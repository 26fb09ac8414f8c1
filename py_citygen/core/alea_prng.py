"""
Alea pseudo random number generator.

Johannes Baagøe's Alea algorithm, seeded from strings. Lot boundaries are
jittered with it so that rebuilding an unchanged street graph reproduces the
same lots, independent of Python's global random state.
"""


def _uint32(n):
    """Convert to unsigned 32-bit integer."""
    return int(n) & 0xFFFFFFFF


def _make_mash():
    n = 0xEFC8249D

    def mash(data):
        nonlocal n
        for char in str(data):
            n = n + ord(char)
            h = 0.02519603282416938 * n
            n = _uint32(h)
            h -= n
            h *= n
            n = _uint32(h)
            h -= n
            n += h * 0x100000000  # 2^32
        return _uint32(n) * 2.3283064365386963e-10  # 2^-32

    return mash


class AleaPRNG:
    """Seeded generator of floats in [0, 1)."""

    def __init__(self, seed):
        """Initialize with a seed string, number, or iterable of them."""
        if hasattr(seed, "__iter__") and not isinstance(seed, str):
            parts = list(seed)
        else:
            parts = [seed]

        mash = _make_mash()
        self.s0 = mash(" ")
        self.s1 = mash(" ")
        self.s2 = mash(" ")
        self.c = 1

        for part in parts:
            self.s0 = (self.s0 - mash(part)) % 1.0
            self.s1 = (self.s1 - mash(part)) % 1.0
            self.s2 = (self.s2 - mash(part)) % 1.0

    def random(self):
        """Generate next random number in [0, 1)."""
        t = 2091639 * self.s0 + self.c * 2.3283064365386963e-10  # 2^-32
        self.s0 = self.s1
        self.s1 = self.s2
        self.c = int(t)
        self.s2 = t - self.c
        return self.s2

    def uniform(self, low, high):
        """Random float in [low, high)."""
        return low + (high - low) * self.random()
