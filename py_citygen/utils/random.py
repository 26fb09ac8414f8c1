"""
Random number generation utilities.

Generators are derived from string keys rather than shared global state, so
the jitter of one strip never depends on how many other strips were built
before it. Python's random and NumPy's random should not be used in the
pipeline.
"""

from ..core.alea_prng import AleaPRNG


def prng_for(*keys) -> AleaPRNG:
    """
    Create an Alea PRNG seeded from the given keys.

    Args:
        *keys: Seed components, joined with ':'

    Returns:
        AleaPRNG instance
    """
    return AleaPRNG(":".join(str(key) for key in keys))
