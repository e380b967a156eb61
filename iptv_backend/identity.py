"""Deterministic channel identifiers."""
import xxhash

ID_LENGTH = 16


def generate_id(name: str, url: str) -> str:
    """Return a stable id for a channel, derived from its name and URL.

    The two strings are concatenated without a separator and hashed with
    XXH64 (seed 0) over their UTF-8 bytes. XXH64 has a fixed definition, so
    the same playlist yields the same ids on every run and every platform.
    Ids are not guaranteed unique: two different pairs collide with the
    probability of a 64-bit hash collision.
    """
    digest = xxhash.xxh64((name + url).encode("utf-8", "surrogatepass")).hexdigest()
    return digest[:ID_LENGTH]
