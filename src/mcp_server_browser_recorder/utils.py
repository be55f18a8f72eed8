"""Small text helpers shared by the caches, the diff engine and the renderers."""

import hashlib


def truncate(text: str, max_len: int) -> str:
    """Cut ``text`` to ``max_len`` characters, marking the cut with an ellipsis."""
    if max_len <= 0:
        return ""
    if len(text) <= max_len:
        return text
    return text[:max_len] + "..."


def split_lines(text: str) -> list[str]:
    """Split on ``\\n`` only, so that joining with ``\\n`` gives back the input."""
    return text.split("\n")


def count_lines(text: str) -> int:
    if not text:
        return 0
    return text.count("\n") + 1


def content_digest(text: str) -> str:
    """Short digest used as a cheap equality proxy for change detection.

    Not a full comparison: two different texts could in theory share a digest.
    """
    return hashlib.blake2b(text.encode("utf-8", errors="surrogatepass"), digest_size=8).hexdigest()
