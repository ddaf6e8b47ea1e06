from typing import Iterator, List, Sequence, TypeVar

T = TypeVar('T')


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Split items into consecutive batches of at most ``size`` elements."""
    if size < 1:
        raise ValueError("batch size must be at least 1")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])
