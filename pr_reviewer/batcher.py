"""
Size-bounded batching of reviewable files.

Each batch becomes one model request, so the budget caps the request size.
Batches keep input order and are filled greedily; a file larger than the
budget is sent alone rather than split or dropped.
"""

from typing import Callable, List, Sequence, TypeVar

from pr_reviewer.models import ReviewFile

T = TypeVar("T")

DEFAULT_MAX_CHARS = 15000


def chunk_items(items: Sequence[T], budget: int, size_of: Callable[[T], int]) -> List[List[T]]:
    if budget <= 0:
        raise ValueError(f"Chunk budget must be positive, got {budget}")

    chunks: List[List[T]] = []
    current: List[T] = []
    length = 0
    for item in items:
        size = size_of(item)
        if current and length + size > budget:
            chunks.append(current)
            current = []
            length = 0
        current.append(item)
        length += size
    if current:
        chunks.append(current)
    return chunks


def serialized_size(review_file: ReviewFile) -> int:
    return len(review_file.model_dump_json())


def chunk_review_files(files: Sequence[ReviewFile], budget: int = DEFAULT_MAX_CHARS) -> List[List[ReviewFile]]:
    """Partition files into ReviewChunks whose serialized size stays within budget."""
    return chunk_items(files, budget, serialized_size)
