"""Work unit generation from selected chunks."""

from __future__ import annotations

from collections.abc import Sequence

from .models import Chunk, WorkUnit


def cross_product(main_chunks: Sequence[Chunk], aux_chunks: Sequence[Chunk]) -> list[WorkUnit]:
    """Pair every main chunk with every auxiliary chunk.

    Main chunks form the outer loop and auxiliary chunks the inner loop.
    Progress totals are computed as ``len(main_chunks) * len(aux_chunks)``
    and assume this dispatch order.
    """
    return [
        WorkUnit(main_chunk=main.text, aux_chunk=aux.text)
        for main in main_chunks
        for aux in aux_chunks
    ]
