"""Tests for work unit generation."""

from chunkflow.core.chunking.cross_product import cross_product
from chunkflow.core.chunking.models import Chunk, SourceKind, WorkUnit


def _chunks(texts, kind):
    return [Chunk(index=i, source_kind=kind, text=text) for i, text in enumerate(texts)]


class TestCrossProduct:
    """Tests for cross_product()."""

    def test_count_is_product_of_sides(self):
        units = cross_product(
            _chunks(["m0", "m1", "m2"], SourceKind.MAIN),
            _chunks(["a0", "a1"], SourceKind.AUXILIARY),
        )
        assert len(units) == 6

    def test_main_outer_auxiliary_inner_order(self):
        """Every auxiliary chunk is paired with a main chunk before the next main chunk."""
        units = cross_product(
            _chunks(["m0", "m1", "m2"], SourceKind.MAIN),
            _chunks(["a0", "a1"], SourceKind.AUXILIARY),
        )
        assert units == [
            WorkUnit("m0", "a0"),
            WorkUnit("m0", "a1"),
            WorkUnit("m1", "a0"),
            WorkUnit("m1", "a1"),
            WorkUnit("m2", "a0"),
            WorkUnit("m2", "a1"),
        ]

    def test_empty_side_yields_no_units(self):
        assert cross_product(_chunks(["m0"], SourceKind.MAIN), []) == []
