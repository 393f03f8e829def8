"""
Tests for row-bounded chunking.
"""
import pytest

from quotex.sheets.chunker import chunk_sheet, split_header, whole_sheet_chunk


def _data_lines(chunks):
    lines = []
    for chunk in chunks:
        lines.extend(chunk.content.splitlines()[1:])
    return lines


def test_large_sheet_split_into_bounded_chunks(make_sheet):
    sheet = make_sheet("Equipos", 300)
    chunks = chunk_sheet(sheet, max_rows=120)

    assert [c.row_count - 1 for c in chunks] == [120, 120, 60]
    assert [c.index for c in chunks] == [0, 1, 2]
    assert all(c.total_chunks == 3 for c in chunks)
    assert all(c.parent_sheet_name == "Equipos" for c in chunks)


def test_every_chunk_repeats_the_header(make_sheet):
    sheet = make_sheet("Equipos", 300, header="Codigo | Descripcion | Cant")
    for chunk in chunk_sheet(sheet, max_rows=120):
        assert chunk.content.splitlines()[0] == "Codigo | Descripcion | Cant"


def test_chunks_cover_data_rows_in_order_without_overlap(make_sheet):
    sheet = make_sheet("Equipos", 251)
    _, data = split_header(sheet.content)
    assert _data_lines(chunk_sheet(sheet, max_rows=50)) == data


def test_sheet_at_bound_is_a_single_chunk(make_sheet):
    sheet = make_sheet("Servicios", 120)
    chunks = chunk_sheet(sheet, max_rows=120)
    assert len(chunks) == 1
    assert chunks[0].content == sheet.content
    assert chunks[0].row_count == sheet.row_count
    assert chunks[0].total_chunks == 1


def test_one_row_over_bound_makes_two_chunks(make_sheet):
    chunks = chunk_sheet(make_sheet("Servicios", 121), max_rows=120)
    assert [c.row_count for c in chunks] == [121, 2]


def test_non_positive_bound_rejected(make_sheet):
    with pytest.raises(ValueError):
        chunk_sheet(make_sheet("Servicios", 10), max_rows=0)


def test_whole_sheet_chunk_label(make_sheet):
    chunk = whole_sheet_chunk(make_sheet("Resumen", 5))
    assert chunk.label == "Resumen"


def test_split_chunk_label_is_one_based(make_sheet):
    chunks = chunk_sheet(make_sheet("Equipos", 30), max_rows=10)
    assert chunks[1].label == "Equipos (2/3)"
