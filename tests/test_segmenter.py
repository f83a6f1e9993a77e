import pytest

from quote_reel.errors import InputError
from quote_reel.video.segmenter import DELIMITERS, segment


def test_segment_splits_on_fullwidth_comma_without_wrapping() -> None:
    lines = segment("人生如梦，一尊还酹江月", 10)

    assert [line.text for line in lines] == ["人生如梦", "一尊还酹江月"]
    assert all(line.max_width == 10 for line in lines)


def test_segment_hard_wraps_long_piece_into_fixed_chunks() -> None:
    quote = "一二三四五六七八九十" * 2 + "甲乙丙丁戊"

    lines = segment(quote, 10)

    assert [len(line.text) for line in lines] == [10, 10, 5]
    assert "".join(line.text for line in lines) == quote


def test_segment_counts_code_points_not_bytes() -> None:
    lines = segment("😀😀😀", 2)

    assert [line.text for line in lines] == ["😀😀", "😀"]


def test_segment_chunks_are_not_retrimmed() -> None:
    lines = segment("ab cd ef", 3)

    assert [line.text for line in lines] == ["ab ", "cd ", "ef"]


def test_segment_trims_and_drops_empty_pieces() -> None:
    lines = segment("  hello ,, world.  ", 10)

    assert [line.text for line in lines] == ["hello", "world"]


@pytest.mark.parametrize("quote", ["", "   ", "，。", ",.;:!?", " 、 "])
def test_segment_degenerate_input_returns_single_stripped_line(quote: str) -> None:
    lines = segment(quote, 10)

    assert len(lines) == 1
    assert lines[0].text == quote.strip()


def test_segment_without_delimiters_is_one_line() -> None:
    assert [line.text for line in segment("大江东去", 10)] == ["大江东去"]


def test_segment_lines_never_exceed_max_chars() -> None:
    quote = "天下英雄谁敌手曹刘生子当如孙仲谋，满眼风光北固楼。何处望神州？" + "x" * 37
    for max_chars in (1, 3, 7, 10):
        assert all(len(line.text) <= max_chars for line in segment(quote, max_chars))


def test_segment_covers_ascii_and_fullwidth_delimiters() -> None:
    quote = "a".join(DELIMITERS)

    assert all(line.text == "a" for line in segment(quote, 10))


def test_segment_rejects_non_positive_width() -> None:
    with pytest.raises(InputError):
        segment("text", 0)
