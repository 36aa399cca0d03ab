from __future__ import annotations

from mixerpad.surface.frames import FrameDecoder, iterate_text_stream


def build_line(sliders=(100, 100, 100, 100), buttons=("0",) * 16, extra: tuple[str, ...] = ()) -> str:
    tokens = [f"s{value}" for value in sliders] + [f"b{digit}" for digit in buttons] + list(extra)
    return "|".join(tokens)


def test_decode_reference_frame() -> None:
    decoder = FrameDecoder()
    line = "s10|s200|s4095|s0|b0|b1|b0|b1|b0|b1|b0|b1|b0|b1|b0|b1|b0|b1|b0|b1"
    sample = decoder.decode(line)
    assert sample is not None
    assert sample.sliders == (10, 200, 4095, 0)
    assert sample.buttons == (True, False) * 8

    inverted = decoder.decode(line, invert_buttons=True)
    assert inverted is not None
    assert inverted.buttons == (False, True) * 8


def test_invert_flag_flips_polarity() -> None:
    decoder = FrameDecoder()
    line = build_line()
    assert decoder.decode(line, invert_buttons=False).buttons == (True,) * 16
    assert decoder.decode(line, invert_buttons=True).buttons == (False,) * 16


def test_slider_values_are_clamped() -> None:
    decoder = FrameDecoder()
    sample = decoder.decode(build_line(sliders=(-20, 5000, 4095, 0)))
    assert sample is not None
    assert sample.sliders == (0, 4095, 4095, 0)
    assert all(0 <= value <= 4095 for value in sample.sliders)


def test_rejects_missing_tokens() -> None:
    decoder = FrameDecoder()
    assert decoder.decode(build_line(sliders=(1, 2, 3))) is None
    assert decoder.decode(build_line(buttons=("0",) * 15)) is None
    assert decoder.decode("s1|s2|s3|s4") is None
    assert decoder.decode("") is None
    assert decoder.decode(None) is None
    stats = decoder.stats()
    assert stats["frames"] == 0
    assert stats["rejected"] == 5


def test_garbled_tokens_do_not_count() -> None:
    decoder = FrameDecoder()
    # "sx" and "b" are not readings, so only 3 sliders / 15 buttons remain
    line = "s1|sx|s2|s3|b|" + "|".join(["b0"] * 15)
    assert decoder.decode(line) is None
    assert decoder.decode("s1|s2|s3|s4|" + "|".join(["b10"] * 16)) is None
    assert decoder.decode("\x00\xff|garbage|||") is None


def test_extra_tokens_are_ignored() -> None:
    decoder = FrameDecoder()
    line = build_line(sliders=(1, 2, 3, 4), extra=("s999", "b1", "b1", "junk"))
    sample = decoder.decode(line)
    assert sample is not None
    assert sample.sliders == (1, 2, 3, 4)
    assert len(sample.buttons) == 16
    assert all(sample.buttons)


def test_whitespace_and_empty_tokens() -> None:
    decoder = FrameDecoder()
    line = " s1 || s2|s3 |s4|" + "| ".join(["b1"] * 16) + "|\r\n"
    sample = decoder.decode(line)
    assert sample is not None
    assert sample.sliders == (1, 2, 3, 4)
    assert sample.buttons == (False,) * 16
    assert decoder.stats() == {"frames": 1, "rejected": 0}


def test_interleaved_token_order_assigns_by_kind() -> None:
    decoder = FrameDecoder()
    tokens = []
    for i in range(16):
        if i < 4:
            tokens.append(f"s{i * 10}")
        tokens.append("b0" if i % 2 else "b1")
    sample = decoder.decode("|".join(tokens))
    assert sample is not None
    assert sample.sliders == (0, 10, 20, 30)
    assert sample.buttons == (False, True) * 8


def test_iterate_text_stream_skips_comments() -> None:
    lines = ["# capture\n", "\n", "  s1|s2  \n", "b0\n"]
    assert list(iterate_text_stream(lines)) == ["s1|s2", "b0"]
