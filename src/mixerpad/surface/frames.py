from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Optional, Tuple

from .config import BUTTON_COUNT, SLIDER_COUNT, SLIDER_MAX

MIN_TOKENS = 5
TOKEN_SEPARATOR = "|"

_SLIDER_TOKEN = re.compile(r"s([+-]?\d+)", re.ASCII)
_BUTTON_TOKEN = re.compile(r"b(\d)", re.ASCII)


@dataclass(frozen=True)
class Sample:
    sliders: Tuple[int, ...]
    buttons: Tuple[bool, ...]


class FrameDecoder:
    """
    Decoder for `s<int>|...|b<digit>|...` status lines.

    Only the first 4 slider and first 16 button tokens are used; anything
    that does not add up to a full frame is dropped and counted. Button
    polarity: `0` means pressed unless `invert_buttons` is set, in which case
    `1` means pressed.
    """

    def __init__(self) -> None:
        self._stats: Dict[str, int] = {"frames": 0, "rejected": 0}
        self._log = logging.getLogger(__name__)

    def decode(self, line: Optional[str], invert_buttons: bool = False) -> Optional[Sample]:
        if not line:
            return self._reject(line, "empty line")
        tokens = [token.strip() for token in line.split(TOKEN_SEPARATOR)]
        tokens = [token for token in tokens if token]
        if len(tokens) < MIN_TOKENS:
            return self._reject(line, "too few tokens")

        sliders = []
        buttons = []
        pressed_digit = "1" if invert_buttons else "0"
        for token in tokens:
            slider = _SLIDER_TOKEN.fullmatch(token)
            if slider is not None:
                if len(sliders) < SLIDER_COUNT:
                    sliders.append(min(max(int(slider.group(1)), 0), SLIDER_MAX))
                continue
            button = _BUTTON_TOKEN.fullmatch(token)
            if button is not None and len(buttons) < BUTTON_COUNT:
                buttons.append(button.group(1) == pressed_digit)

        if len(sliders) != SLIDER_COUNT or len(buttons) != BUTTON_COUNT:
            return self._reject(line, f"{len(sliders)} sliders / {len(buttons)} buttons")
        self._stats["frames"] += 1
        return Sample(sliders=tuple(sliders), buttons=tuple(buttons))

    def _reject(self, line: Optional[str], reason: str) -> None:
        self._stats["rejected"] += 1
        self._log.debug("Dropping frame (%s): %r", reason, line)
        return None

    def stats(self) -> Dict[str, int]:
        return dict(self._stats)

    def reset(self) -> None:
        self._stats = {"frames": 0, "rejected": 0}


def iterate_text_stream(handle: Iterable[str]) -> Iterator[str]:
    for line in handle:
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        yield line
