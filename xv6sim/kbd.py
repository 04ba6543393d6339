"""PC keyboard scancode decoding."""

from __future__ import annotations

from typing import Dict, Iterable, List

SHIFT = 1 << 0
CTL = 1 << 1
ALT = 1 << 2
CAPSLOCK = 1 << 3
NUMLOCK = 1 << 4
SCROLLLOCK = 1 << 5
E0ESC = 1 << 6

KEY_HOME = 0xE0
KEY_END = 0xE1
KEY_UP = 0xE2
KEY_DN = 0xE3
KEY_LF = 0xE4
KEY_RT = 0xE5
KEY_PGUP = 0xE6
KEY_PGDN = 0xE7
KEY_INS = 0xE8
KEY_DEL = 0xE9


def ctrl(ch: str) -> int:
    """Character code of Control-``ch``."""
    return (ord(ch) - ord("@")) & 0xFF


def _table(start: int, codes: Iterable[int], extras: Dict[int, int]) -> List[int]:
    table = [0] * 256
    for offset, code in enumerate(codes, start):
        table[offset] = code
    for index, code in extras.items():
        table[index] = code
    return table


_KEYPAD = {
    0xC8: KEY_UP, 0xD0: KEY_DN,
    0xC9: KEY_PGUP, 0xD1: KEY_PGDN,
    0xCB: KEY_LF, 0xCD: KEY_RT,
    0x97: KEY_HOME, 0xCF: KEY_END,
    0xD2: KEY_INS, 0xD3: KEY_DEL,
}

_SHIFTCODE = _table(0, [], {0x1D: CTL, 0x2A: SHIFT, 0x36: SHIFT, 0x38: ALT, 0x9D: CTL, 0xB8: ALT})
_TOGGLECODE = _table(0, [], {0x3A: CAPSLOCK, 0x45: NUMLOCK, 0x46: SCROLLLOCK})

_NORMAL = _table(
    0,
    map(ord,
        "\0\x1b1234567890-=\b\t"
        "qwertyuiop[]\n\0as"
        "dfghjkl;'`\0\\zxcv"
        "bnm,./\0*\0 \0\0\0\0\0\0"
        "\0\0\0\0\0\0\0789-456+1"
        "230."),
    {0x9C: ord("\n"), 0xB5: ord("/"), **_KEYPAD},
)

_SHIFTED = _table(
    0,
    map(ord,
        "\0\x1b!@#$%^&*()_+\b\t"
        "QWERTYUIOP{}\n\0AS"
        'DFGHJKL:"~\0|ZXCV'
        "BNM<>?\0*\0 \0\0\0\0\0\0"
        "\0\0\0\0\0\0\0789-456+1"
        "230."),
    {0x9C: ord("\n"), 0xB5: ord("/"), **_KEYPAD},
)

_CONTROL = _table(
    0x10,
    (ctrl(ch) if ch.isupper() or ch in "\\/" else ord(ch)
     for ch in "QWERTYUIOP\0\0\r\0AS" "DFGHJKL\0\0\0\0\\ZXCV" "BNM\0\0/\0\0"),
    {0x9C: ord("\r"), 0xB5: ctrl("/"), **_KEYPAD},
)

_CHARCODE = (_NORMAL, _SHIFTED, _CONTROL, _CONTROL)


class KeyboardDecoder:
    """Turns a stream of scancodes into character codes, tracking modifiers."""

    def __init__(self) -> None:
        self.modifiers = 0

    def feed(self, scancode: int) -> int:
        """Process one scancode; returns a character code or 0 if none."""
        if not 0 <= scancode <= 0xFF:
            raise ValueError(f"scancode out of range: {scancode}")
        data = scancode
        if data == 0xE0:
            self.modifiers |= E0ESC
            return 0
        if data & 0x80:
            if not self.modifiers & E0ESC:
                data &= 0x7F
            self.modifiers &= ~(_SHIFTCODE[data] | E0ESC)
            return 0
        if self.modifiers & E0ESC:
            data |= 0x80
            self.modifiers &= ~E0ESC

        self.modifiers |= _SHIFTCODE[data]
        self.modifiers ^= _TOGGLECODE[data]
        c = _CHARCODE[self.modifiers & (CTL | SHIFT)][data]
        if self.modifiers & CAPSLOCK:
            if ord("a") <= c <= ord("z"):
                c += ord("A") - ord("a")
            elif ord("A") <= c <= ord("Z"):
                c += ord("a") - ord("A")
        return c


def decode(scancodes: Iterable[int]) -> str:
    """Decode a sequence of scancodes into the characters typed."""
    decoder = KeyboardDecoder()
    return "".join(chr(c) for c in map(decoder.feed, scancodes) if c)