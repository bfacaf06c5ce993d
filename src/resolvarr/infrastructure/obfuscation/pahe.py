"""Kwik/Pahe positional-substitution decryption."""

from __future__ import annotations


def _parse_int_prefix(digits: str, base: int) -> int | None:
    """Parse the longest valid leading integer, like JavaScript ``parseInt``."""
    sign = 1
    pos = 0
    if digits[:1] in ("-", "+"):
        sign = -1 if digits[0] == "-" else 1
        pos = 1
    value = 0
    seen = False
    for ch in digits[pos:]:
        try:
            digit = int(ch, 36)
        except ValueError:
            break
        if digit >= base:
            break
        value = value * base + digit
        seen = True
    return sign * value if seen else None


def decrypt_pahe(full: str, key: str, v1: int, v2: int) -> str:
    """Recover the hidden form snippet from a kwik page script.

    ``key[v2]`` delimits segments of *full*. Every character of a segment
    is replaced by its index in *key* (unknown characters become ``-1``),
    the concatenated digits are read as a base-``v2`` integer, ``v1`` is
    subtracted and the result is taken as a UTF-16 code unit, wrapping
    modulo 65536 like ``String.fromCharCode``.
    """
    if not key or v2 >= len(key) or v2 < 2:
        return ""

    index_of = {ch: i for i, ch in enumerate(key)}
    delimiter = key[v2]
    out: list[str] = []
    pos = 0
    while pos < len(full):
        end = full.find(delimiter, pos)
        if end == -1:
            break
        digits = "".join(
            str(index_of[ch]) if ch in index_of else "-1" for ch in full[pos:end]
        )
        pos = end + 1
        value = _parse_int_prefix(digits, v2)
        code = value - v1 if value is not None else 0
        out.append(chr(code % 0x10000))
    return "".join(out)
