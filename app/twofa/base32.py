"""
Base32 encoding in the RFC-4648 flavour, without padding characters.

Only the alphabet is borrowed from the standard; padding is neither emitted
nor accepted, which is the form authenticator apps expect for secrets.
"""

from typing import Optional

# Base 32 alphabet in the RFC-4648 flavour
ALPHA = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"


def to_base32(buff: bytes) -> str:
    """
    Convert bytes to a base32 string.

    Bits are shifted through a small window, 8 in and 5 out at a time.
    A trailing group of 1-4 bits is padded with zero bits on the right.

    Args:
        buff: Bytes to encode

    Returns:
        Base32 string of length ceil(len(buff) * 8 / 5)
    """
    win = 0  # how many unconsumed bits are in tmp
    tmp = 0
    out = []

    for byte in buff:
        tmp = ((tmp << 8) | byte) & 0xFFF
        win += 8

        while win >= 5:
            out.append(ALPHA[(tmp >> (win - 5)) & 0x1F])
            win -= 5

    if win > 0:
        out.append(ALPHA[(tmp << (5 - win)) & 0x1F])

    return "".join(out)


def to_buffer(string: str) -> Optional[bytes]:
    """
    Convert a base32 string back to bytes.

    Trailing bits that do not fill a whole byte are dropped without checking
    that they are zero.

    Args:
        string: Base32 string (upper case, no padding)

    Returns:
        Decoded bytes, or None if the string contains a character outside the alphabet
    """
    buf = bytearray(len(string) * 5 // 8)

    win = 0
    tmp = 0
    ptr = 0

    for char in string:
        a = ALPHA.find(char)
        if a < 0:
            return None

        tmp = ((tmp << 5) | a) & 0xFFF
        win += 5

        if win >= 8:
            buf[ptr] = (tmp >> (win - 8)) & 0xFF
            ptr += 1
            win -= 8

    return bytes(buf)
