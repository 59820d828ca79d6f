"""z-base-32 codec.

Lightning node software exchanges message signatures as z-base-32 text.
Bits are consumed most-significant first, five per character, and no
padding characters are emitted.
"""

ALPHABET = "ybndrfg8ejkmcpqxot1uwisza345h769"
_DECODE_MAP = {char: index for index, char in enumerate(ALPHABET)}


def encode(data: bytes) -> str:
    """Encode bytes as a z-base-32 string."""
    bits = "".join(f"{byte:08b}" for byte in data)
    # Right-pad the last group to a full 5 bits
    if len(bits) % 5:
        bits += "0" * (5 - len(bits) % 5)
    return "".join(ALPHABET[int(bits[i:i + 5], 2)] for i in range(0, len(bits), 5))


def decode(text: str) -> bytes:
    """
    Decode a z-base-32 string.

    Trailing bits that do not fill a whole byte are dropped.

    Raises:
        ValueError: if the text contains a character outside the alphabet.
    """
    try:
        bits = "".join(f"{_DECODE_MAP[char]:05b}" for char in text)
    except KeyError as e:
        raise ValueError(f"Invalid z-base-32 character: {e.args[0]!r}") from None

    usable = len(bits) - len(bits) % 8
    return bytes(int(bits[i:i + 8], 2) for i in range(0, usable, 8))
