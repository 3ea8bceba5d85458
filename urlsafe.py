"""URL-safe text transcoding for snapshot bytes.

Bytes are packed into 6-bit groups, most significant bit first, and each
group becomes one symbol of a 64 character alphabet.  A trailing partial
group is shifted into the high bits of the last symbol.  There is no
padding, so the text length alone does not tell how many bytes it holds:
decoding drops any leftover bits that do not make a whole byte.
"""

URL_SAFE_CHARACTERS = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"

CHARACTER_LOOKUP = {c: i for i, c in enumerate(URL_SAFE_CHARACTERS)}


class InvalidCharacterError(ValueError):
    """Text contains a character outside the URL-safe alphabet."""

    def __init__(self, character, position):
        super().__init__(f"Unexpected character {character!r} at position {position}")
        self.character = character
        self.position = position


def encode(data):
    """Encode *data* (bytes or a sequence of ints) into URL-safe text"""
    text = []
    value = 0
    bits = 0
    for b in bytes(data):
        value = (value << 8) | b
        bits += 8
        while bits >= 6:
            bits -= 6
            text.append(URL_SAFE_CHARACTERS[(value >> bits) & 0x3F])
        # only the unread low bits matter from here on
        value &= (1 << bits) - 1
    if bits > 0:
        text.append(URL_SAFE_CHARACTERS[(value << (6 - bits)) & 0x3F])
    return "".join(text)


def decode(text):
    """Decode URL-safe text back into bytes"""
    data = bytearray()
    value = 0
    bits = 0
    for position, character in enumerate(text):
        index = CHARACTER_LOOKUP.get(character)
        if index is None:
            raise InvalidCharacterError(character, position)
        value = (value << 6) | index
        bits += 6
        if bits >= 8:
            bits -= 8
            data.append((value >> bits) & 0xFF)
            value &= (1 << bits) - 1
    return bytes(data)
