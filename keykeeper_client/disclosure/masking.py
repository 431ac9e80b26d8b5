"""Masking policy for secret display.

One policy for every view: long secrets keep their first 8 and last 4
characters with the middle masked to the original length; secrets of 12
characters or fewer are shown as a fixed-width mask that does not reveal
their length.
"""
from .. import conf

PREFIX_LENGTH = 8
SUFFIX_LENGTH = 4
_REVEALED = PREFIX_LENGTH + SUFFIX_LENGTH


def mask_secret(
    secret: str,
    mask_char: str = conf.MASK_CHAR,
    fixed_width: int = conf.FIXED_MASK_WIDTH,
) -> str:
    if len(secret) <= _REVEALED:
        return mask_char * fixed_width
    hidden = len(secret) - _REVEALED
    return secret[:PREFIX_LENGTH] + mask_char * hidden + secret[-SUFFIX_LENGTH:]


def fixed_mask(mask_char: str = conf.MASK_CHAR, fixed_width: int = conf.FIXED_MASK_WIDTH) -> str:
    """Mask shown for values the client cannot read."""
    return mask_char * fixed_width
