"""
Devanagari to romanized lowercase transliteration used by donor search.

This is a literal find/replace table, not a phonetic algorithm. Entries are
applied in order and each one replaces every occurrence, so whole words must
come before the multi-glyph sequences, which come before single glyphs.
"""

from typing import List, Tuple

# Frequent honorifics and surnames
WORD_TABLE: List[Tuple[str, str]] = [
    ("श्रीमती", "shrimati"),
    ("श्री", "shri"),
    ("राम", "ram"),
    ("कृष्ण", "krishna"),
    ("हनुमान", "hanuman"),
    ("प्रसाद", "prasad"),
    ("कुमार", "kumar"),
    ("सिंह", "singh"),
    ("शर्मा", "sharma"),
    ("गुप्ता", "gupta"),
    ("यादव", "yadav"),
    ("पाण्डेय", "pandey"),
    ("मिश्रा", "mishra"),
    ("देवी", "devi"),
]

GLYPH_TABLE: List[Tuple[str, str]] = [
    # Vowels, longest sequences first
    ("अं", "an"), ("अः", "ah"),
    ("अ", "a"), ("आ", "aa"), ("इ", "i"), ("ई", "ee"), ("उ", "u"), ("ऊ", "oo"),
    ("ए", "e"), ("ऐ", "ai"), ("ओ", "o"), ("औ", "au"),
    # Consonants
    ("क", "k"), ("ख", "kh"), ("ग", "g"), ("घ", "gh"), ("ङ", "ng"),
    ("च", "ch"), ("छ", "chh"), ("ज", "j"), ("झ", "jh"), ("ञ", "ny"),
    ("ट", "t"), ("ठ", "th"), ("ड", "d"), ("ढ", "dh"), ("ण", "n"),
    ("त", "t"), ("थ", "th"), ("द", "d"), ("ध", "dh"), ("न", "n"),
    ("प", "p"), ("फ", "ph"), ("ब", "b"), ("भ", "bh"), ("म", "m"),
    ("य", "y"), ("र", "r"), ("ल", "l"), ("व", "v"), ("श", "sh"),
    ("ष", "sh"), ("स", "s"), ("ह", "h"),
    # Vowel signs
    ("ा", "a"), ("ि", "i"), ("ी", "ee"), ("ु", "u"), ("ू", "oo"),
    ("े", "e"), ("ै", "ai"), ("ो", "o"), ("ौ", "au"),
    ("ं", "n"), ("ः", "h"), ("्", ""), ("ृ", "ri"),
]

TRANSLITERATION_TABLE: List[Tuple[str, str]] = WORD_TABLE + GLYPH_TABLE


def transliterate(text: str, table: List[Tuple[str, str]] = TRANSLITERATION_TABLE) -> str:
    """Return the romanized, lowercased form of text."""
    result = text
    for source, replacement in table:
        result = result.replace(source, replacement)
    return result.lower()
