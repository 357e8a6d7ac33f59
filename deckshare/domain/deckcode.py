# deckshare/domain/deckcode.py
"""
Deck code parsing.

A deck code is unpadded base32 (RFC 4648). The first byte packs the format
(high nibble) and version (low nibble). The rest is a stream of varints:

    for copies in 3, 2, 1:
        group_count
        group_count * (cards_in_group, set, faction, number * cards_in_group)
    then, until the end, single entries for 4+ copies:
        (copies, set, faction, number)

Card codes are rendered as ``SSFFNNN`` (set, faction code, card number).
"""

from __future__ import annotations

import base64
import binascii
from collections import Counter
from dataclasses import dataclass
from typing import Optional

from deckshare.constants import DECKCODE_FORMAT, DECKCODE_MAX_VERSION, FACTIONS


class DeckcodeError(ValueError):
    """Raised when a string is not a readable deck code."""


@dataclass(frozen=True)
class CardEntry:
    card_code: str
    count: int

    @property
    def faction(self) -> str:
        return self.card_code[2:4]


@dataclass(frozen=True)
class ParsedDeck:
    deckcode: str
    cards: tuple[CardEntry, ...]

    @property
    def total_count(self) -> int:
        return sum(c.count for c in self.cards)

    @property
    def factions(self) -> list[str]:
        """Faction codes ordered by number of cards, most first."""
        per_faction: Counter[str] = Counter()
        for card in self.cards:
            per_faction[card.faction] += card.count
        return [faction for faction, _ in per_faction.most_common()]

    @property
    def primary_faction(self) -> Optional[str]:
        factions = self.factions
        return factions[0] if factions else None


class _VarintReader:
    def __init__(self, data: bytes):
        self._data = data
        self._pos = 0

    @property
    def exhausted(self) -> bool:
        return self._pos >= len(self._data)

    def read(self) -> int:
        result = 0
        shift = 0
        while True:
            if self._pos >= len(self._data):
                raise DeckcodeError("Truncated deck code")
            byte = self._data[self._pos]
            self._pos += 1
            result |= (byte & 0x7F) << shift
            if not byte & 0x80:
                return result
            shift += 7
            if shift > 35:
                raise DeckcodeError("Varint too long")


def normalize_deckcode(raw: str) -> str:
    return "".join(raw.split()).rstrip("=").upper()


def _decode_base32(code: str) -> bytes:
    padded = code + "=" * (-len(code) % 8)
    try:
        return base64.b32decode(padded)
    except (binascii.Error, ValueError) as e:
        raise DeckcodeError(f"Not a base32 deck code: {e}") from e


def _card_code(set_number: int, faction_id: int, card_number: int) -> str:
    faction = FACTIONS.get(faction_id)
    if faction is None:
        raise DeckcodeError(f"Unknown faction id {faction_id}")
    return f"{set_number:02d}{faction}{card_number:03d}"


def parse_deckcode(raw: str) -> ParsedDeck:
    """Decode a deck code; raise DeckcodeError if it is malformed."""
    if not isinstance(raw, str):
        raise DeckcodeError("Deck code must be a string")
    code = normalize_deckcode(raw)
    if not code:
        raise DeckcodeError("Empty deck code")

    data = _decode_base32(code)
    if not data:
        raise DeckcodeError("Empty deck code")
    fmt, version = data[0] >> 4, data[0] & 0x0F
    if fmt != DECKCODE_FORMAT or version > DECKCODE_MAX_VERSION:
        raise DeckcodeError(f"Unsupported deck code format {fmt} version {version}")

    reader = _VarintReader(data[1:])
    cards: list[CardEntry] = []
    for copies in (3, 2, 1):
        for _ in range(reader.read()):
            in_group = reader.read()
            set_number = reader.read()
            faction_id = reader.read()
            for _ in range(in_group):
                cards.append(CardEntry(_card_code(set_number, faction_id, reader.read()), copies))

    while not reader.exhausted:
        copies = reader.read()
        set_number = reader.read()
        faction_id = reader.read()
        cards.append(CardEntry(_card_code(set_number, faction_id, reader.read()), copies))

    if not cards:
        raise DeckcodeError("Deck code contains no cards")
    return ParsedDeck(deckcode=code, cards=tuple(cards))


def validate_deckcode(raw: str) -> bool:
    try:
        parse_deckcode(raw)
    except DeckcodeError:
        return False
    return True
