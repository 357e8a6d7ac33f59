# deckshare/constants.py

# Digits and letters without the look-alikes 0/O, 1/I/l and o
SHORTID_ALPHABET: str = "23456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijklmnpqrstuvwxyz"

# Only complete decks show up in the "most viewed" listing
DECK_SIZE: int = 40

# Deck code wire format
DECKCODE_FORMAT: int = 1
DECKCODE_MAX_VERSION: int = 5

FACTIONS: dict[int, str] = {
    0: "DE",
    1: "FR",
    2: "IO",
    3: "NX",
    4: "PZ",
    5: "SI",
    6: "BW",
    7: "SH",
    9: "MT",
    10: "BC",
    12: "RU",
}

URLBOX_ENDPOINT: str = "https://api.urlbox.io/v1"
