"""
Built-in memory banks and custom bank validation.
"""

from typing import Dict, Iterable, List, Tuple

from .config import MAX_CUSTOM_BANK_ENTRIES


class BankError(Exception):
    """Base class for bank-level failures."""


class BankValidationError(BankError):
    """Raised when a bank request is rejected before any work is done."""


class BankNotFoundError(BankError):
    """Raised when a bank (or an entry inside it) does not exist."""


class BankNotReadyError(BankError):
    """Raised when a bank has no cached embeddings yet."""


MEMORY_BANK_GENERAL = [
    "The Great Wall of China is more than 21,000 kilometres long.",
    "Honey never spoils; edible honey has been found in ancient Egyptian tombs.",
    "Octopuses have three hearts and blue blood.",
    "The Eiffel Tower can be around 15 centimetres taller in summer because iron expands in the heat.",
    "Bananas are berries, but strawberries are not.",
    "Mount Everest grows a few millimetres every year.",
    "A day on Venus is longer than a year on Venus.",
    "The shortest war in history lasted less than an hour.",
    "Sloths can hold their breath longer than dolphins.",
    "The Amazon rainforest produces a large share of the world's oxygen.",
    "The first Olympic Games were held in Olympia, Greece, in 776 BC.",
    "Coffee is the second most traded commodity after crude oil.",
    "Cats sleep for around two thirds of their lives.",
    "The Pacific Ocean is larger than all of the Earth's land area combined.",
    "Chess was invented in India around the sixth century.",
]

MEMORY_BANK_PROGRAMMING = [
    "Python was created by Guido van Rossum and first released in 1991.",
    "A hash map gives average constant-time lookups by key.",
    "Git stores snapshots of the project rather than differences between files.",
    "Recursion is a function calling itself to solve smaller instances of a problem.",
    "SQL is a declarative language for querying relational databases.",
    "The first computer bug was an actual moth found in a relay of the Harvard Mark II.",
    "Big O notation describes how the running time of an algorithm grows with its input.",
    "JavaScript runs in the browser on a single-threaded event loop.",
    "A race condition happens when the result depends on the timing of concurrent operations.",
    "Unit tests check small pieces of code in isolation.",
    "Garbage collection reclaims memory that a program no longer references.",
    "REST APIs expose resources over HTTP using verbs like GET and POST.",
    "Linux was first released by Linus Torvalds in 1991.",
    "A compiler translates source code into machine code before the program runs.",
    "Binary search finds an item in a sorted list by repeatedly halving the search range.",
]

MEMORY_BANK_SCIENCE = [
    "Light from the Sun takes about eight minutes to reach the Earth.",
    "Water boils at 100 degrees Celsius at sea level.",
    "DNA is shaped like a double helix.",
    "Photosynthesis turns sunlight, water and carbon dioxide into glucose and oxygen.",
    "The speed of light in a vacuum is about 299,792 kilometres per second.",
    "Atoms are mostly empty space.",
    "Jupiter is the largest planet in the solar system.",
    "Sound travels faster in water than in air.",
    "The human body contains around 37 trillion cells.",
    "Diamonds and graphite are both made entirely of carbon.",
    "Electrons carry a negative electric charge.",
    "Black holes have gravity so strong that not even light can escape them.",
    "The mitochondria produce most of a cell's chemical energy.",
    "Plate tectonics explains the movement of the Earth's continents.",
    "Absolute zero is minus 273.15 degrees Celsius.",
]

BUILTIN_BANKS: Dict[str, List[str]] = {
    "General": MEMORY_BANK_GENERAL,
    "Programming": MEMORY_BANK_PROGRAMMING,
    "Science": MEMORY_BANK_SCIENCE,
}


def parse_custom_bank(name: str, text: str, existing_names: Iterable[str]) -> Tuple[str, List[str]]:
    """Validate a custom bank request.

    Args:
        name: Requested bank name, trimmed before use
        text: Raw bank content, one fact per line
        existing_names: Names of every bank that already exists

    Returns:
        The trimmed name and the list of non-empty, trimmed lines

    Raises:
        BankValidationError: If the name or the content is rejected
    """
    trimmed_name = (name or "").strip()
    if not trimmed_name:
        raise BankValidationError("Bank name cannot be empty.")

    if trimmed_name.lower() in {existing.lower() for existing in existing_names}:
        raise BankValidationError("This name is already taken. Please choose another.")

    lines = [line.strip() for line in (text or "").split("\n")]
    lines = [line for line in lines if line]
    if not lines:
        raise BankValidationError("Bank content cannot be empty.")
    if len(lines) > MAX_CUSTOM_BANK_ENTRIES:
        raise BankValidationError(f"You can add a maximum of {MAX_CUSTOM_BANK_ENTRIES} facts.")

    return trimmed_name, lines
