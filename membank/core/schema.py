"""
Persisted record types for memory banks.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class MemoryRecord:
    text: str
    embedding: List[float]
    bank: str
    position: int = 0  # sequence index within the bank's declared content
    id: Optional[int] = None  # assigned by the store on insert


@dataclass
class NamedBank:
    name: str
    content: List[str] = field(default_factory=list)
