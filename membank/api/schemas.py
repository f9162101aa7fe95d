"""
Request and response models for the memory bank API.
"""

from pydantic import BaseModel, field_validator
from typing import Optional, List


class CustomBankCreateRequest(BaseModel):
    name: str
    text: str

    @field_validator('name')
    @classmethod
    def name_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('Bank name cannot be empty.')
        return v


class BankResponse(BaseModel):
    name: str
    content: List[str]


class BankSummary(BaseModel):
    name: str
    builtin: bool
    size: int
    active: bool


class BankListResponse(BaseModel):
    banks: List[BankSummary]
    active_bank: str


class BankActivateResponse(BaseModel):
    name: str
    ready: bool
    records: int


class RecordItem(BaseModel):
    id: int
    text: str
    position: int


class RecordListResponse(BaseModel):
    bank: str
    records: List[RecordItem]


class GraphEdge(BaseModel):
    target: int
    score: float


class GraphNode(BaseModel):
    id: int
    text: str
    connections: List[GraphEdge]


class GraphResponse(BaseModel):
    bank: str
    nodes: List[GraphNode]


class RelatedItem(BaseModel):
    index: int
    text: str
    score: float


class RelatedResponse(BaseModel):
    bank: str
    index: int
    related: List[RelatedItem]


class SearchRequest(BaseModel):
    query: str
    bank: Optional[str] = None

    @field_validator('query')
    @classmethod
    def query_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('Please enter a query.')
        return v


class SearchResult(BaseModel):
    text: str
    score: float
    relevance: str


class SearchResponse(BaseModel):
    bank: str
    results: List[SearchResult]


class HealthResponse(BaseModel):
    status: str
    version: str
    db_health: bool
    record_count: int
