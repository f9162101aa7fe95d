"""
HTTP surface for memory banks: listing, custom bank management, search and
similarity graphs. All work is delegated to MemoryBankService.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Depends, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .schemas import (
    CustomBankCreateRequest,
    BankResponse,
    BankSummary,
    BankListResponse,
    BankActivateResponse,
    RecordItem,
    RecordListResponse,
    GraphEdge,
    GraphNode,
    GraphResponse,
    RelatedItem,
    RelatedResponse,
    SearchRequest,
    SearchResult,
    SearchResponse,
    HealthResponse,
)
from ..core.banks import BankNotFoundError, BankNotReadyError, BankValidationError
from ..core.config import VERSION, GRAPH_MAX_CONNECTIONS, GRAPH_THRESHOLD, debug_enabled, sync_on_startup, validate_config
from ..core.db import StoreError
from ..core.memory_service import MemoryBankService
from ..util.logging import logger
from ..vector.embeddings import EmbeddingError

_service: Optional[MemoryBankService] = None


def get_memory_service() -> MemoryBankService:
    """Process-wide service instance, created on first use."""
    global _service
    if _service is None:
        _service = MemoryBankService()
    return _service


@asynccontextmanager
async def lifespan(app: FastAPI):
    for issue in validate_config():
        logger.warning(f"Configuration issue: {issue}")

    if sync_on_startup():
        service = app.dependency_overrides.get(get_memory_service, get_memory_service)()
        await service.startup()
    yield


# Initialize the FastAPI application
app = FastAPI(
    title="Memory Bank API",
    version=VERSION,
    description="Named fact banks with cached embeddings, semantic search and similarity graphs",
    docs_url="/docs" if debug_enabled() else None,
    redoc_url="/redoc" if debug_enabled() else None,
    lifespan=lifespan,
)

# Add CORS middleware to allow frontend connections
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5173", "http://127.0.0.1:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BankValidationError)
async def bank_validation_handler(request: Request, exc: BankValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(BankNotFoundError)
async def bank_not_found_handler(request: Request, exc: BankNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(BankNotReadyError)
async def bank_not_ready_handler(request: Request, exc: BankNotReadyError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(EmbeddingError)
async def embedding_error_handler(request: Request, exc: EmbeddingError):
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.get("/health", response_model=HealthResponse)
async def health_check_endpoint(service: MemoryBankService = Depends(get_memory_service)):
    """Check system health."""
    db_health = await service.store.health_check()
    record_count = await service.store.count() if db_health else 0

    return HealthResponse(
        status="healthy" if db_health else "unhealthy",
        version=VERSION,
        db_health=db_health,
        record_count=record_count
    )


@app.get("/banks", response_model=BankListResponse)
async def list_banks_endpoint(service: MemoryBankService = Depends(get_memory_service)):
    banks = []
    for name in await service.list_banks():
        content = await service.bank_content(name)
        banks.append(BankSummary(
            name=name,
            builtin=service.is_builtin(name),
            size=len(content),
            active=name == service.active_bank,
        ))
    return BankListResponse(banks=banks, active_bank=service.active_bank)


@app.post("/banks", response_model=BankResponse, status_code=201)
async def create_bank_endpoint(req: CustomBankCreateRequest, service: MemoryBankService = Depends(get_memory_service)):
    bank = await service.create_custom_bank(req.name, req.text)
    return BankResponse(name=bank.name, content=bank.content)


@app.delete("/banks/{name}", status_code=204)
async def delete_bank_endpoint(name: str, service: MemoryBankService = Depends(get_memory_service)):
    await service.delete_custom_bank(name)
    return Response(status_code=204)


@app.post("/banks/{name}/activate", response_model=BankActivateResponse)
async def activate_bank_endpoint(name: str, service: MemoryBankService = Depends(get_memory_service)):
    view = await service.activate_bank(name)
    return BankActivateResponse(
        name=name,
        ready=view is not None,
        records=len(view.texts) if view else 0
    )


@app.get("/banks/{name}/records", response_model=RecordListResponse)
async def list_records_endpoint(name: str, service: MemoryBankService = Depends(get_memory_service)):
    records = await service.get_records(name)
    return RecordListResponse(
        bank=name,
        records=[RecordItem(id=r.id, text=r.text, position=r.position) for r in records]
    )


@app.get("/banks/{name}/graph", response_model=GraphResponse)
async def graph_endpoint(
    name: str,
    k: int = GRAPH_MAX_CONNECTIONS,
    threshold: float = GRAPH_THRESHOLD,
    service: MemoryBankService = Depends(get_memory_service)
):
    """Directed top-k neighbor graph of a bank's entries."""
    if k < 0:
        raise BankValidationError("k must be >= 0")

    bank_graph = await service.neighbor_graph(name, k=k, threshold=threshold)
    return GraphResponse(
        bank=name,
        nodes=[
            GraphNode(
                id=i,
                text=bank_graph.texts[i],
                connections=[GraphEdge(target=e.target, score=e.score) for e in edges]
            )
            for i, edges in enumerate(bank_graph.graph)
        ]
    )


@app.get("/banks/{name}/records/{index}/related", response_model=RelatedResponse)
async def related_endpoint(name: str, index: int, limit: int = 3, service: MemoryBankService = Depends(get_memory_service)):
    related = await service.related_entries(name, index, limit)
    return RelatedResponse(
        bank=name,
        index=index,
        related=[RelatedItem(index=r.index, text=r.text, score=r.score) for r in related]
    )


@app.post("/search", response_model=SearchResponse)
async def search_endpoint(req: SearchRequest, service: MemoryBankService = Depends(get_memory_service)):
    """Rank a bank (default: the active one) against a query."""
    bank = req.bank or service.active_bank
    results = await service.search(req.query, bank)
    return SearchResponse(
        bank=bank,
        results=[SearchResult(text=r.text, score=r.score, relevance=r.relevance) for r in results]
    )
