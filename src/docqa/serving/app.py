"""FastAPI application exposing document upload and question answering."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import Depends, FastAPI, File, Form, Header, Request, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from docqa.config import settings
from docqa.exceptions import (
    DocQAError,
    NotFoundError,
    RemoteServiceError,
    ServiceUnavailableError,
    StorageError,
    ValidationError,
)
from docqa.models import Document, DocumentVisibility
from docqa.service import DocumentService, build_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the service on startup; drain in-flight ingestion on shutdown."""
    app.state.service = build_service()
    try:
        yield
    finally:
        app.state.service.shutdown()


app = FastAPI(
    title="DocQA API",
    version="0.1.0",
    description="Upload documents and ask questions answered from their content.",
    lifespan=lifespan,
)


def get_service(request: Request) -> DocumentService:
    return request.app.state.service


# ── Request / Response schemas ────────────────────────────────────────
class DocumentInfo(BaseModel):
    id: str
    filename: str
    original_name: str
    file_size: int
    mime_type: str
    status: str
    chunk_count: int
    visibility: str
    created_at: datetime

    @classmethod
    def from_document(cls, doc: Document) -> DocumentInfo:
        return cls(
            id=doc.id,
            filename=doc.filename,
            original_name=doc.original_name,
            file_size=doc.file_size,
            mime_type=doc.mime_type,
            status=doc.status.value,
            chunk_count=doc.chunk_count,
            visibility=doc.visibility.value,
            created_at=doc.created_at,
        )


class UploadResponse(BaseModel):
    id: str
    filename: str
    status: str
    message: str


class PaginationMeta(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class DocumentListResponse(BaseModel):
    data: list[DocumentInfo]
    meta: PaginationMeta


class QueryRequest(BaseModel):
    """Incoming question from the user."""

    query: str


class SourceInfo(BaseModel):
    document_id: str
    chunk_index: int
    content: str
    similarity: float


class QueryResponse(BaseModel):
    """Answer plus the ranked sources it was grounded on."""

    answer: str
    sources: list[SourceInfo] = []


# ── Error mapping ─────────────────────────────────────────────────────
_STATUS_BY_ERROR: list[tuple[type[DocQAError], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (RemoteServiceError, status.HTTP_502_BAD_GATEWAY),
    (StorageError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (ServiceUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


@app.exception_handler(DocQAError)
async def handle_docqa_error(request: Request, exc: DocQAError) -> JSONResponse:
    code = next(
        (c for err, c in _STATUS_BY_ERROR if isinstance(exc, err)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    if code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=code, content={"error": exc.message, "details": exc.details})


# ── Routes ────────────────────────────────────────────────────────────
@app.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


@app.post("/documents", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_document(
    file: UploadFile = File(...),
    visibility: str = Form("PRIVATE"),
    owner_id: str = Header(..., alias="X-Owner-Id"),
    service: DocumentService = Depends(get_service),
) -> UploadResponse:
    """Store the upload and start ingestion in the background."""
    data = await file.read()
    vis = DocumentVisibility.PUBLIC if visibility.upper() == "PUBLIC" else DocumentVisibility.PRIVATE
    doc = await run_in_threadpool(
        service.upload_document,
        owner_id,
        file.filename or "",
        data,
        file.content_type or "",
        vis,
    )
    return UploadResponse(
        id=doc.id,
        filename=doc.filename,
        status=doc.status.value,
        message="Document uploaded successfully. Processing in background.",
    )


@app.get("/documents", response_model=DocumentListResponse)
async def list_documents(
    page: int = 1,
    limit: int = 10,
    owner_id: str = Header(..., alias="X-Owner-Id"),
    service: DocumentService = Depends(get_service),
) -> DocumentListResponse:
    result = await run_in_threadpool(service.list_documents, owner_id, page, limit)
    return DocumentListResponse(
        data=[DocumentInfo.from_document(d) for d in result.documents],
        meta=PaginationMeta(
            total=result.total,
            page=result.page,
            limit=result.limit,
            total_pages=result.total_pages,
        ),
    )


@app.get("/documents/{document_id}", response_model=DocumentInfo)
async def get_document(
    document_id: str,
    owner_id: str = Header(..., alias="X-Owner-Id"),
    service: DocumentService = Depends(get_service),
) -> DocumentInfo:
    doc = await run_in_threadpool(service.get_document, document_id, owner_id)
    return DocumentInfo.from_document(doc)


@app.delete("/documents/{document_id}")
async def delete_document(
    document_id: str,
    owner_id: str = Header(..., alias="X-Owner-Id"),
    service: DocumentService = Depends(get_service),
) -> dict[str, str]:
    await run_in_threadpool(service.delete_document, document_id, owner_id)
    return {"message": "Document deleted successfully"}


@app.post("/query", response_model=QueryResponse)
async def query(
    request: QueryRequest,
    service: DocumentService = Depends(get_service),
) -> QueryResponse:
    """Answer a question from the ingested documents."""
    result = await run_in_threadpool(service.answer_query, request.query)
    return QueryResponse(
        answer=result.answer,
        sources=[
            SourceInfo(
                document_id=s.chunk.document_id,
                chunk_index=s.chunk.chunk_index,
                content=s.chunk.content,
                similarity=s.similarity,
            )
            for s in result.sources
        ],
    )


def main() -> None:
    """Run the API with uvicorn."""
    import uvicorn

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host="0.0.0.0", port=8080)


if __name__ == "__main__":
    main()
