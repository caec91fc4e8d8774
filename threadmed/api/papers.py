"""
Read-only library API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
import logging
import sqlite3

from threadmed.api.dependencies import get_library_store
from threadmed.db.library_store import LibraryStore
from threadmed.models.paper import Paper, SearchHit

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/papers", response_model=list[Paper])
async def list_papers(store: LibraryStore = Depends(get_library_store)):
    """List all papers, most recently added first."""
    return store.list_papers()


@router.get("/papers/search", response_model=list[SearchHit])
async def search_papers(
    q: str = Query(..., min_length=1, description="FTS5 query"),
    limit: int = Query(default=50, ge=1, le=500),
    store: LibraryStore = Depends(get_library_store),
):
    """
    Full-text search over titles, abstracts and extracted text.

    Raises:
        HTTPException: 400 if the query is not valid FTS5 syntax.
    """
    try:
        return store.search_papers(q, limit)
    except sqlite3.OperationalError as e:
        logger.info(f"Rejected search query {q!r}: {e}")
        raise HTTPException(status_code=400, detail=f"Invalid search query: {e}")


@router.get("/papers/{paper_id}", response_model=Paper)
async def get_paper(paper_id: str, store: LibraryStore = Depends(get_library_store)):
    """Get a single paper by local ID."""
    paper = store.get_paper(paper_id)
    if paper is None:
        raise HTTPException(status_code=404, detail=f"Paper {paper_id} not found")
    return paper
