"""FastAPI application - main entry point."""
from contextlib import asynccontextmanager
from typing import Dict, Optional
import json
import logging

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse

from config import settings
from crawler.exceptions import ExtractionError, TransportChallengeError
from crawler.source import MadaraSource
from crawler.transport import RequestsTransport, Transport
from schemas import (
    ChapterDetails, ChapterListResponse, HomeResponse, Manga, PagedResults,
    SiteListResponse, SiteSummary, TagListResponse, UpdateScanRequest
)
from sites import SiteProfile, SiteRegistry

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# One throttled transport per site, created on first use
_transports: Dict[str, RequestsTransport] = {}


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    for name, transport in _transports.items():
        logger.info(f"Closing transport for {name}")
        transport.close()
    _transports.clear()


# Create FastAPI app
app = FastAPI(
    title="Madara Catalog API",
    description="Read-only access to manga catalogs of Madara-based sites",
    version="1.0.0",
    lifespan=lifespan,
)


# ============================================================================
# Dependencies
# ============================================================================

def get_profile(site: str) -> SiteProfile:
    """Resolve the {site} path parameter to its profile."""
    profile = SiteRegistry.get(site)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"Unknown site: {site}")
    return profile


def get_transport(profile: SiteProfile = Depends(get_profile)) -> Transport:
    transport = _transports.get(profile.name)
    if transport is None:
        transport = RequestsTransport()
        _transports[profile.name] = transport
    return transport


def get_source(
    profile: SiteProfile = Depends(get_profile),
    transport: Transport = Depends(get_transport),
) -> MadaraSource:
    return MadaraSource(profile, transport)


# ============================================================================
# Error Handlers
# ============================================================================

@app.exception_handler(ExtractionError)
async def extraction_error_handler(request: Request, exc: ExtractionError):
    logger.error(f"Extraction failed for {request.url.path}: {exc}")
    return JSONResponse(
        status_code=502,
        content={
            "detail": str(exc),
            "site": exc.site,
            "entity": exc.entity,
            "field": exc.field,
        },
    )


@app.exception_handler(TransportChallengeError)
async def challenge_error_handler(request: Request, exc: TransportChallengeError):
    logger.error(f"Anti-bot challenge for {request.url.path}")
    return JSONResponse(status_code=503, content={"detail": exc.hint, "site": exc.site})


# ============================================================================
# Site Endpoints
# ============================================================================

@app.get("/sites", response_model=SiteListResponse, tags=["Sites"])
async def list_sites():
    """List every registered site."""
    items = []
    for name in SiteRegistry.names():
        profile = SiteRegistry.get(name)
        items.append(SiteSummary(
            name=profile.name,
            base_url=profile.base_url,
            language_code=profile.language_code,
            has_advanced_search_page=profile.has_advanced_search_page,
        ))
    return SiteListResponse(items=items, total=len(items))


@app.get("/sites/{site}/tags", response_model=TagListResponse, tags=["Sites"])
async def get_tags(source: MadaraSource = Depends(get_source)):
    """Get the genre list of a site."""
    return TagListResponse(items=await source.get_tags())


# ============================================================================
# Title Endpoints
# ============================================================================

@app.get("/sites/{site}/manga/{manga_id}", response_model=Manga, tags=["Manga"])
async def get_manga(manga_id: str, source: MadaraSource = Depends(get_source)):
    """Get title details by slug."""
    return await source.get_manga_details(manga_id)


@app.get(
    "/sites/{site}/manga/{manga_id}/chapters",
    response_model=ChapterListResponse,
    tags=["Manga"]
)
async def list_chapters(manga_id: str, source: MadaraSource = Depends(get_source)):
    """
    List chapters of a title.

    The slug is resolved to the numeric post id first, so this costs two
    requests.
    """
    numeric_id = await source.get_numeric_id(manga_id)
    chapters = await source.get_chapters(numeric_id)
    return ChapterListResponse(items=chapters, total=len(chapters))


@app.get(
    "/sites/{site}/manga/{manga_id}/chapters/{chapter_id:path}",
    response_model=ChapterDetails,
    tags=["Manga"]
)
async def get_chapter(
    manga_id: str,
    chapter_id: str,
    source: MadaraSource = Depends(get_source)
):
    """Get the page images of a chapter."""
    return await source.get_chapter_details(manga_id, chapter_id)


# ============================================================================
# Listing Endpoints
# ============================================================================

@app.get("/sites/{site}/search", response_model=PagedResults, tags=["Listings"])
async def search(
    q: str = Query(..., min_length=1),
    page: int = Query(0, ge=0),
    source: MadaraSource = Depends(get_source)
):
    """Search titles; ``metadata.page`` of the result is the next page to ask for."""
    return await source.search_request(q, {"page": page})


@app.get("/sites/{site}/home", response_model=HomeResponse, tags=["Listings"])
async def get_home(source: MadaraSource = Depends(get_source)):
    """Get every home section, filled."""
    return HomeResponse(sections=await source.get_home_page_sections())


@app.get("/sites/{site}/home/{section_id}", response_model=PagedResults, tags=["Listings"])
async def get_home_section_page(
    section_id: str,
    page: int = Query(0, ge=0),
    source: MadaraSource = Depends(get_source)
):
    """Get one more page of a home section."""
    results: Optional[PagedResults] = await source.get_view_more_items(section_id, {"page": page})
    if results is None:
        raise HTTPException(status_code=404, detail=f"Unknown section: {section_id}")
    return results


@app.post("/sites/{site}/updates", tags=["Listings"])
async def scan_updates(
    body: UpdateScanRequest,
    source: MadaraSource = Depends(get_source)
):
    """
    Scan the latest-updated feed for watched titles.

    Streams one JSON line per batch as pages are scanned. A failure after
    the stream started is reported as a final ``{"error": ...}`` line.
    """
    logger.info(
        f"Update scan on {source.profile.name}: {len(body.ids)} ids since {body.since.isoformat()}"
    )

    async def stream():
        try:
            async for batch in source.scan_updates(body.ids, body.since):
                yield batch.model_dump_json() + "\n"
        except (ExtractionError, TransportChallengeError) as e:
            logger.error(f"Update scan on {source.profile.name} aborted: {e}")
            yield json.dumps({"error": str(e)}) + "\n"

    return StreamingResponse(stream(), media_type="application/x-ndjson")


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health", tags=["System"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "sites": len(SiteRegistry.names())}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload
    )
