"""
Source API endpoints.
Validates sources and serves their normalized content. Source descriptors
travel in the request body; credentials are never stored server-side.
"""
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field, ValidationError

from iptv_sources.models.source import M3USourceInput, Source, SourceType, XtreamSourceInput
from iptv_sources.services.errors import SourceNormalizerError, UnsupportedOperationError
from iptv_sources.services.source_normalizer import get_normalizer
from iptv_sources.services.source_validator import format_validation_success, validate_source

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sources", tags=["sources"])


class SourceRequest(BaseModel):
    source: Source
    category_id: Optional[str] = None


class EPGRequest(BaseModel):
    source: Source
    stream_id: Optional[str] = None


class ValidateRequest(BaseModel):
    type: SourceType
    input: dict
    timeout: Optional[float] = Field(default=None, gt=0, le=120)


async def _run(call):
    """Await a normalizer call and map its errors to HTTP responses."""
    try:
        return await call
    except UnsupportedOperationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except SourceNormalizerError as e:
        logger.warning(f"Upstream {e.source_type} request failed: {e.message}")
        raise HTTPException(status_code=502, detail=e.message)


@router.post("/validate")
async def validate(request: ValidateRequest):
    """
    Check a source before saving it.

    Always answers 200 with is_valid and a user-facing error; only a malformed
    request body is rejected.
    """
    input_model = XtreamSourceInput if request.type == "xtream" else M3USourceInput
    try:
        source_input = input_model.model_validate(request.input)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))

    result = await validate_source(request.type, source_input, request.timeout)
    return {
        "result": result,
        "summary": format_validation_success(result),
    }


@router.post("/live/categories")
async def get_live_categories(request: SourceRequest):
    normalizer = get_normalizer(request.source)
    categories = await _run(normalizer.get_live_categories())
    return {"categories": categories, "count": len(categories)}


@router.post("/live/channels")
async def get_live_channels(request: SourceRequest):
    """Live channels, optionally limited to one category."""
    normalizer = get_normalizer(request.source)
    channels = await _run(normalizer.get_live_channels(request.category_id))
    return {"channels": channels, "count": len(channels)}


@router.post("/vod/categories")
async def get_vod_categories(request: SourceRequest):
    normalizer = get_normalizer(request.source)
    categories = await _run(normalizer.get_vod_categories())
    return {"categories": categories, "count": len(categories)}


@router.post("/vod/items")
async def get_vod_items(request: SourceRequest):
    normalizer = get_normalizer(request.source)
    items = await _run(normalizer.get_vod_items(request.category_id))
    return {"items": items, "count": len(items)}


@router.post("/series/categories")
async def get_series_categories(request: SourceRequest):
    normalizer = get_normalizer(request.source)
    categories = await _run(normalizer.get_series_categories())
    return {"categories": categories, "count": len(categories)}


@router.post("/series")
async def get_series(request: SourceRequest):
    normalizer = get_normalizer(request.source)
    series = await _run(normalizer.get_series(request.category_id))
    return {"series": series, "count": len(series)}


@router.post("/series/{series_id}")
async def get_series_info(series_id: str, request: SourceRequest):
    """Series detail with seasons and episodes. M3U sources answer 400."""
    normalizer = get_normalizer(request.source)
    return await _run(normalizer.get_series_info(series_id))


@router.post("/epg")
async def get_epg(request: EPGRequest):
    normalizer = get_normalizer(request.source)
    return await _run(normalizer.get_epg(request.stream_id))


@router.post("/epg-url")
async def get_epg_url(request: SourceRequest):
    normalizer = get_normalizer(request.source)
    return {"epg_url": await _run(normalizer.get_epg_url())}


@router.post("/content")
async def get_all_content(request: SourceRequest):
    """Everything the source offers in one response."""
    normalizer = get_normalizer(request.source)
    return await _run(normalizer.get_all_content())


@router.post("/capabilities")
async def get_capabilities(request: SourceRequest):
    normalizer = get_normalizer(request.source)
    return {
        "source_type": normalizer.source_type,
        "supports_vod": normalizer.supports_vod(),
        "supports_series": normalizer.supports_series(),
        "has_integrated_epg": normalizer.has_integrated_epg(),
    }


@router.post("/cache/clear")
async def clear_cache(request: SourceRequest):
    """Drop cached playlist content so the next request refetches it."""
    normalizer = get_normalizer(request.source)
    normalizer.clear_cache()
    return {"success": True, "source_id": normalizer.source_id}
