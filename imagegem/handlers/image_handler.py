"""Image transformation endpoint: ``GET /img/url/{url}``."""
from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response

from imagegem.config import get_settings
from imagegem.models import WebPMode
from imagegem.services.fetcher import BoundedFetcher, SizeLimitExceeded, UpstreamError
from imagegem.services.formats import UnsupportedFormatError, check_content_type, is_passthrough
from imagegem.services.imaging import DecodeError, ImageOperations, TransformError, get_operations
from imagegem.services.params import ParameterError, parse_transform_request
from imagegem.services.pipeline import TransformPipeline
from imagegem.services.urls import InvalidURLError, UnsupportedSchemeError, normalize_url

router = APIRouter()
settings = get_settings()
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

@lru_cache()
def get_fetcher() -> BoundedFetcher:
    return BoundedFetcher(
        user_agent=settings.user_agent,
        max_bytes=settings.max_image_bytes,
        timeout=settings.fetch_timeout,
        follow_redirects=settings.follow_redirects,
    )


def get_pipeline(ops: ImageOperations = Depends(get_operations)) -> TransformPipeline:
    return TransformPipeline(ops)


# ---------------------------------------------------------------------------
# Route
# ---------------------------------------------------------------------------


@router.get("/img/url/{url:path}")
def get_image(
    url: str,
    request: Request,
    accept: str | None = Header(None),
    fetcher: BoundedFetcher = Depends(get_fetcher),
    pipeline: TransformPipeline = Depends(get_pipeline),
):
    try:
        transform = parse_transform_request(
            normalize_url(url),
            request.query_params,
            max_dimension=settings.max_dimension,
        )
    except (ParameterError, InvalidURLError, UnsupportedSchemeError) as exc:
        logger.warning("Rejected request for %s: %s", url, exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    try:
        with fetcher.fetch(transform.url) as fetched:
            content_type = check_content_type(fetched.content_type)
            if is_passthrough(transform, content_type):
                body = fetched.stream.read()
                logger.info("Passed through %s (%s, %d bytes)", transform.url, content_type, len(body))
                return Response(content=body, media_type=fetched.content_type)
            result = pipeline.run(fetched.stream, content_type, transform, accept)
    except UpstreamError as exc:
        logger.warning("Upstream fetch failed for %s: %s", transform.url, exc)
        status = exc.status if exc.status is not None and exc.status >= 400 else 502
        raise HTTPException(status_code=status, detail=str(exc)) from exc
    except UnsupportedFormatError as exc:
        logger.warning("Unsupported content type from %s: %s", transform.url, exc.content_type)
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except (SizeLimitExceeded, DecodeError) as exc:
        logger.warning("Failed to decode %s: %s", transform.url, exc)
        raise HTTPException(status_code=400, detail="Failed to decode image") from exc
    except TransformError as exc:
        logger.exception("Transform failed for %s", transform.url)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    headers = {"Vary": "Accept"} if transform.webp is WebPMode.AUTO else None
    logger.info("Served %s as %s (%d bytes)", transform.url, result.format.value, len(result.data))
    return Response(content=result.data, media_type=result.media_type, headers=headers)
