#!/usr/bin/env python3
"""Search API endpoints"""

import asyncio
import functools
import json
import logging
import threading
import time
from typing import Any, Callable, Dict

from fastapi import APIRouter, Depends, Query, Request, Response

from apps.api.schemas.search import (
    ParseResponse,
    SearchFiltersResponse,
    SearchMeta,
    SearchRequest,
    SearchResponse,
)
from apps.core.config import settings
from apps.core.db import get_session_factory
from apps.core.errors import SearchCancelled
from apps.subjects.services.lexicon import get_lexicon
from apps.subjects.services.query_parser import create_query_parser
from apps.subjects.services.search import SearchOutcome, create_search_service

logger = logging.getLogger(__name__)

router = APIRouter()


def get_search_service_factory() -> Callable:
    """Dependency returning the callable that builds a SearchService from a session"""
    return create_search_service


def _resolve_in_session(
    session_factory: Callable,
    service_factory: Callable,
    search_request: SearchRequest,
    cancel_event: threading.Event,
) -> SearchOutcome:
    """Run one search on a worker thread with its own session"""
    db = session_factory()
    try:
        service = service_factory(db)
        return service.resolve(
            search_request.q,
            explicit_type=search_request.type,
            explicit_city=search_request.city,
            rating_min=search_request.rating_min,
            review_count_min=search_request.review_count_min,
            page=search_request.page,
            page_size=search_request.page_size,
            cancel_event=cancel_event,
        )
    finally:
        db.close()


def build_search_response(outcome: SearchOutcome) -> SearchResponse:
    return SearchResponse(
        query=outcome.query,
        filters=SearchFiltersResponse(
            type=outcome.type,
            city=outcome.city,
            rating_min=outcome.rating_min,
            review_count_min=outcome.review_count_min,
        ),
        meta=SearchMeta(
            total=outcome.total,
            page=outcome.page,
            page_size=outcome.page_size,
            total_pages=outcome.total_pages,
        ),
        results=outcome.results,
    )


async def run_search(
    search_request: SearchRequest,
    response: Response,
    session_factory: Callable,
    service_factory: Callable,
) -> SearchResponse:
    """Resolve a search off the event loop, abandoning it after the request timeout"""
    start_time = time.time()
    cancel_event = threading.Event()
    loop = asyncio.get_running_loop()
    future = loop.run_in_executor(
        None,
        functools.partial(_resolve_in_session, session_factory, service_factory, search_request, cancel_event),
    )

    try:
        outcome = await asyncio.wait_for(future, timeout=settings.request_timeout_s)
    except asyncio.TimeoutError:
        # the worker stops at its next checkpoint and nothing is written for it
        cancel_event.set()
        logger.warning(f"Search timed out after {settings.request_timeout_s}s: q='{search_request.q[:50]}'")
        raise SearchCancelled("timeout")

    processing_time = round((time.time() - start_time) * 1000, 2)  # ms
    response.headers["X-Search-Debug"] = (
        f"took={processing_time}ms, results={len(outcome.results)}, fallback={outcome.used_fallback}"
    )
    logger.info(
        f"Search '{search_request.q[:50]}' -> {outcome.total} results "
        f"(type={outcome.type}, city={outcome.city}, fallback={outcome.used_fallback}) in {processing_time}ms"
    )
    return build_search_response(outcome)


async def _read_json_object(request: Request) -> Dict[str, Any]:
    """JSON body as a dict; anything else counts as an empty body"""
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}
    return payload if isinstance(payload, dict) else {}


@router.get("/search", response_model=SearchResponse)
async def search_get(
    request: Request,
    response: Response,
    session_factory: Callable = Depends(get_session_factory),
    service_factory: Callable = Depends(get_search_service_factory),
):
    """Search subjects with parameters taken from the query string"""
    search_request = SearchRequest.model_validate(dict(request.query_params))
    return await run_search(search_request, response, session_factory, service_factory)


@router.post("/search", response_model=SearchResponse)
async def search_post(
    request: Request,
    response: Response,
    session_factory: Callable = Depends(get_session_factory),
    service_factory: Callable = Depends(get_search_service_factory),
):
    """Search subjects with parameters taken from a JSON body"""
    search_request = SearchRequest.model_validate(await _read_json_object(request))
    return await run_search(search_request, response, session_factory, service_factory)


@router.get("/parse", response_model=ParseResponse)
async def parse_query(q: str = Query("", max_length=500, description="Text to tokenize")):
    """Show how the tokenizer reads a request, without touching the catalog"""
    parsed = create_query_parser().parse(q)
    return ParseResponse(input=q, query=parsed.query, type=parsed.type, city=parsed.city)


@router.get("/parse/lexicon")
async def get_lexicon_stats():
    """Sizes of the loaded lexicon tables for debugging"""
    lexicon = get_lexicon()
    return {
        "tables": lexicon.stats(),
        "categories": list(lexicon.category_groups),
        "filter_categories": list(lexicon.category_expansion),
    }
