"""
Catalog endpoints - category browse, search and live category updates
"""

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from sqlalchemy.ext.asyncio import AsyncSession

from digilib.core.backend import Backend, get_backend, get_db
from digilib.core.exceptions import AuthenticationError
from digilib.core.logging_config import logger
from digilib.models import MaterialCategory
from digilib.modules.auth.dependencies import resolve_token
from digilib.schemas.material import CatalogResponse, MaterialResponse, SearchResponse
from digilib.services.catalog import ALL_TYPES, ALL_VALUES, CatalogPage, CatalogService
from digilib.services.change_feed import Subscription


router = APIRouter()

# WebSocket close codes (application range)
WS_CLOSE_UNAUTHORIZED = 4401
WS_CLOSE_UNKNOWN_CATEGORY = 4404


def get_catalog(backend: Backend = Depends(get_backend)) -> CatalogService:
    return CatalogService(backend.repository)


def page_response(page: CatalogPage) -> CatalogResponse:
    return CatalogResponse(
        category=page.category.value,
        items=[MaterialResponse.from_material(m) for m in page.items],
        total=page.total,
        types=page.types,
        subjects=page.subjects,
        semesters=page.semesters,
        filters=page.filters,
    )


@router.get("/general", response_model=CatalogResponse)
async def browse_general(
    type: str = Query(ALL_TYPES),
    db: AsyncSession = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog)
):
    """Approved General materials, optionally narrowed to one type"""
    page = await catalog.browse(db, MaterialCategory.GENERAL, type=type)
    return page_response(page)


@router.get("/academic", response_model=CatalogResponse)
async def browse_academic(
    type: str = Query(ALL_TYPES),
    subject: str = Query(ALL_VALUES),
    semester: str = Query(ALL_VALUES),
    db: AsyncSession = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog)
):
    """Approved Academic materials with type, subject and semester refinements"""
    page = await catalog.browse(db, MaterialCategory.ACADEMIC, type=type, subject=subject, semester=semester)
    return page_response(page)


@router.get("/search", response_model=SearchResponse)
async def search_materials(
    q: str = Query(""),
    db: AsyncSession = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog)
):
    """Search approved materials by title, description, subject or tag"""
    results = await catalog.search(db, q)
    return SearchResponse(
        query=q.strip(),
        items=[MaterialResponse.from_material(m) for m in results],
        total=len(results),
    )


# ==================== LIVE ====================

async def _forward_events(websocket: WebSocket, subscription: Subscription) -> None:
    async for event in subscription:
        await websocket.send_json(event.to_dict())


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        return


@router.websocket("/live/{category}")
async def live_catalog(
    websocket: WebSocket,
    category: str,
    token: Optional[str] = None,
    backend: Backend = Depends(get_backend)
):
    """
    Live category browse.

    Sends {"type": "snapshot", "items": [...]} and then one
    {"type": "added" | "modified" | "removed", "material": {...}} message per
    committed change entering, changing within or leaving the category.
    """
    try:
        material_category = MaterialCategory(category.capitalize())
    except ValueError:
        await websocket.close(code=WS_CLOSE_UNKNOWN_CATEGORY)
        return

    if token:
        try:
            async with backend.session_factory() as db:
                await resolve_token(db, token)
        except AuthenticationError as e:
            logger.log_auth_event(event="live_subscribe", success=False, reason=e.message)
            await websocket.close(code=WS_CLOSE_UNAUTHORIZED)
            return

    await websocket.accept()

    # Subscribe before reading the snapshot so no commit falls between the two
    subscription = backend.repository.subscribe(category=material_category, approved=True)
    tasks = []
    try:
        async with backend.session_factory() as db:
            page = await CatalogService(backend.repository).browse(db, material_category)
        await websocket.send_json({
            "type": "snapshot",
            "category": material_category.value,
            "items": [m.to_dict() for m in page.items],
        })

        tasks = [
            asyncio.create_task(_forward_events(websocket, subscription)),
            asyncio.create_task(_wait_for_disconnect(websocket)),
        ]
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                logger.warning(f"[Live] {material_category.value} stream ended: {task.exception()}")
    except WebSocketDisconnect:
        pass
    finally:
        subscription.cancel()
        for task in tasks:
            task.cancel()
        logger.debug(f"[Live] {material_category.value} subscriber left")
