# deckshare/routers/decks.py
# FastAPI router for the deck registry and deck images

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from deckshare.config import get_settings
from deckshare.middleware.error_handler import (
    ImageNotReadyError,
    NotFoundError,
    RenderFailedError,
    ValidationError,
)
from deckshare.routers.client import client_address
from deckshare.routers.views import get_views_service
from deckshare.schemas.deck import DeckOut, DeckRefOut, EnsureDeckRequest, ViewRecorded
from deckshare.services.deck_service import DeckService, get_deck_service
from deckshare.services.views_service import ViewsService


router = APIRouter(prefix="/decks", tags=["Decks"])

# Deck images are immutable for a given version
IMAGE_CACHE_CONTROL = "public, max-age=86400"


def get_service() -> DeckService:
    return get_deck_service()


def _png(image: bytes) -> Response:
    return Response(content=image, media_type="image/png", headers={"Cache-Control": IMAGE_CACHE_CONTROL})


@router.post("/ensure", response_model=DeckRefOut)
async def ensure_deck(payload: EnsureDeckRequest, service: DeckService = Depends(get_service)) -> DeckRefOut:
    deck = await service.ensure_deck(payload.deckcode_or_shortid)
    if deck is None:
        raise ValidationError("Not a known short id or a valid deck code")
    return DeckRefOut.model_validate(deck)


@router.get("/resolve/{value}", response_model=DeckRefOut)
async def resolve_deck(value: str, service: DeckService = Depends(get_service)) -> DeckRefOut:
    deck = await service.resolve_deck(value)
    if deck is None:
        raise NotFoundError("Deck not found", details={"value": value})
    return DeckRefOut.model_validate(deck)


@router.get("/{deckcode}", response_model=DeckOut)
async def get_deck(deckcode: str, service: DeckService = Depends(get_service)) -> DeckOut:
    record = await service.get_deck(deckcode)
    if record is None:
        raise NotFoundError("Deck not found", details={"deckcode": deckcode})
    return DeckOut(
        shortid=record.shortid,
        deckcode=record.deckcode,
        image_version=record.image_version,
        image_rendering=record.image_rendering,
        has_image=record.image is not None,
        image_fresh=record.fresh_image(get_settings().IMAGE_VERSION) is not None,
    )


@router.get("/{deckcode}/image")
async def get_deck_image(deckcode: str, service: DeckService = Depends(get_service)) -> Response:
    image = await service.get_deck_image(deckcode)
    if image is None:
        raise ImageNotReadyError(deckcode)
    return _png(image)


@router.post("/{deckcode}/render")
async def render_deck_image(deckcode: str, service: DeckService = Depends(get_service)) -> Response:
    image = await service.render_deck_image(deckcode)
    if image is None:
        raise RenderFailedError(deckcode)
    return _png(image)


@router.post("/{deckcode}/views", response_model=ViewRecorded)
async def record_view(
    deckcode: str,
    request: Request,
    views: ViewsService = Depends(get_views_service),
) -> ViewRecorded:
    counted = await views.record_view(deckcode, client_address(request))
    return ViewRecorded(deckcode=deckcode, counted=counted)
