"""Transformation endpoints — run a data source through a template deck."""

from typing import Any

from fastapi import APIRouter, Body

from slidesmith.schemas.transform import TransformResult
from slidesmith.services.transformer import run_transformation

router = APIRouter()


@router.post("", response_model=TransformResult)
async def create_transformation(body: dict[str, Any] = Body(...)) -> TransformResult:
    """Generate the destination deck.

    The body is validated by ``run_transformation`` so that every failure,
    malformed requests included, comes back as a ``TransformResult``.
    """
    return await run_transformation(body)
