"""Layout randomization API."""
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
from typing import List

from plate_randomizer.services import LayoutService
from plate_randomizer.models import (
    RandomizationAlgorithm, RandomizationConfig, RandomizationResult, Sample,
    SolveResult, SolveStatus, WellPosition
)
from plate_randomizer.solver.constraints import get_constraint_explanation

router = APIRouter()
layout_service = LayoutService()


class RandomizeRequest(BaseModel):
    """Request for layout randomization."""
    samples: List[Sample]
    config: RandomizationConfig


class SwapRequest(BaseModel):
    """Request for swapping two wells."""
    result: RandomizationResult
    from_position: WellPosition
    to_position: WellPosition


class RerandomizeRequest(BaseModel):
    """Request for re-randomizing one plate."""
    result: RandomizationResult
    plate_index: int
    algorithm: RandomizationAlgorithm = RandomizationAlgorithm.BALANCED


class ValidateRequest(BaseModel):
    """Request for layout validation."""
    result: RandomizationResult
    config: RandomizationConfig


@router.post("/randomize", response_model=SolveResult)
async def randomize_layout(request: RandomizeRequest):
    """
    Randomize samples onto plates.
    
    Balances covariate groups across plates and rows and keeps
    repeated-measures subjects on one plate.
    """
    result = layout_service.generate_layout(
        samples=request.samples,
        config=request.config
    )
    if result.status == SolveStatus.FAILED:
        raise HTTPException(status_code=422, detail=result.message)
    return result


@router.put("/swap", response_model=RandomizationResult)
async def swap_wells(request: SwapRequest):
    """
    Swap two wells, within or across plates.
    """
    try:
        return layout_service.swap_wells(
            result=request.result,
            from_position=request.from_position,
            to_position=request.to_position
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.post("/rerandomize", response_model=RandomizationResult)
async def rerandomize_plate(request: RerandomizeRequest):
    """
    Shuffle one plate's samples, within rows for balanced layouts.
    """
    try:
        return layout_service.rerandomize_plate(
            result=request.result,
            plate_index=request.plate_index,
            algorithm=request.algorithm
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.post("/validate")
async def validate_layout(request: ValidateRequest):
    """
    Validate a layout against the randomization constraints.
    
    Each broken constraint comes with a short explanation.
    """
    violations = layout_service.validate_layout(request.result, request.config)
    broken = sorted({v.constraint_name for v in violations})
    return {
        "valid": len([v for v in violations if v.severity == "error"]) == 0,
        "violations": violations,
        "explanations": {name: get_constraint_explanation(name).strip() for name in broken}
    }
