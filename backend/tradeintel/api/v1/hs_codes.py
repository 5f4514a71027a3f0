from fastapi import APIRouter, Depends, HTTPException

from tradeintel.dependencies import get_orchestrator
from tradeintel.document_pipeline.pipeline import PipelineOrchestrator
from tradeintel.errors import ValidationError
from tradeintel.schemas.pipeline import CodeSuggestionRequest, CodeSuggestionResponse

router = APIRouter()


@router.post("/suggest", response_model=CodeSuggestionResponse)
async def suggest_codes(
    body: CodeSuggestionRequest,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
) -> CodeSuggestionResponse:
    try:
        return await orchestrator.suggest_codes(body.product_description, body.additional_info)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
