from fastapi import APIRouter, Depends, Form, HTTPException, Request, UploadFile

from tradeintel.dependencies import get_orchestrator
from tradeintel.document_pipeline.loader import coerce_document_type
from tradeintel.document_pipeline.pipeline import PipelineOrchestrator
from tradeintel.errors import ValidationError
from tradeintel.middleware.logging import record_pipeline_runs
from tradeintel.schemas.document import DocumentPayload
from tradeintel.schemas.pipeline import BatchRunError, BatchRunResult, PipelineRun

router = APIRouter()


async def _read_upload(file: UploadFile, orchestrator: PipelineOrchestrator) -> DocumentPayload:
    if not file.filename:
        raise ValidationError("No filename provided")
    content = await file.read()
    return orchestrator.loader.from_bytes(content, file.content_type or None, file.filename)


@router.post("/runs", response_model=PipelineRun)
async def create_run(
    request: Request,
    file: UploadFile,
    document_type: str = Form("general"),
    include_classification: bool = Form(False),
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
) -> PipelineRun:
    """Run an uploaded document through extraction, compliance and optional classification."""
    try:
        doc_type = coerce_document_type(document_type)
        document = await _read_upload(file, orchestrator)
        run = await orchestrator.run(document, doc_type, include_classification)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    record_pipeline_runs(request, [run])
    return run


@router.post("/runs/batch", response_model=BatchRunResult)
async def create_batch_run(
    request: Request,
    files: list[UploadFile],
    document_type: str = Form("general"),
    include_classification: bool = Form(False),
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
) -> BatchRunResult:
    """Run several uploads concurrently; invalid uploads are reported per file."""
    try:
        doc_type = coerce_document_type(document_type)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    documents: list[DocumentPayload] = []
    positions: list[int] = []
    rejected: list[BatchRunError] = []
    for index, file in enumerate(files):
        try:
            documents.append(await _read_upload(file, orchestrator))
            positions.append(index)
        except ValidationError as e:
            rejected.append(BatchRunError(index=index, filename=file.filename, message=str(e)))

    result = await orchestrator.run_batch(documents, doc_type, include_classification)
    record_pipeline_runs(request, result.runs)
    if not rejected:
        return result

    # Report errors against the position of the upload, not of the accepted subset
    errors = rejected + [e.model_copy(update={"index": positions[e.index]}) for e in result.errors]
    return result.model_copy(update={
        "total": result.total + len(rejected),
        "failed": result.failed + len(rejected),
        "errors": sorted(errors, key=lambda e: e.index),
    })
