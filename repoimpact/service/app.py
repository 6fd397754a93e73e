"""FastAPI application entrypoint for repoimpact service mode."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .. import __version__
from ..impact import BucketThresholds, EffortEstimator
from ..models import AnalysisContext, ComplexityFactors, ImpactedComponent, Requirement
from ..orchestrator import AnalysisRequest, Orchestrator


class FactsRequest(BaseModel):
    path: str


class AnalyzeRequest(BaseModel):
    path: str
    change: str = ""
    requirement: Optional[Dict[str, Any]] = None
    compliance: List[str] = Field(default_factory=list)
    components: Optional[List[Dict[str, Any]]] = None
    overrides: Optional[Dict[str, Any]] = None


class AnalyzeResponse(BaseModel):
    run_id: str
    status_url: str


class RunStatusResponse(BaseModel):
    run_id: str
    status: str
    state: Optional[str] = None
    progress: Optional[str] = None
    completed_phases: List[str] = Field(default_factory=list)
    artifacts: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    facts: Optional[Dict[str, Any]] = None
    impact: Optional[Dict[str, Any]] = None


class Thresholds(BaseModel):
    s: float = 10
    m: float = 25
    l: float = 50


class EstimateRequest(BaseModel):
    components: List[Dict[str, Any]]
    factors: Optional[Dict[str, Any]] = None
    thresholds: Optional[Thresholds] = None


class EstimateResponse(BaseModel):
    score: float
    effort_bucket: str
    plan: Dict[str, Any]


class HealthResponse(BaseModel):
    status: str
    version: str


def _default_orchestrator() -> Orchestrator:
    return Orchestrator()


def _to_request(payload: AnalyzeRequest) -> AnalysisRequest:
    root = Path(payload.path).expanduser()
    if not root.is_dir():
        raise FileNotFoundError(f"Repository root not found: {payload.path}")
    requirement = Requirement.from_dict(payload.requirement) if payload.requirement else None
    components = None
    if payload.components is not None:
        components = [ImpactedComponent.from_dict(item) for item in payload.components]
    return AnalysisRequest(
        root=str(root.resolve()),
        change_text=payload.change,
        requirement=requirement,
        context=AnalysisContext(compliance=list(payload.compliance)),
        components=components,
        overrides=payload.overrides,
    )


def create_app(
    orchestrator_factory: Callable[[], Orchestrator] = _default_orchestrator,
) -> FastAPI:
    """Create the FastAPI application exposing repoimpact operations."""

    app = FastAPI(title="RepoImpact Service", version=__version__)
    # Runs live in the orchestrator's registry, so every request shares one instance.
    shared: Dict[str, Orchestrator] = {}

    async def get_orchestrator() -> Orchestrator:
        if "orchestrator" not in shared:
            shared["orchestrator"] = orchestrator_factory()
        return shared["orchestrator"]

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", version=__version__)

    @app.post("/facts")
    async def facts(
        payload: FactsRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> Dict[str, Any]:
        result = await orchestrator.analyze_facts(Path(payload.path).expanduser())
        return result.to_dict()

    @app.post("/analyze", response_model=AnalyzeResponse, status_code=202)
    async def analyze(
        payload: AnalyzeRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> AnalyzeResponse:
        run_id = orchestrator.start(_to_request(payload))
        return AnalyzeResponse(run_id=run_id, status_url=f"/runs/{run_id}")

    @app.get("/runs/{run_id}", response_model=RunStatusResponse)
    async def run_status(
        run_id: str,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> Any:
        status = orchestrator.status(run_id)
        if status["status"] == "not_found":
            return JSONResponse(status_code=404, content=status)
        return RunStatusResponse(**status)

    @app.post("/estimate", response_model=EstimateResponse)
    async def estimate(payload: EstimateRequest) -> EstimateResponse:
        components = [ImpactedComponent.from_dict(item) for item in payload.components]
        factors = ComplexityFactors.from_dict(payload.factors or {})
        thresholds = payload.thresholds or Thresholds()
        estimator = EffortEstimator(BucketThresholds(s=thresholds.s, m=thresholds.m, l=thresholds.l))
        score = estimator.score(components, factors)
        bucket = estimator.bucket(score)
        return EstimateResponse(
            score=score,
            effort_bucket=bucket.value,
            plan=estimator.generate_plan(bucket).to_dict(),
        )

    @app.exception_handler(FileNotFoundError)
    async def file_not_found_handler(_: Any, exc: FileNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(NotADirectoryError)
    async def not_a_directory_handler(_: Any, exc: NotADirectoryError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(ValueError)
    async def value_error_handler(_: Any, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(RuntimeError)
    async def runtime_error_handler(_: Any, exc: RuntimeError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(host: str = "127.0.0.1", port: int = 8000) -> None:  # pragma: no cover - integration path
    app = create_app()
    uvicorn.run(app, host=host, port=port)
