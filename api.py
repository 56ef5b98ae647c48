"""
FastAPI web service for streamsom with observability
"""

import os
import time
import uuid
from typing import Any, Dict, List, Literal, Optional, Union

import numpy as np
import structlog
import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import Response
from pydantic import BaseModel, Field
from starlette.middleware.base import BaseHTTPMiddleware

from streamsom import (
    __version__,
    BasicSOM,
    BatchLearning,
    ClassicLearning,
    DSOM,
    DistanceMetric,
    InitStrategy,
    PLSOM,
    SelfOrganizingMap,
    SOMConfig,
    StreamART2A,
    StreamART2AWithConceptDrift,
    StreamingSOM,
    Topology,
    UbiSOM,
    compute_statistics,
    setup_logging,
    trace_operation,
    get_metrics,
    get_health_status,
    RequestTracingMiddleware,
)
from streamsom.export import to_dataframe
from streamsom.observability import (
    CONTENT_TYPE_LATEST,
    log_bmu_request,
    log_model_created,
    log_request_metrics,
    update_active_models_count,
)


# Pydantic models for API requests/responses
class SOMTrainingConfig(BaseModel):
    """Map shape and offline learning parameters"""

    width: int = Field(default=10, ge=1, le=1000)
    height: int = Field(default=10, ge=1, le=1000)
    topology: Topology = Topology.HEXAGONAL
    distance_metric: DistanceMetric = DistanceMetric.EUCLIDEAN
    init_strategy: InitStrategy = InitStrategy.RANDOM
    learning: Literal["classic", "batch"] = "classic"
    i_alpha: float = Field(default=0.1, ge=0, le=1)
    f_alpha: float = Field(default=0.01, ge=0, le=1)
    i_sigma: Optional[float] = Field(default=None, gt=0)
    f_sigma: float = Field(default=0.1, ge=0)
    order_epochs: int = Field(default=10, ge=0, le=1000)
    fine_tune_epochs: int = Field(default=10, ge=0, le=1000)
    shuffle: bool = False
    seed: Optional[int] = Field(default=None, ge=0)


class TrainingRequest(BaseModel):
    """Request to train a SOM"""

    data: List[List[float]] = Field(description="Training data as list of samples")
    config: SOMTrainingConfig = Field(default_factory=SOMTrainingConfig)


class TrainingResponse(BaseModel):
    """Response from SOM training"""

    model_id: str
    training_info: Dict[str, Any]
    quantization_error: float
    topographic_error: float
    message: str


class DataRequest(BaseModel):
    """Batch of input vectors"""

    data: List[List[float]]


class BMUResponse(BaseModel):
    """Best matching units of a batch of inputs"""

    model_id: str
    indices: List[int]
    coordinates: List[List[int]]


class StreamRequest(BaseModel):
    """Request to create a streaming model"""

    model: Literal["ubisom", "dsom", "plsom", "art"]
    dimensionality: int = Field(ge=1)
    width: int = Field(default=10, ge=1, le=1000)
    height: int = Field(default=10, ge=1, le=1000)
    topology: Topology = Topology.HEXAGONAL
    distance_metric: DistanceMetric = DistanceMetric.EUCLIDEAN
    seed: Optional[int] = Field(default=None, ge=0)
    concept_drift: bool = False
    params: Dict[str, Any] = Field(
        default_factory=dict, description="Model-specific constructor parameters"
    )


class StreamResponse(BaseModel):
    """State of a streaming model"""

    model_id: str
    model: str
    samples_seen: int
    summary: Dict[str, Any]


class ModelInfo(BaseModel):
    """Information about a stored model"""

    model_id: str
    kind: str
    info: Dict[str, Any]
    created_at: Optional[str] = None


StoredModel = Union[SelfOrganizingMap, StreamART2A]

# Global storage for models (in production, use Redis/database)
models_storage: Dict[str, StoredModel] = {}

# Initialize observability
setup_logging(
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    json_format=os.getenv("LOG_FORMAT", "json").lower() == "json",
)

logger = structlog.get_logger()

app = FastAPI(
    title="streamsom API",
    description="A REST API for offline and streaming Self-Organizing Maps",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        correlation_id = getattr(request.state, "correlation_id", "unknown")
        request.state.correlation_id = correlation_id

        response = await call_next(request)

        duration = time.time() - start_time
        log_request_metrics(
            method=request.method,
            endpoint=request.url.path,
            status_code=response.status_code,
            duration=duration,
        )

        logger.info(
            "HTTP request completed",
            method=request.method,
            url=str(request.url),
            status_code=response.status_code,
            duration_seconds=duration,
            correlation_id=correlation_id,
        )

        return response


app.add_middleware(RequestTracingMiddleware)
app.add_middleware(MetricsMiddleware)


def register(model: StoredModel, kind: str) -> str:
    model_id = str(uuid.uuid4())
    models_storage[model_id] = model
    log_model_created(kind)
    update_active_models_count(len(models_storage))
    return model_id


def get_model(model_id: str) -> StoredModel:
    if model_id not in models_storage:
        raise HTTPException(status_code=404, detail="Model not found")
    return models_storage[model_id]


def get_som(model_id: str) -> SelfOrganizingMap:
    model = get_model(model_id)
    if not isinstance(model, SelfOrganizingMap):
        raise HTTPException(status_code=400, detail="Model is not a SOM")
    return model


def as_data(rows: List[List[float]]) -> np.ndarray:
    try:
        data = np.array(rows, dtype=np.float64)
    except ValueError:
        raise HTTPException(status_code=400, detail="Rows must have equal length")
    if data.size == 0:
        raise HTTPException(status_code=400, detail="Empty data provided")
    if data.ndim != 2:
        raise HTTPException(status_code=400, detail="Data must be 2-dimensional")
    return data


def describe(model: StoredModel) -> Dict[str, Any]:
    if isinstance(model, StreamART2A):
        summary = {
            "codebook_size": len(model),
            "vigilance": model.vigilance,
            "learn_input_count": model.learn_input_count,
            "input_manifold": model.input_manifold,
        }
        if isinstance(model, StreamART2AWithConceptDrift):
            summary["quantization_error"] = model.current_quantization_error
        return summary

    info = model.get_info()
    info["shape"] = list(info["shape"])
    if isinstance(model, UbiSOM):
        info["state"] = model.state.phase.value
        info["drift"] = model.current_drift
    return info


def samples_seen(model: StoredModel) -> int:
    if isinstance(model, StreamART2A):
        return model.learn_input_count
    return model.metadata["total_samples_seen"]


@app.get("/", response_model=Dict[str, str])
async def root():
    """Root endpoint"""
    return {"message": "streamsom API", "version": __version__, "docs": "/docs"}


@app.get("/health")
async def health_check():
    """Health check endpoint with system status"""
    try:
        health_status = get_health_status()
        health_status["models_loaded"] = len(models_storage)
        health_status["version"] = __version__

        update_active_models_count(len(models_storage))

        logger.info("Health check requested", status=health_status["status"])
        return health_status

    except Exception as e:
        logger.error("Health check failed", error=str(e))
        return {
            "status": "unhealthy",
            "error": str(e),
            "models_loaded": len(models_storage),
        }


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint"""
    logger.debug("Metrics requested")
    return Response(content=get_metrics(), media_type=CONTENT_TYPE_LATEST)


@app.post("/train", response_model=TrainingResponse)
async def train_som(request: TrainingRequest):
    """Train a new BasicSOM offline"""
    config = request.config

    with trace_operation(
        "som_training",
        width=config.width,
        height=config.height,
        data_shape=f"{len(request.data)}x{len(request.data[0]) if request.data else 0}",
    ) as correlation_id:
        try:
            data = as_data(request.data)

            som_config = SOMConfig(
                width=config.width,
                height=config.height,
                dimensionality=data.shape[1],
                topology=config.topology,
                distance_metric=config.distance_metric,
                init_strategy=config.init_strategy,
                seed=config.seed,
            )
            som = BasicSOM.from_config(
                som_config,
                data if config.init_strategy != InitStrategy.RANDOM else None,
            )

            i_sigma = config.i_sigma or max(config.width, config.height) / 2.0
            if config.learning == "batch":
                learner = BatchLearning(
                    i_sigma, config.f_sigma, config.order_epochs, config.fine_tune_epochs
                )
            else:
                learner = ClassicLearning(
                    config.i_alpha,
                    config.f_alpha,
                    i_sigma,
                    config.f_sigma,
                    config.order_epochs,
                    config.fine_tune_epochs,
                    shuffle=config.shuffle,
                    seed=config.seed,
                )
            learner.train(som, data)

            stats = compute_statistics(som, data)
            model_id = register(som, "basic_som")

            logger.info(
                "SOM training completed successfully",
                model_id=model_id,
                correlation_id=correlation_id,
                quantization_error=stats.quantization_error,
                topographic_error=stats.topographic_error,
                data_samples=data.shape[0],
            )

            return TrainingResponse(
                model_id=model_id,
                training_info=describe(som),
                quantization_error=stats.quantization_error,
                topographic_error=stats.topographic_error,
                message=f"SOM trained successfully with {data.shape[0]} samples",
            )

        except HTTPException:
            raise
        except ValueError as e:
            logger.error(
                "Training failed - invalid data",
                error=str(e),
                correlation_id=correlation_id,
            )
            raise HTTPException(status_code=400, detail=f"Invalid data: {str(e)}")
        except Exception as e:
            logger.error(
                "Training failed - unexpected error",
                error=str(e),
                correlation_id=correlation_id,
            )
            raise HTTPException(status_code=500, detail=f"Training failed: {str(e)}")


@app.post("/models/{model_id}/bmu", response_model=BMUResponse)
async def best_matching_units(model_id: str, request: DataRequest):
    """Best matching unit of every input"""
    som = get_som(model_id)
    data = as_data(request.data)
    log_bmu_request()

    try:
        bmus = [som.best_matching_unit_for(x) for x in data]
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return BMUResponse(
        model_id=model_id,
        indices=[bmu.index for bmu in bmus],
        coordinates=[[bmu.x, bmu.y] for bmu in bmus],
    )


@app.get("/models/{model_id}/export")
async def export_model(model_id: str):
    """Prototypes of a SOM as CSV"""
    som = get_som(model_id)
    content = to_dataframe(som).to_csv(index=False)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{model_id}.csv"'},
    )


@app.get("/models", response_model=List[str])
async def list_models():
    """List all available models"""
    return list(models_storage.keys())


@app.get("/models/{model_id}", response_model=ModelInfo)
async def get_model_info(model_id: str):
    """Get information about a specific model"""
    model = get_model(model_id)
    created_at = None
    if isinstance(model, SelfOrganizingMap):
        created_at = model.metadata["creation_time"]

    return ModelInfo(
        model_id=model_id,
        kind=type(model).__name__,
        info=describe(model),
        created_at=created_at,
    )


@app.delete("/models/{model_id}")
async def delete_model(model_id: str):
    """Delete a specific model"""
    get_model(model_id)
    del models_storage[model_id]
    update_active_models_count(len(models_storage))
    return {"message": f"Model {model_id} deleted successfully"}


def build_stream(request: StreamRequest) -> StoredModel:
    if request.model == "art":
        cls = StreamART2AWithConceptDrift if request.concept_drift else StreamART2A
        return cls(request.dimensionality, **request.params)

    som_classes = {"ubisom": UbiSOM, "dsom": DSOM, "plsom": PLSOM}
    return som_classes[request.model](
        request.width,
        request.height,
        request.dimensionality,
        lattice=request.topology,
        metric_distance=request.distance_metric,
        seed=request.seed,
        **request.params,
    )


@app.post("/streams", response_model=StreamResponse)
async def create_stream(request: StreamRequest):
    """Create a streaming model"""
    try:
        model = build_stream(request)
    except (ValueError, TypeError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid parameters: {str(e)}")

    model_id = register(model, request.model)
    logger.info("Streaming model created", model_id=model_id, model=request.model)

    return StreamResponse(
        model_id=model_id,
        model=request.model,
        samples_seen=0,
        summary=describe(model),
    )


@app.post("/streams/{model_id}/learn", response_model=StreamResponse)
async def learn_stream(model_id: str, request: DataRequest):
    """Feed inputs, in order, to a streaming model"""
    model = get_model(model_id)
    if not isinstance(model, (StreamingSOM, StreamART2A)):
        raise HTTPException(status_code=400, detail="Model is not a streaming model")

    data = as_data(request.data)
    try:
        for x in data:
            model.learn(x)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return StreamResponse(
        model_id=model_id,
        model=type(model).__name__,
        samples_seen=samples_seen(model),
        summary=describe(model),
    )


@app.get("/streams/{model_id}/codebook")
async def stream_codebook(
    model_id: str, ti: Optional[int] = None, tf: Optional[int] = None
):
    """Micro-categories last touched within [ti, tf]"""
    model = get_model(model_id)
    if not isinstance(model, StreamART2A):
        raise HTTPException(status_code=400, detail="Model is not a StreamART2A")

    ti = 0 if ti is None else ti
    tf = model.learn_input_count if tf is None else tf
    try:
        categories = model.get_codebook_between(ti, tf)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "model_id": model_id,
        "ti": ti,
        "tf": tf,
        "categories": [c.to_dict() for c in categories],
    }


def main():
    """Run the FastAPI server"""
    port = int(os.getenv("PORT", 8000))
    uvicorn.run("api:app", host="0.0.0.0", port=port, log_level="info")


if __name__ == "__main__":
    main()
