from fastapi import FastAPI, APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware
import asyncio
import logging
from typing import List, Literal, Optional
from datetime import datetime, timezone

import numpy as np

from .config import Settings
from .mock_engine import CandidateGenerator, MockPredictor, make_rng, prediction_record
from .models import (
    Candidate, DatasetEntry, DatasetPage, DatasetQuery, DatasetSortField, GenerateRequest,
    GenerateResponse, Material, MaterialCreate, ParsedStructure, Prediction, PredictionResult,
    PredictRequest, StructureParseRequest, UserCreate, UserPublic,
)
from .storage import DuplicateUsernameError, MemStorage
from .structure_parsing import parse_structure

_env_settings = Settings.from_env()
logging.basicConfig(level=_env_settings.log_level, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

api_router = APIRouter(prefix="/api")

# path prefix -> error message for request validation failures
VALIDATION_MESSAGES = [
    ("/api/materials", "Invalid material data"),
    ("/api/dataset", "Invalid query parameters"),
]
DEFAULT_VALIDATION_MESSAGE = "Invalid request"

# fields the upload form may leave blank and the raw payload can supply
DERIVABLE_MATERIAL_FIELDS = ("formula", "lattice_parameters", "atomic_positions", "space_group")


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_storage(request: Request) -> MemStorage:
    return request.app.state.storage


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_predictor(request: Request) -> MockPredictor:
    return request.app.state.predictor


def get_generator(request: Request) -> CandidateGenerator:
    return request.app.state.generator


# =============================================================================
# MATERIAL ROUTES
# =============================================================================

def fill_from_raw_data(data: MaterialCreate) -> MaterialCreate:
    missing = [f for f in DERIVABLE_MATERIAL_FIELDS if getattr(data, f) is None]
    if not missing:
        return data
    try:
        parsed = parse_structure(data.raw_data, data.format)
    except ValueError as e:
        logger.info(f"Could not read {data.format} payload for '{data.name}': {e}")
        return data
    updates = {f: getattr(parsed, f) for f in missing if getattr(parsed, f) is not None}
    return data.model_copy(update=updates)


@api_router.get("/materials", response_model=List[Material])
async def get_materials(storage: MemStorage = Depends(get_storage)):
    return storage.get_materials()

@api_router.get("/materials/{material_id}", response_model=Material)
async def get_material(material_id: str, storage: MemStorage = Depends(get_storage)):
    material = storage.get_material(material_id)
    if not material:
        raise HTTPException(status_code=404, detail="Material not found")
    return material

@api_router.post("/materials", status_code=201, response_model=Material)
async def create_material(data: MaterialCreate, storage: MemStorage = Depends(get_storage)):
    material = storage.create_material(fill_from_raw_data(data))
    logger.info(f"Created material {material.id} ({material.format}, formula={material.formula})")
    return material

@api_router.delete("/materials/{material_id}", status_code=204)
async def delete_material(material_id: str, storage: MemStorage = Depends(get_storage)):
    if not storage.delete_material(material_id):
        raise HTTPException(status_code=404, detail="Material not found")
    logger.info(f"Deleted material {material_id}")
    return Response(status_code=204)


# =============================================================================
# PREDICTION ROUTES
# =============================================================================

@api_router.post("/predict", response_model=PredictionResult)
async def run_prediction(
    req: PredictRequest,
    storage: MemStorage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
    predictor: MockPredictor = Depends(get_predictor),
):
    material = storage.get_material(req.material_id)
    if not material:
        raise HTTPException(status_code=404, detail="Material not found")

    # stands in for model inference time
    await asyncio.sleep(settings.prediction_delay)

    result = predictor.predict(material.id, material.name)
    prediction = storage.create_prediction(prediction_record(result))
    logger.info(f"Stored prediction {prediction.id} for material {material.id}")
    return result

@api_router.get("/predictions/{material_id}", response_model=List[Prediction])
async def get_predictions(material_id: str, storage: MemStorage = Depends(get_storage)):
    return storage.get_predictions_by_material(material_id)


# =============================================================================
# GENERATION ROUTES
# =============================================================================

@api_router.post("/generate", response_model=GenerateResponse)
async def run_generation(
    req: GenerateRequest,
    storage: MemStorage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
    generator: CandidateGenerator = Depends(get_generator),
):
    await asyncio.sleep(settings.generation_delay)
    candidates = storage.create_candidates(generator.generate(req))
    return GenerateResponse(candidates=candidates)

@api_router.get("/candidates", response_model=List[Candidate])
async def get_candidates(storage: MemStorage = Depends(get_storage)):
    return storage.get_candidates()


# =============================================================================
# DATASET ROUTES
# =============================================================================

@api_router.get("/dataset", response_model=DatasetPage)
async def get_dataset(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    category: Optional[str] = None,
    search: Optional[str] = None,
    min_energy_density: Optional[float] = Query(None, alias="minEnergyDensity"),
    max_energy_density: Optional[float] = Query(None, alias="maxEnergyDensity"),
    sort_by: Optional[DatasetSortField] = Query(None, alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    storage: MemStorage = Depends(get_storage),
):
    query = DatasetQuery(
        page=page, limit=limit, category=category, search=search,
        min_energy_density=min_energy_density, max_energy_density=max_energy_density,
        sort_by=sort_by, sort_order=sort_order,
    )
    entries, total = storage.get_dataset_entries(query)
    return DatasetPage(entries=entries, total=total)

@api_router.get("/dataset/{entry_id}", response_model=DatasetEntry)
async def get_dataset_entry(entry_id: str, storage: MemStorage = Depends(get_storage)):
    entry = storage.get_dataset_entry(entry_id)
    if not entry:
        raise HTTPException(status_code=404, detail="Entry not found")
    return entry


# =============================================================================
# STRUCTURE & USER ROUTES
# =============================================================================

@api_router.post("/structures/parse", response_model=ParsedStructure)
async def parse_structure_payload(req: StructureParseRequest):
    try:
        return parse_structure(req.content, req.format, req.filename)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Could not parse structure: {e}")

@api_router.post("/users", status_code=201, response_model=UserPublic)
async def register_user(data: UserCreate, storage: MemStorage = Depends(get_storage)):
    try:
        user = storage.create_user(data)
    except DuplicateUsernameError:
        raise HTTPException(status_code=409, detail="Username already exists")
    return UserPublic(id=user.id, username=user.username)

@api_router.get("/users/{user_id}", response_model=UserPublic)
async def get_user(user_id: str, storage: MemStorage = Depends(get_storage)):
    user = storage.get_user(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return UserPublic(id=user.id, username=user.username)


# =============================================================================
# HEALTH
# =============================================================================

@api_router.get("/health")
async def health():
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


# =============================================================================
# ERROR HANDLERS
# =============================================================================

def validation_message(path: str) -> str:
    for prefix, message in VALIDATION_MESSAGES:
        if path.startswith(prefix):
            return message
    return DEFAULT_VALIDATION_MESSAGE


async def handle_validation_error(request: Request, exc: RequestValidationError):
    details = [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": validation_message(request.url.path), "details": details})


async def handle_http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


async def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# =============================================================================
# APP FACTORY
# =============================================================================

def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[MemStorage] = None,
    rng: Optional[np.random.Generator] = None,
) -> FastAPI:
    settings = settings or _env_settings
    rng = rng if rng is not None else make_rng(settings.random_seed)

    app = FastAPI(title="Battery Materials Explorer API")
    app.state.settings = settings
    app.state.storage = storage if storage is not None else MemStorage(seed=settings.seed_dataset)
    app.state.predictor = MockPredictor(rng)
    app.state.generator = CandidateGenerator(rng)

    app.include_router(api_router)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.add_middleware(
        CORSMiddleware,
        allow_credentials=True,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    async def startup_event():
        store = app.state.storage
        logger.info(
            f"Store ready: {len(store.dataset_entries)} dataset entries, "
            f"{len(store.materials)} materials"
        )

    return app


app = create_app()
