from datetime import datetime, timezone
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .reference_data import DEFAULT_ELEMENTS, FORMULA_TEMPLATES

StructureFormat = Literal["CIF", "POSCAR", "SMILES", "JSON"]
DatasetSortField = Literal["name", "formula", "energyDensity", "voltageWindow", "ionicConductivity"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ApiModel(BaseModel):
    """Base for every wire model: snake_case attributes, camelCase JSON."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# =============================================================================
# STRUCTURE PAYLOADS
# =============================================================================

class LatticeParameters(ApiModel):
    a: float = Field(gt=0)
    b: float = Field(gt=0)
    c: float = Field(gt=0)
    alpha: float = Field(gt=0, lt=180)
    beta: float = Field(gt=0, lt=180)
    gamma: float = Field(gt=0, lt=180)


class AtomSite(ApiModel):
    element: str
    position: Tuple[float, float, float]
    label: Optional[str] = None


class StructureAtom(ApiModel):
    element: str
    position: Tuple[float, float, float]
    color: Optional[str] = None


class Bond(ApiModel):
    start: int = Field(ge=0)
    end: int = Field(ge=0)
    order: int = Field(1, ge=1, le=3)


class MolecularStructure(ApiModel):
    atoms: List[StructureAtom] = Field(default_factory=list)
    bonds: List[Bond] = Field(default_factory=list)
    lattice: Optional[LatticeParameters] = None
    space_group: Optional[str] = None


# =============================================================================
# MATERIALS
# =============================================================================

class MaterialCreate(ApiModel):
    name: str
    formula: Optional[str] = None
    format: StructureFormat
    raw_data: str
    atomic_positions: Optional[List[AtomSite]] = None
    lattice_parameters: Optional[LatticeParameters] = None
    space_group: Optional[str] = None

    @field_validator("format", mode="before")
    @classmethod
    def normalize_format(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value


class Material(MaterialCreate):
    id: str
    created_at: datetime = Field(default_factory=utcnow)


# =============================================================================
# PREDICTIONS
# =============================================================================

class PropertyUncertainty(ApiModel):
    energy_density: float = Field(ge=0)
    voltage_window: float = Field(ge=0)
    ionic_conductivity: float = Field(ge=0)
    thermal_stability: float = Field(ge=0)
    cycle_life: float = Field(ge=0)


class Descriptors(ApiModel):
    band_gap: float
    formation_energy: float
    ionic_radius: float
    electronegativity: float
    density: float


class PhysicsValidation(ApiModel):
    charge_neutrality: bool
    energy_conservation: bool
    thermodynamic_stability: bool
    structural_integrity: bool


class PredictedProperties(ApiModel):
    energy_density: float
    voltage_window: float
    ionic_conductivity: float
    thermal_stability: float
    cycle_life: int
    uncertainty: PropertyUncertainty
    descriptors: Descriptors
    physics_validation: PhysicsValidation


class PredictionResult(PredictedProperties):
    material_id: str
    material_name: str


class PredictionCreate(PredictedProperties):
    material_id: str


class Prediction(PredictionCreate):
    id: str
    created_at: datetime = Field(default_factory=utcnow)


class PredictRequest(ApiModel):
    material_id: str


# =============================================================================
# CANDIDATES
# =============================================================================

class CandidateProperties(ApiModel):
    energy_density: float
    voltage: float
    conductivity: float
    stability: float


class CandidateCreate(ApiModel):
    parent_material_id: Optional[str] = None
    formula: str
    structure: Optional[MolecularStructure] = None
    predicted_properties: CandidateProperties
    score: float = Field(ge=0, le=1)


class Candidate(CandidateCreate):
    id: str
    created_at: datetime = Field(default_factory=utcnow)


class GenerationConstraints(ApiModel):
    elements: Optional[List[str]] = None
    exclude_elements: Optional[List[str]] = None
    max_atoms: Optional[int] = Field(None, ge=1)
    space_groups: Optional[List[str]] = None

    def allowed_elements(self) -> List[str]:
        pool = self.elements or DEFAULT_ELEMENTS
        excluded = set(self.exclude_elements or [])
        return [el for el in pool if el not in excluded]


class GenerateRequest(ApiModel):
    base_formula: Optional[str] = None
    target_energy_density: Optional[float] = None
    target_voltage: Optional[float] = None
    count: int = Field(10, ge=1, le=50)
    constraints: Optional[GenerationConstraints] = None

    @model_validator(mode="after")
    def check_constraints(self):
        if self.constraints is None:
            return self
        if not self.constraints.allowed_elements():
            raise ValueError("constraints leave no elements to build candidates from")
        smallest = min(t.atoms for t in FORMULA_TEMPLATES)
        if self.constraints.max_atoms is not None and self.constraints.max_atoms < smallest:
            raise ValueError(f"maxAtoms must be at least {smallest}")
        return self


class GenerateResponse(ApiModel):
    candidates: List[Candidate]


# =============================================================================
# DATASET
# =============================================================================

class DatasetEntryCreate(ApiModel):
    material_id: str
    name: str
    formula: str
    category: Optional[str] = None
    space_group: Optional[str] = None
    energy_density: Optional[float] = None
    voltage_window: Optional[float] = None
    ionic_conductivity: Optional[float] = None
    source: Optional[str] = None


class DatasetEntry(DatasetEntryCreate):
    id: str


class DatasetQuery(ApiModel):
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    category: Optional[str] = None
    search: Optional[str] = None
    min_energy_density: Optional[float] = None
    max_energy_density: Optional[float] = None
    sort_by: Optional[DatasetSortField] = None
    sort_order: Literal["asc", "desc"] = "desc"


class DatasetPage(ApiModel):
    entries: List[DatasetEntry]
    total: int


# =============================================================================
# USERS
# =============================================================================

class UserCreate(ApiModel):
    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1)


class User(ApiModel):
    id: str
    username: str
    password_hash: str


class UserPublic(ApiModel):
    id: str
    username: str


# =============================================================================
# STRUCTURE PARSING
# =============================================================================

class StructureParseRequest(ApiModel):
    content: str
    filename: Optional[str] = None
    format: Optional[StructureFormat] = None

    @field_validator("format", mode="before")
    @classmethod
    def normalize_format(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value


class ParsedStructure(ApiModel):
    format: StructureFormat
    formula: Optional[str] = None
    lattice_parameters: Optional[LatticeParameters] = None
    atomic_positions: Optional[List[AtomSite]] = None
    space_group: Optional[str] = None
