"""Mock property prediction and candidate generation.

Nothing here is a physical model. Values are drawn uniformly from fixed ranges
that look plausible for battery materials, and the physics-validation flags are
independent coin flips: a material can fail "charge neutrality" while every
headline number looks ordinary.
"""
import logging
from typing import List, Optional

import numpy as np

from .models import (
    CandidateCreate, CandidateProperties, Descriptors, GenerateRequest, MolecularStructure,
    PhysicsValidation, PredictionCreate, PredictionResult, PropertyUncertainty,
)
from .reference_data import DEFAULT_ELEMENTS, FORMULA_TEMPLATES, FormulaTemplate

logger = logging.getLogger(__name__)

# property -> (low, high) of the uniform draw
HEADLINE_RANGES = {
    "energy_density": (150.0, 350.0),     # Wh/kg
    "voltage_window": (2.5, 4.5),         # V
    "ionic_conductivity": (0.0, 0.01),    # S/cm
    "thermal_stability": (400.0, 600.0),  # K
    "cycle_life": (500, 2500),            # cycles, integer
}

# max uncertainty as a fraction of the headline value
UNCERTAINTY_FRACTIONS = {
    "energy_density": 0.05,
    "voltage_window": 0.03,
    "ionic_conductivity": 0.10,
    "thermal_stability": 0.04,
    "cycle_life": 0.08,
}

DESCRIPTOR_RANGES = {
    "band_gap": (1.5, 4.5),             # eV
    "formation_energy": (-2.0, -1.0),   # eV/atom
    "ionic_radius": (0.5, 1.0),         # angstrom
    "electronegativity": (1.5, 3.5),    # Pauling
    "density": (3.0, 7.0),              # g/cm3
}

# probability that each flag comes back true
VALIDATION_PASS_RATES = {
    "charge_neutrality": 0.9,
    "energy_conservation": 0.9,
    "thermodynamic_stability": 0.8,
    "structural_integrity": 0.85,
}

DEFAULT_TARGET_ENERGY_DENSITY = 200.0
DEFAULT_TARGET_VOLTAGE = 3.5
ENERGY_SPREAD = (0.8, 1.2)
VOLTAGE_SPREAD = (0.85, 1.15)
SCORE_RANGE = (0.6, 1.0)


def make_rng(seed: Optional[int] = None) -> np.random.Generator:
    return np.random.default_rng(seed)


# =============================================================================
# PREDICTION
# =============================================================================

class MockPredictor:
    def __init__(self, rng: Optional[np.random.Generator] = None):
        self.rng = rng if rng is not None else make_rng()

    def _uniform(self, bounds) -> float:
        low, high = bounds
        return float(self.rng.uniform(low, high))

    def predict(self, material_id: str, material_name: str) -> PredictionResult:
        headline = {
            name: self._uniform(bounds)
            for name, bounds in HEADLINE_RANGES.items() if name != "cycle_life"
        }
        low, high = HEADLINE_RANGES["cycle_life"]
        headline["cycle_life"] = int(self.rng.integers(low, high))

        uncertainty = {
            name: float(headline[name] * fraction * self.rng.random())
            for name, fraction in UNCERTAINTY_FRACTIONS.items()
        }
        descriptors = {name: self._uniform(bounds) for name, bounds in DESCRIPTOR_RANGES.items()}
        validation = {name: bool(self.rng.random() < rate) for name, rate in VALIDATION_PASS_RATES.items()}

        return PredictionResult(
            material_id=material_id,
            material_name=material_name,
            **headline,
            uncertainty=PropertyUncertainty(**uncertainty),
            descriptors=Descriptors(**descriptors),
            physics_validation=PhysicsValidation(**validation),
        )


def prediction_record(result: PredictionResult) -> PredictionCreate:
    return PredictionCreate(**result.model_dump(exclude={"material_name"}))


# =============================================================================
# CANDIDATE GENERATION
# =============================================================================

def fill_template(template: FormulaTemplate, elements: List[str]) -> str:
    """Fill template slots in order, wrapping when there are fewer elements than slots."""
    if not elements:
        raise ValueError("no elements to fill the formula template")
    slots = [elements[i % len(elements)] for i in range(template.arity)]
    return template.pattern.format(*slots)


class CandidateGenerator:
    def __init__(self, rng: Optional[np.random.Generator] = None):
        self.rng = rng if rng is not None else make_rng()

    def templates_for(self, max_atoms: Optional[int]) -> List[FormulaTemplate]:
        if max_atoms is None:
            return list(FORMULA_TEMPLATES)
        templates = [t for t in FORMULA_TEMPLATES if t.atoms <= max_atoms]
        if not templates:
            raise ValueError(f"no formula template fits within {max_atoms} atoms")
        return templates

    def formulas(self, count: int, elements: List[str], max_atoms: Optional[int] = None) -> List[str]:
        templates = self.templates_for(max_atoms)
        formulas = []
        for _ in range(count):
            shuffled = [str(el) for el in self.rng.permutation(elements)]
            template = templates[int(self.rng.integers(len(templates)))]
            formulas.append(fill_template(template, shuffled))
        return formulas

    def generate(self, req: GenerateRequest) -> List[CandidateCreate]:
        constraints = req.constraints
        elements = constraints.allowed_elements() if constraints else list(DEFAULT_ELEMENTS)
        max_atoms = constraints.max_atoms if constraints else None
        space_groups = (constraints.space_groups or []) if constraints else []

        target_energy = req.target_energy_density or DEFAULT_TARGET_ENERGY_DENSITY
        target_voltage = req.target_voltage or DEFAULT_TARGET_VOLTAGE

        candidates = []
        for formula in self.formulas(req.count, elements, max_atoms):
            structure = None
            if space_groups:
                structure = MolecularStructure(space_group=space_groups[int(self.rng.integers(len(space_groups)))])
            candidates.append(CandidateCreate(
                formula=formula,
                parent_material_id=None,
                structure=structure,
                predicted_properties=CandidateProperties(
                    energy_density=float(target_energy * self.rng.uniform(*ENERGY_SPREAD)),
                    voltage=float(target_voltage * self.rng.uniform(*VOLTAGE_SPREAD)),
                    conductivity=float(self.rng.uniform(*HEADLINE_RANGES["ionic_conductivity"])),
                    stability=float(self.rng.uniform(*HEADLINE_RANGES["thermal_stability"])),
                ),
                score=float(self.rng.uniform(*SCORE_RANGE)),
            ))

        candidates.sort(key=lambda c: c.score, reverse=True)
        logger.info(f"Generated {len(candidates)} candidates from {len(elements)} elements")
        return candidates
