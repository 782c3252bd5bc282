from typing import NamedTuple


# =============================================================================
# DATASET SEED
# =============================================================================

DATASET_SEED = [
    {
        "material_id": "mp-22526", "name": "Lithium Cobalt Oxide", "formula": "LiCoO2",
        "category": "Lithium-ion", "space_group": "R-3m", "energy_density": 274,
        "voltage_window": 3.9, "ionic_conductivity": 1e-4, "source": "Materials Project"
    },
    {
        "material_id": "mp-19017", "name": "Lithium Iron Phosphate", "formula": "LiFePO4",
        "category": "Lithium-ion", "space_group": "Pnma", "energy_density": 170,
        "voltage_window": 3.4, "ionic_conductivity": 1e-9, "source": "Materials Project"
    },
    {
        "material_id": "mp-18748", "name": "Lithium Manganese Oxide", "formula": "LiMn2O4",
        "category": "Lithium-ion", "space_group": "Fd-3m", "energy_density": 148,
        "voltage_window": 4.1, "ionic_conductivity": 1e-5, "source": "Materials Project"
    },
    {
        "material_id": "mp-35416", "name": "Sodium Vanadium Phosphate", "formula": "Na3V2(PO4)3",
        "category": "Sodium-ion", "space_group": "R-3c", "energy_density": 117,
        "voltage_window": 3.4, "ionic_conductivity": 1e-6, "source": "ICSD"
    },
    {
        "material_id": "mp-29283", "name": "Sodium Iron Fluorophosphate", "formula": "Na2FePO4F",
        "category": "Sodium-ion", "space_group": "Pbcn", "energy_density": 124,
        "voltage_window": 3.0, "ionic_conductivity": 1e-7, "source": "ICSD"
    },
    {
        "material_id": "mp-985583", "name": "Lithium Lanthanum Zirconium Oxide", "formula": "Li7La3Zr2O12",
        "category": "Solid-state", "space_group": "Ia-3d", "energy_density": 0,
        "voltage_window": 5.0, "ionic_conductivity": 1e-3, "source": "Materials Project"
    },
    {
        "material_id": "mp-696114", "name": "Lithium Phosphorus Sulfide", "formula": "Li3PS4",
        "category": "Solid-state", "space_group": "Pnma", "energy_density": 0,
        "voltage_window": 4.5, "ionic_conductivity": 3e-4, "source": "Materials Project"
    },
    {
        "material_id": "mp-1186600", "name": "Lithium Thiophosphate", "formula": "Li6PS5Cl",
        "category": "Solid-state", "space_group": "F-43m", "energy_density": 0,
        "voltage_window": 4.8, "ionic_conductivity": 2e-3, "source": "AFLOW"
    },
    {
        "material_id": "sc-001", "name": "Activated Carbon", "formula": "C",
        "category": "Supercapacitor", "space_group": "P6/mmm", "energy_density": 8,
        "voltage_window": 2.7, "ionic_conductivity": 0.1, "source": "Experimental"
    },
    {
        "material_id": "sc-002", "name": "Manganese Dioxide", "formula": "MnO2",
        "category": "Supercapacitor", "space_group": "I4/m", "energy_density": 15,
        "voltage_window": 1.0, "ionic_conductivity": 1e-4, "source": "Experimental"
    },
    {
        "material_id": "fb-001", "name": "Vanadium Pentoxide", "formula": "V2O5",
        "category": "Flow Battery", "space_group": "Pmmn", "energy_density": 25,
        "voltage_window": 1.6, "ionic_conductivity": 1e-2, "source": "Experimental"
    },
    {
        "material_id": "fb-002", "name": "Zinc Bromide", "formula": "ZnBr2",
        "category": "Flow Battery", "space_group": "P21/c", "energy_density": 65,
        "voltage_window": 1.8, "ionic_conductivity": 0.5, "source": "Experimental"
    },
]


# =============================================================================
# CANDIDATE GENERATION TABLES
# =============================================================================

DEFAULT_ELEMENTS = ["Li", "Na", "K", "Mg", "Ca", "Co", "Ni", "Mn", "Fe", "V", "Ti", "O", "S", "P", "F"]


class FormulaTemplate(NamedTuple):
    pattern: str
    arity: int
    atoms: int  # atoms per formula unit


FORMULA_TEMPLATES = [
    FormulaTemplate("{0}{1}O2", 2, 4),
    FormulaTemplate("{0}2{1}O4", 2, 7),
    FormulaTemplate("{0}{1}PO4", 2, 7),
    FormulaTemplate("{0}3{1}2(PO4)3", 2, 20),
    FormulaTemplate("{0}{1}2O4", 2, 7),
    FormulaTemplate("{0}2{1}O3", 2, 6),
    FormulaTemplate("{0}{1}{2}O4", 3, 7),
    FormulaTemplate("{0}7{1}3{2}2O12", 3, 24),
]
