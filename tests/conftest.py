"""
Shared fixtures: a fresh store and app per test, no artificial delays,
and a seeded random generator so mock output is repeatable.
"""
import pytest
from fastapi.testclient import TestClient

from battery_backend.config import Settings
from battery_backend.mock_engine import make_rng
from battery_backend.server import create_app
from battery_backend.storage import MemStorage


CIF_LICOO2 = """data_LiCoO2
_cell_length_a   2.8156
_cell_length_b   2.8156
_cell_length_c   14.0516
_cell_angle_alpha   90.000
_cell_angle_beta    90.000
_cell_angle_gamma   120.000
_symmetry_space_group_name_H-M   'R -3 m'

loop_
_atom_site_label
_atom_site_type_symbol
_atom_site_fract_x
_atom_site_fract_y
_atom_site_fract_z
Li1 Li 0.00000 0.00000 0.50000
Co1 Co 0.00000 0.00000 0.00000
O1  O  0.00000 0.00000 0.23960"""

POSCAR_LICOO2 = """LiCoO2 R-3m
1.0
2.8156 0.0000 0.0000
-1.4078 2.4383 0.0000
0.0000 0.0000 14.0516
Li Co O
1 1 2
Direct
0.00000 0.00000 0.50000 Li
0.00000 0.00000 0.00000 Co
0.00000 0.00000 0.23960 O
0.00000 0.00000 0.76040 O"""


@pytest.fixture
def settings():
    return Settings(cors_origins=["*"], prediction_delay=0, generation_delay=0, random_seed=1234)


@pytest.fixture
def storage():
    return MemStorage()


@pytest.fixture
def rng():
    return make_rng(1234)


@pytest.fixture
def client(settings, storage):
    app = create_app(settings=settings, storage=storage)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def material_payload():
    return {
        "name": "Lithium Cobalt Oxide",
        "formula": "LiCoO2",
        "format": "CIF",
        "rawData": CIF_LICOO2,
        "spaceGroup": "R-3m",
    }


@pytest.fixture
def created_material(client, material_payload):
    response = client.post("/api/materials", json=material_payload)
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def cif_licoo2():
    return CIF_LICOO2


@pytest.fixture
def poscar_licoo2():
    return POSCAR_LICOO2
