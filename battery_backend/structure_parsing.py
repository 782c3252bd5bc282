"""Best-effort readers for uploaded structure files.

Only what the explorer displays is extracted: a formula, lattice parameters,
atomic sites (fractional coordinates where the format has a cell) and the
space group. Anything else in the payload is ignored.
"""
import json
import re
import shlex
from collections import OrderedDict
from functools import reduce
from math import gcd
from pathlib import PurePath
from typing import Dict, List, Optional

import numpy as np

from .models import AtomSite, LatticeParameters, ParsedStructure

SMILES_LINE = re.compile(r"^[A-Za-z0-9@+\-\[\]()=#%.\\/]+$")
NUMBER_LINE = re.compile(r"^\s*[-+]?[\d.]+(?:[eE][-+]?\d+)?\s*$", re.M)
CIF_NUMBER = re.compile(r"^([-+]?[\d.]+(?:[eE][-+]?\d+)?)(?:\(\d+\))?$")
ELEMENT = re.compile(r"^([A-Z][a-z]?)")

EXTENSIONS = {
    "cif": "CIF",
    "poscar": "POSCAR",
    "contcar": "POSCAR",
    "vasp": "POSCAR",
    "smi": "SMILES",
    "smiles": "SMILES",
    "json": "JSON",
}


class StructureParseError(ValueError):
    pass


def _extension(filename: Optional[str]) -> Optional[str]:
    if not filename:
        return None
    path = PurePath(filename.lower())
    if path.suffix:
        return path.suffix.lstrip(".")
    return path.name  # bare POSCAR / CONTCAR


def _is_json(content: str) -> bool:
    try:
        json.loads(content)
    except ValueError:
        return False
    return True


def detect_format(content: str, filename: Optional[str] = None) -> str:
    ext = _extension(filename)
    if ext in EXTENSIONS:
        fmt = EXTENSIONS[ext]
        if fmt == "JSON" and not _is_json(content):
            raise StructureParseError("File has a .json extension but is not valid JSON")
        return fmt

    stripped = content.strip()
    if not stripped:
        raise StructureParseError("Empty structure payload")
    if stripped[0] in "{[" and _is_json(stripped):
        return "JSON"
    if "_cell_length" in content or "data_" in content:
        return "CIF"
    if NUMBER_LINE.search(content):
        return "POSCAR"
    if SMILES_LINE.match(stripped.splitlines()[0]):
        return "SMILES"
    raise StructureParseError("Unrecognized structure format")


def compose_formula(counts: Dict[str, float]) -> Optional[str]:
    """Reduced formula from element counts, keeping first-seen order."""
    counts = {el: int(round(n)) for el, n in counts.items() if n > 0}
    if not counts:
        return None
    divisor = reduce(gcd, counts.values())
    parts = []
    for el, n in counts.items():
        n //= divisor
        parts.append(el if n == 1 else f"{el}{n}")
    return "".join(parts)


def lattice_from_vectors(vectors: np.ndarray) -> LatticeParameters:
    a, b, c = (float(np.linalg.norm(v)) for v in vectors)

    def angle(u, v):
        cos = np.dot(u, v) / (np.linalg.norm(u) * np.linalg.norm(v))
        return float(np.degrees(np.arccos(np.clip(cos, -1.0, 1.0))))

    return LatticeParameters(
        a=round(a, 6), b=round(b, 6), c=round(c, 6),
        alpha=round(angle(vectors[1], vectors[2]), 4),
        beta=round(angle(vectors[0], vectors[2]), 4),
        gamma=round(angle(vectors[0], vectors[1]), 4),
    )


# =============================================================================
# CIF
# =============================================================================

def _cif_number(token: str) -> float:
    match = CIF_NUMBER.match(token)
    if not match:
        raise StructureParseError(f"Bad CIF number: {token!r}")
    return float(match.group(1))


def _element_symbol(token: str) -> str:
    match = ELEMENT.match(token)
    if not match:
        raise StructureParseError(f"Cannot read element from {token!r}")
    return match.group(1)


def parse_cif(content: str) -> ParsedStructure:
    tags = {}
    block_name = None
    sites: List[AtomSite] = []
    lines = [line.strip() for line in content.splitlines()]

    i = 0
    while i < len(lines):
        line = lines[i]
        if not line or line.startswith("#"):
            i += 1
            continue
        if line.startswith("data_"):
            block_name = line[5:].strip() or None
            i += 1
            continue
        if line == "loop_":
            i += 1
            headers = []
            while i < len(lines) and lines[i].startswith("_"):
                headers.append(lines[i].split()[0])
                i += 1
            rows = []
            while i < len(lines) and lines[i] and not lines[i].startswith(("_", "loop_", "data_", "#")):
                rows.append(shlex.split(lines[i]))
                i += 1
            if any(h.startswith("_atom_site_fract") for h in headers):
                sites.extend(_cif_sites(headers, rows))
            continue
        if line.startswith("_"):
            parts = shlex.split(line)
            if len(parts) >= 2:
                tags[parts[0]] = " ".join(parts[1:])
        i += 1

    lattice = None
    keys = ["_cell_length_a", "_cell_length_b", "_cell_length_c",
            "_cell_angle_alpha", "_cell_angle_beta", "_cell_angle_gamma"]
    if all(k in tags for k in keys):
        a, b, c, alpha, beta, gamma = (_cif_number(tags[k]) for k in keys)
        lattice = LatticeParameters(a=a, b=b, c=c, alpha=alpha, beta=beta, gamma=gamma)

    space_group = tags.get("_symmetry_space_group_name_H-M") or tags.get("_space_group_name_H-M_alt")
    if space_group:
        space_group = space_group.replace(" ", "")

    formula = block_name
    if not formula and sites:
        counts = OrderedDict()
        for site in sites:
            counts[site.element] = counts.get(site.element, 0) + 1
        formula = compose_formula(counts)

    return ParsedStructure(
        format="CIF",
        formula=formula,
        lattice_parameters=lattice,
        atomic_positions=sites or None,
        space_group=space_group,
    )


def _cif_sites(headers: List[str], rows: List[List[str]]) -> List[AtomSite]:
    index = {h: n for n, h in enumerate(headers)}
    try:
        xyz = [index["_atom_site_fract_x"], index["_atom_site_fract_y"], index["_atom_site_fract_z"]]
    except KeyError as e:
        raise StructureParseError(f"CIF atom loop is missing {e.args[0]}") from e
    symbol_col = index.get("_atom_site_type_symbol")
    label_col = index.get("_atom_site_label")
    if symbol_col is None and label_col is None:
        raise StructureParseError("CIF atom loop has neither labels nor type symbols")

    sites = []
    for row in rows:
        if len(row) != len(headers):
            raise StructureParseError(f"CIF atom row has {len(row)} values, expected {len(headers)}")
        label = row[label_col] if label_col is not None else None
        element = _element_symbol(row[symbol_col] if symbol_col is not None else label)
        position = tuple(_cif_number(row[k]) for k in xyz)
        sites.append(AtomSite(element=element, position=position, label=label))
    return sites


# =============================================================================
# POSCAR
# =============================================================================

def parse_poscar(content: str) -> ParsedStructure:
    lines = [line.strip() for line in content.splitlines()]
    while lines and not lines[-1]:
        lines.pop()
    if len(lines) < 7:
        raise StructureParseError("POSCAR needs at least 7 lines")

    comment = lines[0]
    try:
        scale = float(lines[1].split()[0])
        vectors = np.array([[float(x) for x in lines[n].split()[:3]] for n in (2, 3, 4)])
    except (ValueError, IndexError) as e:
        raise StructureParseError(f"Bad POSCAR header: {e}") from e
    if vectors.shape != (3, 3):
        raise StructureParseError("POSCAR lattice vectors must have three components")

    volume = abs(float(np.linalg.det(vectors)))
    if volume == 0:
        raise StructureParseError("POSCAR lattice is singular")
    if scale < 0:
        # negative scale means target cell volume
        scale = (abs(scale) / volume) ** (1.0 / 3.0)
    vectors = vectors * scale

    cursor = 5
    tokens = lines[cursor].split()
    if tokens and ELEMENT.match(tokens[0]) and not tokens[0].isdigit():
        species = tokens
        cursor += 1
    else:
        # VASP 4: species only in the comment
        species = comment.split()
    try:
        counts = [int(n) for n in lines[cursor].split()]
    except (ValueError, IndexError) as e:
        raise StructureParseError(f"Bad POSCAR species counts: {e}") from e
    if len(species) < len(counts):
        raise StructureParseError("POSCAR species names do not match counts")
    species = [_element_symbol(s) for s in species[:len(counts)]]
    cursor += 1

    if cursor < len(lines) and lines[cursor][:1].lower() == "s":  # selective dynamics
        cursor += 1
    if cursor >= len(lines):
        raise StructureParseError("POSCAR is missing the coordinate mode line")
    cartesian = lines[cursor][:1].lower() in ("c", "k")
    cursor += 1

    total = sum(counts)
    rows = lines[cursor:cursor + total]
    if len(rows) < total:
        raise StructureParseError(f"POSCAR lists {len(rows)} positions, expected {total}")
    try:
        coords = np.array([[float(x) for x in row.split()[:3]] for row in rows])
    except ValueError as e:
        raise StructureParseError(f"Bad POSCAR coordinates: {e}") from e
    if coords.shape != (total, 3):
        raise StructureParseError("POSCAR coordinates must have three components")
    if cartesian:
        coords = (coords * scale) @ np.linalg.inv(vectors)

    elements = [el for el, n in zip(species, counts) for _ in range(n)]
    sites = [
        AtomSite(element=el, position=tuple(round(float(x), 6) for x in xyz))
        for el, xyz in zip(elements, coords)
    ]

    totals = OrderedDict()
    for el, n in zip(species, counts):
        totals[el] = totals.get(el, 0) + n
    formula = compose_formula(totals) or (comment.split()[0] if comment else None)

    return ParsedStructure(
        format="POSCAR",
        formula=formula,
        lattice_parameters=lattice_from_vectors(vectors),
        atomic_positions=sites,
    )


# =============================================================================
# JSON / SMILES
# =============================================================================

def parse_json_structure(content: str) -> ParsedStructure:
    try:
        data = json.loads(content)
    except ValueError as e:
        raise StructureParseError(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise StructureParseError("JSON structure must be an object")

    props = data.get("properties") or {}
    if not isinstance(props, dict):
        raise StructureParseError("JSON \"properties\" must be an object")
    nodes = data.get("nodes") or []
    if not isinstance(nodes, list):
        raise StructureParseError("JSON \"nodes\" must be a list")

    sites = []
    for node in nodes:
        try:
            sites.append(AtomSite(element=node["element"], position=tuple(node["position"])))
        except (KeyError, TypeError, ValueError) as e:
            raise StructureParseError(f"Bad JSON node: {node!r}") from e

    lattice = props.get("lattice")
    return ParsedStructure(
        format="JSON",
        formula=props.get("formula"),
        lattice_parameters=LatticeParameters(**lattice) if isinstance(lattice, dict) else None,
        atomic_positions=sites or None,
        space_group=props.get("spaceGroup"),
    )


def parse_smiles(content: str) -> ParsedStructure:
    first = content.strip().splitlines()[0] if content.strip() else ""
    return ParsedStructure(format="SMILES", formula=first[:50] or None)


PARSERS = {
    "CIF": parse_cif,
    "POSCAR": parse_poscar,
    "JSON": parse_json_structure,
    "SMILES": parse_smiles,
}


def parse_structure(content: str, fmt: Optional[str] = None, filename: Optional[str] = None) -> ParsedStructure:
    fmt = (fmt or detect_format(content, filename)).upper()
    if fmt not in PARSERS:
        raise StructureParseError(f"Unsupported structure format: {fmt}")
    return PARSERS[fmt](content)

