# structengine/section.py
"""
Section and material resolution.

Turns the (possibly incomplete) Section and Material of an element into the
numbers the element formulation needs. Missing data is filled with defaults
and reported as warnings, never raised.

Axis convention (local element axes):
    y = section height direction, z = width direction
    Iz = b·h³/12  (strong axis, bending in the local x-y plane)
    Iy = h·b³/12  (weak axis)
"""

import math
from dataclasses import dataclass
from typing import List, Tuple

from .model import Material, Section, SectionShape

DEFAULT_WIDTH = 0.3     # m
DEFAULT_HEIGHT = 0.5    # m
DEFAULT_ELASTIC_MODULUS = 2e11   # Pa (steel)
DEFAULT_POISSONS_RATIO = 0.3
DEFAULT_DENSITY = 7850.0         # kg/m³


@dataclass(frozen=True)
class SectionProperties:
    """
    Resolved section properties.

    area : A (m²)
    iy, iz : second moments about local y and z (m⁴)
    j : torsional constant (m⁴)
    sy, sz : elastic section moduli Iy/cz and Iz/cy (m³)
    zy, zz : plastic section moduli (m³)
    cy, cz : extreme fibre distances along local y and z (m)
    """
    area: float
    iy: float
    iz: float
    j: float
    sy: float
    sz: float
    zy: float
    zz: float
    cy: float
    cz: float

    @property
    def polar_moment(self) -> float:
        return self.iy + self.iz


@dataclass(frozen=True)
class ResolvedMaterial:
    E: float
    G: float
    nu: float
    density: float
    fy: float = None
    fu: float = None


def _rectangular_torsion(b: float, h: float) -> float:
    """Saint-Venant torsion constant of a solid rectangle (approximate)."""
    a, t = max(b, h), min(b, h)
    return a * t**3 * (1.0 / 3.0 - 0.21 * (t / a) * (1.0 - t**4 / (12.0 * a**4)))


def _rectangle(b: float, h: float) -> SectionProperties:
    iz = b * h**3 / 12.0
    iy = h * b**3 / 12.0
    cy, cz = h / 2.0, b / 2.0
    return SectionProperties(
        area=b * h, iy=iy, iz=iz, j=_rectangular_torsion(b, h),
        sy=iy / cz, sz=iz / cy,
        zy=h * b**2 / 4.0, zz=b * h**2 / 4.0,
        cy=cy, cz=cz,
    )


def _circle(d: float) -> SectionProperties:
    r = d / 2.0
    i = math.pi * r**4 / 4.0
    s = i / r
    z = d**3 / 6.0
    return SectionProperties(
        area=math.pi * r**2, iy=i, iz=i, j=math.pi * r**4 / 2.0,
        sy=s, sz=s, zy=z, zz=z, cy=r, cz=r,
    )


def section_properties(section: Section) -> Tuple[SectionProperties, List[str]]:
    """
    Resolve a Section into SectionProperties.

    Returns:
        (props, warnings)

    Rules:
        RECTANGULAR: needs width and height
        CIRCULAR:    needs width (diameter), or area
        GENERIC:     uses area/iy/iz/torsional_constant as supplied, filling
                     any gap from width/height when available
    Explicit area/iy/iz/torsional_constant always override derived values.
    Anything that cannot be resolved falls back to the default 0.3 m × 0.5 m
    rectangle with a warning.
    """
    warnings: List[str] = []
    b, h = section.width, section.height
    shape = section.shape

    if shape is SectionShape.CIRCULAR:
        d = b if b else h
        if not d and section.area:
            d = math.sqrt(4.0 * section.area / math.pi)
        if d and d > 0:
            base = _circle(d)
        else:
            warnings.append(
                f"Circular section without diameter; using default "
                f"{DEFAULT_WIDTH} m x {DEFAULT_HEIGHT} m rectangle"
            )
            base = _rectangle(DEFAULT_WIDTH, DEFAULT_HEIGHT)
    elif b and h and b > 0 and h > 0:
        base = _rectangle(b, h)
    elif shape is SectionShape.GENERIC and section.area and section.iy and section.iz:
        base = None
    else:
        warnings.append(
            f"Section dimensions missing; using default "
            f"{DEFAULT_WIDTH} m x {DEFAULT_HEIGHT} m rectangle"
        )
        base = _rectangle(DEFAULT_WIDTH, DEFAULT_HEIGHT)

    if base is None:
        # generic, fully explicit
        A, iy, iz = section.area, section.iy, section.iz
        j = section.torsional_constant
        if not j:
            j = iy + iz
            warnings.append("Torsional constant missing; using Iy + Iz")
        # extreme fibres of an equivalent solid rectangle
        cy = math.sqrt(3.0 * iz / A)
        cz = math.sqrt(3.0 * iy / A)
        return SectionProperties(
            area=A, iy=iy, iz=iz, j=j,
            sy=iy / cz, sz=iz / cy, zy=iy / cz, zz=iz / cy,
            cy=cy, cz=cz,
        ), warnings

    A = section.area or base.area
    iy = section.iy or base.iy
    iz = section.iz or base.iz
    j = section.torsional_constant or base.j
    props = SectionProperties(
        area=A, iy=iy, iz=iz, j=j,
        sy=iy / base.cz, sz=iz / base.cy,
        zy=base.zy * (iy / base.iy), zz=base.zz * (iz / base.iz),
        cy=base.cy, cz=base.cz,
    )
    return props, warnings


def resolve_material(material: Material) -> Tuple[ResolvedMaterial, List[str]]:
    """
    Fill missing material data with steel defaults.

    Missing E, ν or density each add one warning. G is taken from the
    material when given, else E / (2(1+ν)).
    """
    warnings: List[str] = []
    E = material.elastic_modulus
    if not E or E <= 0:
        warnings.append(f"Elastic modulus missing; using {DEFAULT_ELASTIC_MODULUS:.3g} Pa")
        E = DEFAULT_ELASTIC_MODULUS
    nu = material.poissons_ratio
    if nu is None:
        warnings.append(f"Poisson's ratio missing; using {DEFAULT_POISSONS_RATIO}")
        nu = DEFAULT_POISSONS_RATIO
    rho = material.density
    if rho is None:
        warnings.append(f"Density missing; using {DEFAULT_DENSITY} kg/m³")
        rho = DEFAULT_DENSITY
    G = material.shear_modulus or E / (2.0 * (1.0 + nu))
    return ResolvedMaterial(
        E=float(E), G=float(G), nu=float(nu), density=float(rho),
        fy=material.yield_strength, fu=material.ultimate_strength,
    ), warnings
