# --------------------------------------------------------------------------------
# Copyright (c) 2025 Krushang Gabani
# All rights reserved.
#
# Configuration module for the 2D MLS-MPM snow simulation: grid resolution,
# snow material constants, boundary handling and the initial particle blobs.
#
# Author: Krushang Gabani
# Date: July 7, 2025
# --------------------------------------------------------------------------------

import math
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional, Tuple

import taichi as ti
import yaml

from snowsim.errors import ConfigurationError


DTYPES = {"float32": ti.f32, "float64": ti.f64}

# Tags are packed colours, stored as unsigned 32-bit integers
MAX_TAG = 2 ** 32 - 1


@dataclass(frozen=True)
class Blob:
    """
    A batch of particles scattered uniformly in a small disc around `center`.
    The tag is never read by the solver; renderers use it as a packed RGB colour.
    """

    center: Tuple[float, float]
    count: int
    tag: int = 0xFFFFFF
    velocity: Tuple[float, float] = (0.0, 0.0)


DEFAULT_BLOBS = (
    Blob(center=(0.55, 0.45), count=100, tag=0xED553B),
    Blob(center=(0.45, 0.65), count=100, tag=0xF2B134),
    Blob(center=(0.55, 0.85), count=100, tag=0x068587),
)


@dataclass(frozen=True)
class Config:
    """
    Configuration for the snow simulation. Immutable once constructed;
    the Lamé parameters are derived here from Young's modulus and
    Poisson's ratio.
    """

    # ----------------------------- Grid & Precision ---------------------------
    n_grid: int = 40  # Grid resolution per axis; (n_grid + 1)^2 nodes, dx = 1 / n_grid
    dtype: str = "float32"  # Numeric precision: "float32" or "float64"

    # ---------------------------- Time Stepping -------------------------------
    dt: float = 2.5e-5  # Substep size used when splitting a frame (seconds)
    max_frame_dt: float = 1.0 / 30.0  # Longest frame delta accepted before clamping
    gravity: float = -200.0  # Vertical grid acceleration

    # ------------------------ Material Properties -----------------------------
    p_mass: float = 1.0  # Particle mass
    p_vol: float = 1.0  # Nominal particle volume
    hardening: float = 10.0  # Snow hardening coefficient
    youngs_modulus: float = 1e4  # Young's modulus
    poisson_ratio: float = 0.2  # Poisson's ratio (dimensionless)
    plastic: bool = True  # Clamp singular values of F (snow plasticity)
    compression_limit: float = 2.5e-2  # Singular values clamped to >= 1 - compression_limit
    stretch_limit: float = 7.5e-3  # Singular values clamped to <= 1 + stretch_limit
    jp_min: float = 0.6  # Lower bound of the tracked volume ratio
    jp_max: float = 20.0  # Upper bound of the tracked volume ratio
    lame_on_diagonal: bool = False  # Add lambda*(J-1)*J to the diagonal only

    # ------------------------------ Boundary ----------------------------------
    boundary: float = 0.05  # Width of the sticky walls / separating floor band

    # ------------------------------ Particles ---------------------------------
    blob_radius: float = 0.08  # Radius of the scatter disc around each blob centre
    seed: Optional[int] = None  # Seed for the default uniform sampler
    blobs: Tuple[Blob, ...] = field(default_factory=lambda: DEFAULT_BLOBS)

    # ------------------------------ Derived -----------------------------------
    mu_0: float = field(init=False)
    lambda_0: float = field(init=False)

    def __post_init__(self):
        self._validate()
        E, nu = self.youngs_modulus, self.poisson_ratio
        object.__setattr__(self, "mu_0", E / (2 * (1 + nu)))
        object.__setattr__(self, "lambda_0", E * nu / ((1 + nu) * (1 - 2 * nu)))

    @property
    def dx(self) -> float:
        return 1.0 / self.n_grid

    @property
    def ti_dtype(self):
        return DTYPES[self.dtype]

    @property
    def n_particles(self) -> int:
        return sum(blob.count for blob in self.blobs)

    @property
    def stencil_bounds(self) -> Tuple[float, float]:
        """Positions whose 3x3 stencil lies inside the grid: [lower, upper)."""
        return 0.5 / self.n_grid, (self.n_grid - 0.5) / self.n_grid

    def _validate(self):
        if not isinstance(self.n_grid, int) or self.n_grid < 2:
            raise ConfigurationError(f"n_grid must be an integer >= 2, got {self.n_grid!r}")
        if self.dtype not in DTYPES:
            raise ConfigurationError(f"dtype must be one of {sorted(DTYPES)}, got {self.dtype!r}")
        for name in ("dt", "max_frame_dt", "p_mass", "p_vol",
                     "compression_limit", "stretch_limit"):
            value = getattr(self, name)
            if not (math.isfinite(value) and value > 0):
                raise ConfigurationError(f"{name} must be a positive number, got {value!r}")
        if not self.compression_limit < 1.0:
            raise ConfigurationError("compression_limit must be < 1")
        if not (math.isfinite(self.youngs_modulus) and self.youngs_modulus >= 0):
            raise ConfigurationError(f"youngs_modulus must be >= 0, got {self.youngs_modulus!r}")
        if not 0.0 <= self.poisson_ratio < 0.5:
            raise ConfigurationError(f"poisson_ratio must be in [0, 0.5), got {self.poisson_ratio!r}")
        if not 0.0 < self.boundary < 0.5:
            raise ConfigurationError(f"boundary must be in (0, 0.5), got {self.boundary!r}")
        if not 0.0 < self.jp_min < self.jp_max:
            raise ConfigurationError(
                f"volume ratio bounds must satisfy 0 < jp_min < jp_max, got ({self.jp_min}, {self.jp_max})")
        if not (math.isfinite(self.blob_radius) and self.blob_radius > 0):
            raise ConfigurationError(f"blob_radius must be positive, got {self.blob_radius!r}")
        if len(self.blobs) == 0:
            raise ConfigurationError("at least one particle blob is required")
        for blob in self.blobs:
            self._validate_blob(blob)

    def _validate_blob(self, blob: Blob):
        if not isinstance(blob.count, int) or blob.count < 1:
            raise ConfigurationError(f"blob count must be a positive integer, got {blob.count!r}")
        if not isinstance(blob.tag, int) or not 0 <= blob.tag <= MAX_TAG:
            raise ConfigurationError(f"blob tag must be an unsigned 32-bit integer, got {blob.tag!r}")
        if len(blob.center) != 2 or len(blob.velocity) != 2:
            raise ConfigurationError(f"blob center and velocity must be 2D, got {blob!r}")
        if not all(math.isfinite(c) for c in (*blob.center, *blob.velocity)):
            raise ConfigurationError(f"blob center and velocity must be finite, got {blob!r}")
        lower, upper = self.stencil_bounds
        for c in blob.center:
            if c - self.blob_radius < lower or c + self.blob_radius >= upper:
                raise ConfigurationError(
                    f"blob at {tuple(blob.center)} with radius {self.blob_radius} "
                    f"does not fit inside [{lower:.4f}, {upper:.4f})")


def _blob_from_dict(data: Dict[str, Any]) -> Blob:
    try:
        return Blob(
            center=tuple(data["center"]),
            count=data["count"],
            tag=data.get("tag", 0xFFFFFF),
            velocity=tuple(data.get("velocity", (0.0, 0.0))),
        )
    except (KeyError, TypeError) as e:
        raise ConfigurationError(f"invalid blob entry {data!r}: {e}") from e


def load_config(path: str) -> Config:
    """
    Load a YAML config file. Keys override the defaults of `Config`;
    `blobs` is a list of mappings with `center`, `count` and optional
    `tag` and `velocity`.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: top level must be a mapping")

    known = {f.name for f in fields(Config) if f.init}
    unknown = set(data) - known
    if unknown:
        raise ConfigurationError(f"{path}: unknown config keys {sorted(unknown)}")

    if "blobs" in data:
        data["blobs"] = tuple(_blob_from_dict(b) for b in data["blobs"])
    return Config(**data)
