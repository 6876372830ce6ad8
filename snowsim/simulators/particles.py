# --------------------------------------------------------------------------------
# Copyright (c) 2025 Krushang Gabani
# All rights reserved.
#
# Particle store for the MLS-MPM snow solver: per-particle position, velocity,
# deformation gradient, APIC affine matrix, tracked volume ratio and tag.
#
# Author: Krushang Gabani
# Date: July 7, 2025
# --------------------------------------------------------------------------------

import logging
from typing import Callable, Dict, Sequence

import numpy as np
import taichi as ti

from snowsim.config.base_config import Blob
from snowsim.errors import ConfigurationError

logger = logging.getLogger(__name__)

# sampler(shape) -> array of that shape, uniform over [-1, 1]
Sampler = Callable[[tuple], np.ndarray]


def uniform_sampler(seed=None) -> Sampler:
    rng = np.random.default_rng(seed)
    return lambda shape: rng.uniform(-1.0, 1.0, size=shape)


def scatter_disc(center, count: int, radius: float, sampler: Sampler) -> np.ndarray:
    """
    Uniform points in the disc of `radius` around `center`, by rejection
    from samples on the square [-1, 1]^2.
    """
    points = np.empty((0, 2), dtype=np.float64)
    while len(points) < count:
        candidates = np.asarray(sampler((2 * count, 2)), dtype=np.float64)
        if candidates.shape != (2 * count, 2) or np.any(np.abs(candidates) > 1.0):
            raise ConfigurationError("sampler must return values in [-1, 1] of the requested shape")
        inside = candidates[np.sum(candidates ** 2, axis=1) <= 1.0]
        points = np.concatenate([points, inside])
    return np.asarray(center, dtype=np.float64) + radius * points[:count]


@ti.data_oriented
class ParticleStore:
    """Manages the snow particles. Particles are created once and never added or removed."""

    def __init__(self, n_particles: int, dtype=ti.f32):
        self.n_particles = n_particles
        self.dtype = dtype

        n = n_particles
        self.x   = ti.Vector.field(2, dtype=dtype, shape=n)     # position
        self.v   = ti.Vector.field(2, dtype=dtype, shape=n)     # velocity
        self.F   = ti.Matrix.field(2, 2, dtype=dtype, shape=n)  # deformation gradient
        self.C   = ti.Matrix.field(2, 2, dtype=dtype, shape=n)  # APIC affine matrix
        self.Jp  = ti.field(dtype=dtype, shape=n)               # tracked volume ratio
        self.tag = ti.field(dtype=ti.u32, shape=n)              # material tag (packed colour)

    @classmethod
    def from_blobs(cls, blobs: Sequence[Blob], radius: float, sampler: Sampler, dtype=ti.f32):
        store = cls(sum(b.count for b in blobs), dtype=dtype)
        store.seed(blobs, radius, sampler)
        return store

    def seed(self, blobs: Sequence[Blob], radius: float, sampler: Sampler):
        """Scatter every blob and reset F = I, C = 0, Jp = 1."""
        n = sum(b.count for b in blobs)
        if n != self.n_particles:
            raise ConfigurationError(f"blobs hold {n} particles, store has room for {self.n_particles}")

        positions = np.concatenate([scatter_disc(b.center, b.count, radius, sampler) for b in blobs])
        velocities = np.concatenate([np.tile(np.asarray(b.velocity, dtype=np.float64), (b.count, 1))
                                     for b in blobs])
        tags = np.concatenate([np.full(b.count, b.tag, dtype=np.uint32) for b in blobs])

        np_dtype = np.float64 if self.dtype == ti.f64 else np.float32
        self.x.from_numpy(positions.astype(np_dtype))
        self.v.from_numpy(velocities.astype(np_dtype))
        self.F.from_numpy(np.tile(np.eye(2, dtype=np_dtype), (n, 1, 1)))
        self.C.from_numpy(np.zeros((n, 2, 2), dtype=np_dtype))
        self.Jp.from_numpy(np.ones(n, dtype=np_dtype))
        self.tag.from_numpy(tags)

        logger.info("Seeded %d particles in %d blob(s)", n, len(blobs))

    def particle_info(self) -> Dict[str, np.ndarray]:
        """Read-only snapshot of what a renderer needs: positions and tags."""
        info = {'position': self.x.to_numpy(), 'tag': self.tag.to_numpy()}
        for arr in info.values():
            arr.setflags(write=False)
        return info

    def vertex_data(self) -> np.ndarray:
        """
        Interleaved float32 vertices (x, y, tag) with the tag's bits
        reinterpreted as a float, stride 12 bytes.
        """
        data = np.empty((self.n_particles, 3), dtype=np.float32)
        data[:, :2] = self.x.to_numpy()
        data[:, 2] = self.tag.to_numpy().astype(np.uint32).view(np.float32)
        return data
