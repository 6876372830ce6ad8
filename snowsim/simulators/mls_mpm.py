# --------------------------------------------------------------------------------
# Copyright (c) 2025 Krushang Gabani
# All rights reserved.
#
# MLS_MPM: Taichi-based 2D Moving Least Squares Material Point Method solver
# for snow (APIC transfer, fixed-corotated stress with hardening, singular
# value clamping plasticity).
#
# Author: Krushang Gabani
# Date: July 7, 2025
# --------------------------------------------------------------------------------

import logging
import math
from typing import Dict, Optional

import numpy as np
import taichi as ti

from snowsim.config.base_config import Config
from snowsim.errors import UnstableSimulationError
from snowsim.linalg import clamp_singular_values, polar_decompose, svd
from snowsim.simulators.grid import BackgroundGrid
from snowsim.simulators.particles import ParticleStore, Sampler, uniform_sampler

logger = logging.getLogger(__name__)


@ti.data_oriented
class MLS_MPM:
    def __init__(self, cfg: Config, sampler: Optional[Sampler] = None):

        self.cfg         = cfg
        # simulation parameters
        self.dtype       = cfg.ti_dtype
        self.n_grid      = cfg.n_grid
        self.n_particles = cfg.n_particles

        # derived quantities
        self.dx          = cfg.dx
        self.inv_dx      = float(cfg.n_grid)
        self.p_vol       = cfg.p_vol
        self.p_mass      = cfg.p_mass

        # gravity and boundary band
        self.gravity     = cfg.gravity
        self.boundary    = cfg.boundary

        # snow material parameters
        self.hardening   = cfg.hardening
        self.mu_0        = cfg.mu_0
        self.lambda_0    = cfg.lambda_0
        self.lame_on_diagonal = cfg.lame_on_diagonal
        self.plastic     = cfg.plastic
        self.sig_lower   = 1.0 - cfg.compression_limit
        self.sig_upper   = 1.0 + cfg.stretch_limit
        self.jp_min      = cfg.jp_min
        self.jp_max      = cfg.jp_max

        # positions whose stencil stays on the grid
        self.lower_bound, self.upper_bound = cfg.stencil_bounds

        self.sampler   = sampler if sampler is not None else uniform_sampler(cfg.seed)
        self.particles = ParticleStore.from_blobs(cfg.blobs, cfg.blob_radius, self.sampler, dtype=self.dtype)
        self.grid      = BackgroundGrid(cfg.n_grid, dtype=self.dtype)

        self._unstable = False
        self.n_steps   = 0

        logger.info("MLS-MPM: %d particles, grid %dx%d (dx=%.4f), dtype=%s",
                    self.n_particles, cfg.n_grid + 1, cfg.n_grid + 1, self.dx, cfg.dtype)
        logger.info("Material: E=%g, nu=%g, mu_0=%.2f, lambda_0=%.2f, hardening=%g, plastic=%s",
                    cfg.youngs_modulus, cfg.poisson_ratio, self.mu_0, self.lambda_0,
                    self.hardening, self.plastic)

    @property
    def is_unstable(self) -> bool:
        return self._unstable

    def reset(self):
        self.particles.seed(self.cfg.blobs, self.cfg.blob_radius, self.sampler)
        self._unstable = False
        self.n_steps = 0

    @ti.func
    def corotated_stress(self, F, R, J, mu, la):
        PF = 2 * mu * (F - R) @ F.transpose()
        if ti.static(self.lame_on_diagonal):
            PF += ti.Matrix.identity(self.dtype, 2) * la * (J - 1) * J
        else:
            # added to every entry, not only the diagonal
            PF += la * (J - 1) * J
        return PF

    @ti.kernel
    def p2g(self, dt: float):
        for p in range(self.n_particles):
            Xp = self.particles.x[p] * self.inv_dx
            base = ti.floor(Xp - 0.5).cast(int)
            fx = Xp - base.cast(self.dtype)
            w = [0.5 * (1.5 - fx) ** 2, 0.75 - (fx - 1) ** 2, 0.5 * (fx - 0.5) ** 2]

            # hardening from the tracked volume ratio
            e = ti.exp(self.hardening * (1.0 - self.particles.Jp[p]))
            mu, la = self.mu_0 * e, self.lambda_0 * e

            F = self.particles.F[p]
            J = F.determinant()
            R, _S = polar_decompose(F)

            stress = (-dt * self.p_vol * 4 * self.inv_dx ** 2) * self.corotated_stress(F, R, J, mu, la)
            affine = stress + self.p_mass * self.particles.C[p]

            for i, j in ti.static(ti.ndrange(3, 3)):
                offset = ti.Vector([i, j])
                dpos = (offset.cast(self.dtype) - fx) * self.dx
                weight = w[i][0] * w[j][1]
                self.grid.v[base + offset] += weight * (self.p_mass * self.particles.v[p] + affine @ dpos)
                self.grid.m[base + offset] += weight * self.p_mass

    @ti.kernel
    def grid_op(self, dt: float):
        for i, j in self.grid.m:
            if self.grid.m[i, j] > 0:
                self.grid.v[i, j] = self.grid.v[i, j] / self.grid.m[i, j]
                self.grid.m[i, j] = 1.0
                self.grid.v[i, j][1] += self.gravity * dt

            x = i / self.n_grid
            y = j / self.n_grid

            # sticky walls and ceiling
            if x < self.boundary or x > 1 - self.boundary or y > 1 - self.boundary:
                self.grid.v[i, j] = ti.Vector.zero(self.dtype, 2)
                self.grid.m[i, j] = 0.0

            # separating floor
            if y < self.boundary:
                self.grid.v[i, j][1] = ti.max(self.grid.v[i, j][1], 0.0)

    @ti.kernel
    def g2p(self, dt: float):
        for p in range(self.n_particles):
            Xp = self.particles.x[p] * self.inv_dx
            base = ti.floor(Xp - 0.5).cast(int)
            fx = Xp - base.cast(self.dtype)
            w = [0.5 * (1.5 - fx) ** 2, 0.75 - (fx - 1) ** 2, 0.5 * (fx - 0.5) ** 2]

            new_v = ti.Vector.zero(self.dtype, 2)
            new_C = ti.Matrix.zero(self.dtype, 2, 2)
            for i, j in ti.static(ti.ndrange(3, 3)):
                dpos = ti.Vector([i, j]).cast(self.dtype) - fx
                g_v = self.grid.v[base + ti.Vector([i, j])]
                weight = w[i][0] * w[j][1]
                new_v += weight * g_v
                new_C += 4 * self.inv_dx * weight * g_v.outer_product(dpos)

            # advection
            self.particles.v[p] = new_v
            self.particles.C[p] = new_C
            self.particles.x[p] += dt * new_v

            # F update and snow plasticity
            F = (ti.Matrix.identity(self.dtype, 2) + dt * new_C) @ self.particles.F[p]
            U, sig, V = svd(F)
            if ti.static(self.plastic):
                sig = clamp_singular_values(sig, self.sig_lower, self.sig_upper)
            old_J = F.determinant()
            F = U @ sig @ V.transpose()

            Jp = self.particles.Jp[p] * old_J / F.determinant()
            self.particles.Jp[p] = ti.min(ti.max(Jp, self.jp_min), self.jp_max)
            self.particles.F[p] = F

    @ti.kernel
    def count_escaped(self) -> ti.i32:
        """Particles whose position is non-finite or whose stencil leaves the grid."""
        count = 0
        for p in range(self.n_particles):
            escaped = 0
            for d in ti.static(range(2)):
                xd = self.particles.x[p][d]
                if xd != xd or xd < self.lower_bound or xd >= self.upper_bound:
                    escaped = 1
            count += escaped
        return count

    def advance(self, dt: float):
        """
        One full step: P2G, grid update, G2P with advection, F update and
        plasticity. `dt` is used as given; clamping long frames is up to the caller.
        """
        if not (math.isfinite(dt) and dt > 0):
            raise ValueError(f"dt must be a positive finite number, got {dt!r}")
        if self._unstable:
            raise UnstableSimulationError("simulation is unstable; call reset() before advancing")

        self.grid.clear()
        self.p2g(dt)
        self.grid_op(dt)
        self.g2p(dt)
        self.n_steps += 1

        n_escaped = self.count_escaped()
        if n_escaped > 0:
            self._unstable = True
            logger.error("Step %d (dt=%g): %d particle(s) left the grid or became non-finite",
                         self.n_steps, dt, n_escaped)
            raise UnstableSimulationError(
                f"{n_escaped} particle(s) left the grid or became non-finite at step {self.n_steps}",
                n_escaped=n_escaped)

    def step(self, n_substeps: int = 1):
        for _ in range(n_substeps):
            self.advance(self.cfg.dt)

    def particle_info(self) -> Dict[str, np.ndarray]:
        return self.particles.particle_info()

    def vertex_data(self) -> np.ndarray:
        return self.particles.vertex_data()

    def stats(self) -> Dict[str, float]:
        """Summary of the particle state for diagnostics."""
        x = self.particles.x.to_numpy()
        v = self.particles.v.to_numpy()
        Jp = self.particles.Jp.to_numpy()
        speed = np.linalg.norm(v, axis=1)
        return {
            'mean_y': float(x[:, 1].mean()),
            'mean_vy': float(v[:, 1].mean()),
            'max_speed': float(speed.max()),
            'jp_min': float(Jp.min()),
            'jp_max': float(Jp.max()),
            'jp_mean': float(Jp.mean()),
        }
