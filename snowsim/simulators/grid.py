# --------------------------------------------------------------------------------
# Copyright (c) 2025 Krushang Gabani
# All rights reserved.
#
# Background Eulerian grid for the MLS-MPM snow solver.
#
# Author: Krushang Gabani
# Date: July 7, 2025
# --------------------------------------------------------------------------------

import taichi as ti


@ti.data_oriented
class BackgroundGrid:
    """
    Dense (n_grid + 1)^2 node array covering [0, 1]^2 with spacing 1 / n_grid.
    Scratch space only: it is zeroed at the start of every step.
    """

    def __init__(self, n_grid: int, dtype=ti.f32):
        self.n_grid = n_grid
        self.dtype = dtype

        shape = (n_grid + 1, n_grid + 1)
        self.v = ti.Vector.field(2, dtype=dtype, shape=shape)  # momentum, then velocity
        self.m = ti.field(dtype=dtype, shape=shape)

    @ti.kernel
    def clear(self):
        for I in ti.grouped(self.m):
            self.v[I] = ti.Vector.zero(self.dtype, 2)
            self.m[I] = 0.0

    def total_mass(self) -> float:
        return float(self.m.to_numpy().sum())
