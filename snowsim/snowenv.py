# --------------------------------------------------------------------------------
# Copyright (c) 2025 Krushang Gabani
# All rights reserved.
#
# High-level environment wrapper for the MLS-MPM snow solver: turns wall-clock
# frame deltas into solver substeps and feeds snapshots to a renderer.
#
# Author: Krushang Gabani
# Date: July 7, 2025
# --------------------------------------------------------------------------------

import logging
import math

from snowsim.config.base_config import Config
from snowsim.simulators.mls_mpm import MLS_MPM

logger = logging.getLogger(__name__)


class SnowEnv:

    def __init__(self, cfg: Config, renderer=None, sampler=None):

        self.cfg = cfg
        self.simulator = MLS_MPM(cfg, sampler=sampler)
        self.renderer = renderer

        self._t = 0.0
        self._frame = 0

    @property
    def time(self) -> float:
        return self._t

    @property
    def frame(self) -> int:
        return self._frame

    def reset(self):
        self.simulator.reset()
        self._t = 0.0
        self._frame = 0

    def n_substeps(self, frame_dt: float) -> int:
        return max(1, math.ceil(frame_dt / self.cfg.dt - 1e-9))

    def advance_frame(self, frame_dt: float):
        """
        Advance by one frame of `frame_dt` seconds. Deltas longer than
        cfg.max_frame_dt (e.g. after a pause) are clamped; the frame is then
        split into equal substeps no longer than cfg.dt.
        """
        if not (math.isfinite(frame_dt) and frame_dt > 0):
            raise ValueError(f"frame_dt must be a positive finite number, got {frame_dt!r}")
        if frame_dt > self.cfg.max_frame_dt:
            logger.info("Clamping frame delta %.4fs to %.4fs", frame_dt, self.cfg.max_frame_dt)
            frame_dt = self.cfg.max_frame_dt

        n = self.n_substeps(frame_dt)
        sub_dt = frame_dt / n
        for _ in range(n):
            self.simulator.advance(sub_dt)

        self._t += frame_dt
        self._frame += 1
        if logger.isEnabledFor(logging.DEBUG):
            stats = self.simulator.stats()
            logger.debug("Frame %d t=%.3fs substeps=%d mean_y=%.4f max_speed=%.3f Jp=[%.3f, %.3f]",
                         self._frame, self._t, n, stats['mean_y'], stats['max_speed'],
                         stats['jp_min'], stats['jp_max'])

    def particle_info(self):
        return self.simulator.particle_info()

    def render(self):
        if self.renderer is None:
            return None
        return self.renderer.render(self.particle_info(), self._t)
