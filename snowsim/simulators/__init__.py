from .grid import BackgroundGrid
from .mls_mpm import MLS_MPM
from .particles import ParticleStore, scatter_disc, uniform_sampler

__all__ = ["BackgroundGrid", "MLS_MPM", "ParticleStore", "scatter_disc", "uniform_sampler"]
