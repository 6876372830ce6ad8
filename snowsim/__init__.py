from .config import DEFAULT_BLOBS, Blob, Config, load_config
from .errors import ConfigurationError, UnstableSimulationError
from .logging_config import setup_logging
from .simulators import MLS_MPM, BackgroundGrid, ParticleStore
from .snowenv import SnowEnv

__all__ = [
    "DEFAULT_BLOBS",
    "Blob",
    "Config",
    "load_config",
    "ConfigurationError",
    "UnstableSimulationError",
    "setup_logging",
    "MLS_MPM",
    "BackgroundGrid",
    "ParticleStore",
    "SnowEnv",
]
