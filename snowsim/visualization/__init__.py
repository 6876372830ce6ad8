from .recorder import Recorder
from .Visualizer import Visualizer

__all__ = ["Recorder", "Visualizer"]
