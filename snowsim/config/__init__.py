from .base_config import Blob, Config, DEFAULT_BLOBS, load_config

__all__ = ['Blob', 'Config', 'DEFAULT_BLOBS', 'load_config']
