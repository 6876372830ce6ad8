import dataclasses

import pytest
import taichi as ti

from snowsim.config.base_config import Blob, Config


@pytest.fixture(scope="session", autouse=True)
def taichi_runtime():
    # f64 and strict IEEE semantics so reconstruction tolerances are tight
    # and NaN positions are detectable.
    ti.init(arch=ti.cpu, default_fp=ti.f64, fast_math=False, random_seed=0)
    yield
    ti.reset()


def make_config(**overrides) -> Config:
    base = Config(dtype="float64", seed=0)
    return dataclasses.replace(base, **overrides)


def single_blob(center=(0.5, 0.5), count=100, tag=0xFFFFFF, velocity=(0.0, 0.0)):
    return (Blob(center=center, count=count, tag=tag, velocity=velocity),)
