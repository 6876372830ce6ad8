# --------------------------------------------------------------------------------
# Copyright (c) 2025 Krushang Gabani
# All rights reserved.
#
# Exception types raised by the snow simulator.
#
# Author: Krushang Gabani
# Date: July 7, 2025
# --------------------------------------------------------------------------------


class ConfigurationError(ValueError):
    """Invalid grid, material or blob parameters, detected at construction."""


class UnstableSimulationError(RuntimeError):
    """
    Raised when the particle state has left the grid or become non-finite.

    Once raised, the solver refuses to advance until it is reset.
    """

    def __init__(self, message, n_escaped=0):
        super().__init__(message)
        self.n_escaped = n_escaped
