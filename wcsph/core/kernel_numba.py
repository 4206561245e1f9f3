"""Scalar Wendland C2 kernel for use inside Numba-compiled loops."""

import numpy as np
import numba as nb


@nb.njit(cache=True)
def wendland_W(r: float, h: float) -> float:
    """Wendland C2 kernel evaluation (2D)."""
    q = r / (2.0 * h)
    if q >= 1.0:
        return 0.0
    norm_2d = 7.0 / (4.0 * np.pi * h * h)
    return norm_2d * (1.0 - q) ** 4 * (1.0 + 4.0 * q)


@nb.njit(cache=True)
def wendland_dW(r: float, h: float) -> float:
    """Radial derivative dW/dr of the Wendland C2 kernel (2D)."""
    q = r / (2.0 * h)
    if q >= 1.0:
        return 0.0
    norm_2d = 7.0 / (4.0 * np.pi * h * h)
    return norm_2d * (-20.0 * q * (1.0 - q) ** 3) / (2.0 * h)
