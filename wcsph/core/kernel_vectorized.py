"""
Vectorized Wendland C2 kernel for 2-D SPH.

Implements:
- Kernel evaluation W(r, h)
- Radial derivative dW/dr (the gradient is dW/dr * e_ij)
- Reference number density of a square lattice
"""

import numpy as np


class WendlandC2Kernel:
    """Wendland C2 kernel - compact support with C2 continuity.

    W(q) = σ (1 - q/2)⁴ (1 + 2q)   for 0 ≤ q ≤ 2, zero beyond,

    with q = r/h and σ = 7 / (4π h²) in 2-D. Support radius is 2h.
    """

    def __init__(self, h: float, dim: int = 2):
        """Initialize kernel with dimension-specific normalization.

        Args:
            h: Smoothing length (uniform for the body)
            dim: Spatial dimension (only 2 is supported)
        """
        if dim != 2:
            raise ValueError(f"Unsupported dimension: {dim}")
        if not h > 0.0:
            raise ValueError(f"Smoothing length must be positive, got {h}")
        self.dim = dim
        self.h = float(h)
        self.norm_factor = 7.0 / (4.0 * np.pi * self.h**2)

    @property
    def cutoff_radius(self) -> float:
        return 2.0 * self.h

    def W_vectorized(self, r: np.ndarray) -> np.ndarray:
        """Vectorized kernel evaluation.

        Args:
            r: Distances, any shape

        Returns:
            Kernel values with same shape as r
        """
        r = np.asarray(r, dtype=np.float64)
        q = r / (2.0 * self.h)  # Note: Wendland uses 2h as support radius

        w = np.zeros_like(r)
        mask = q < 1.0
        q_masked = q[mask]
        w[mask] = (1 - q_masked)**4 * (1 + 4*q_masked)

        return w * self.norm_factor

    def dW_vectorized(self, r: np.ndarray) -> np.ndarray:
        """Vectorized radial derivative dW/dr (non-positive).

        Args:
            r: Distances, any shape

        Returns:
            dW/dr with same shape as r
        """
        r = np.asarray(r, dtype=np.float64)
        q = r / (2.0 * self.h)

        dw = np.zeros_like(r)
        mask = q < 1.0
        q_masked = q[mask]
        # d/dq [(1-q)^4 (1+4q)] = -20 q (1-q)^3, and dq/dr = 1/(2h)
        dw[mask] = -20.0 * q_masked * (1 - q_masked)**3 / (2.0 * self.h)

        return dw * self.norm_factor

    def W_self(self) -> float:
        """Kernel value at r=0 (self-contribution)."""
        return self.norm_factor

    def reference_number_density(self, spacing: float) -> float:
        """Σ_j W(r_ij) over an infinite square lattice, self included.

        This is the number density a particle sees in the undisturbed
        lattice; density summation divides by it so that the initial
        configuration sits exactly at the reference density.
        """
        n = int(np.ceil(self.cutoff_radius / spacing)) + 1
        offsets = np.arange(-n, n + 1) * spacing
        gx, gy = np.meshgrid(offsets, offsets)
        r = np.sqrt(gx**2 + gy**2)
        return float(np.sum(self.W_vectorized(r)))

    def normalization_integral(self, n_samples: int = 4000) -> float:
        """Integrate W over its circular support (should be ≈1)."""
        r = np.linspace(0.0, self.cutoff_radius, n_samples)
        dr = r[1] - r[0]
        return float(2 * np.pi * np.sum(r * self.W_vectorized(r)) * dr)
