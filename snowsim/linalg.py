# --------------------------------------------------------------------------------
# Copyright (c) 2025 Krushang Gabani
# All rights reserved.
#
# Closed-form 2x2 linear algebra for the snow solver: polar decomposition,
# singular value decomposition and the plasticity clamp of singular values.
# Matrices are Taichi small matrices indexed row-major, M[row, col].
#
# Author: Krushang Gabani
# Date: July 7, 2025
# --------------------------------------------------------------------------------

import numpy as np
import taichi as ti

# |S[0, 1]| below this counts as already diagonal
DIAGONAL_TOL = 1e-6


@ti.func
def polar_decompose(A):
    """
    A = R @ S with R a rotation and S symmetric.

    When A[0,0] + A[1,1] and A[1,0] - A[0,1] both vanish the rotation angle
    is undefined; R falls back to the identity and S = A.
    """
    x, y = A[0, 0] + A[1, 1], A[1, 0] - A[0, 1]
    norm = ti.sqrt(x * x + y * y)
    c, s = 1.0, 0.0
    if norm > 0.0:
        c = x / norm
        s = y / norm
    R = ti.Matrix([[c, -s], [s, c]])
    return R, R.transpose() @ A


@ti.func
def svd(A):
    """
    A = U @ sig @ V^T with sig diagonal and sig[0, 0] >= sig[1, 1].

    The symmetric factor of the polar decomposition is diagonalised by a
    single Jacobi rotation (c, s).
    """
    U0, S = polar_decompose(A)
    c, s = 1.0, 0.0
    s1, s2 = S[0, 0], S[1, 1]
    if ti.abs(S[0, 1]) >= DIAGONAL_TOL:
        tao = 0.5 * (S[0, 0] - S[1, 1])
        w = ti.sqrt(tao * tao + S[0, 1] * S[0, 1])
        t = 0.0
        if tao > 0:
            t = S[0, 1] / (tao + w)
        else:
            t = S[0, 1] / (tao - w)
        c = 1.0 / ti.sqrt(t * t + 1.0)
        s = -t * c
        s1 = c * c * S[0, 0] - 2 * c * s * S[0, 1] + s * s * S[1, 1]
        s2 = s * s * S[0, 0] + 2 * c * s * S[0, 1] + c * c * S[1, 1]
    V = ti.Matrix([[c, s], [-s, c]])
    if s1 < s2:
        tmp = s1
        s1 = s2
        s2 = tmp
        V = ti.Matrix([[-s, c], [-c, -s]])
    sig = ti.Matrix([[s1, 0.0], [0.0, s2]])
    return U0 @ V, sig, V


@ti.func
def clamp_singular_values(sig, lower, upper):
    return ti.Matrix([[ti.min(ti.max(sig[0, 0], lower), upper), sig[0, 1]],
                      [sig[1, 0], ti.min(ti.max(sig[1, 1], lower), upper)]])


# ---------------------------------------------------------------------------
# Batch entry points: run the same functions over (n, 2, 2) numpy arrays.
# ---------------------------------------------------------------------------

@ti.kernel
def _polar_kernel(m: ti.template(), r: ti.template(), s: ti.template()):
    for k in m:
        R, S = polar_decompose(m[k])
        r[k] = R
        s[k] = S


@ti.kernel
def _svd_kernel(m: ti.template(), u: ti.template(), sig: ti.template(), v: ti.template()):
    for k in m:
        U, SIG, V = svd(m[k])
        u[k] = U
        sig[k] = SIG
        v[k] = V


@ti.kernel
def _clamp_kernel(sig: ti.template(), out: ti.template(), lower: float, upper: float):
    for k in sig:
        out[k] = clamp_singular_values(sig[k], lower, upper)


def _as_batch(mats) -> np.ndarray:
    mats = np.asarray(mats, dtype=np.float64)
    if mats.shape[-2:] != (2, 2):
        raise ValueError(f"expected matrices of shape (..., 2, 2), got {mats.shape}")
    return mats.reshape(-1, 2, 2)


def _matrix_fields(n, count, dt):
    return [ti.Matrix.field(2, 2, dtype=dt, shape=n) for _ in range(count)]


def polar_decompose_batch(mats, dt=ti.f64):
    """Returns (R, S) arrays of shape (n, 2, 2)."""
    mats = _as_batch(mats)
    m, r, s = _matrix_fields(len(mats), 3, dt)
    m.from_numpy(mats)
    _polar_kernel(m, r, s)
    return r.to_numpy(), s.to_numpy()


def svd_batch(mats, dt=ti.f64):
    """Returns (U, sig, V) arrays of shape (n, 2, 2)."""
    mats = _as_batch(mats)
    m, u, sig, v = _matrix_fields(len(mats), 4, dt)
    m.from_numpy(mats)
    _svd_kernel(m, u, sig, v)
    return u.to_numpy(), sig.to_numpy(), v.to_numpy()


def clamp_singular_values_batch(sigs, lower, upper, dt=ti.f64):
    sigs = _as_batch(sigs)
    sig, out = _matrix_fields(len(sigs), 2, dt)
    sig.from_numpy(sigs)
    _clamp_kernel(sig, out, lower, upper)
    return out.to_numpy()
