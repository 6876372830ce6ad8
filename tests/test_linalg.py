import numpy as np
import pytest

from snowsim.linalg import clamp_singular_values_batch, polar_decompose_batch, svd_batch


def mat_equal(A, B, tol=1e-9):
    return np.max(np.abs(np.asarray(A) - np.asarray(B))) < tol


def rotation(theta):
    c, s = np.cos(theta), np.sin(theta)
    return np.array([[c, -s], [s, c]])


CASES = {
    'identity': np.eye(2),
    'rotation': rotation(0.7),
    'scale': np.diag([1.3, 0.4]),
    'shear': np.array([[1.0, 0.5], [0.0, 1.0]]),
    'rotated_stretch': rotation(-2.1) @ np.diag([1.02, 0.97]) @ rotation(0.3),
    'near_singular': np.array([[1.0, 2.0], [0.5, 1.0 + 1e-7]]),
    'negative_det': np.array([[0.0, 1.0], [1.0, 0.0]]),
    'reflection_scale': np.array([[-1.5, 0.2], [0.1, 0.8]]),
}


@pytest.fixture(params=sorted(CASES))
def matrix(request):
    return CASES[request.param]


def test_svd_reconstructs(matrix):
    U, sig, V = svd_batch(matrix[None])
    U, sig, V = U[0], sig[0], V[0]

    assert mat_equal(U @ sig @ V.T, matrix, tol=1e-4)
    assert mat_equal(U.T @ U, np.eye(2))
    assert mat_equal(V.T @ V, np.eye(2))
    assert sig[0, 1] == 0 and sig[1, 0] == 0
    assert sig[0, 0] >= sig[1, 1]


def test_svd_random_batch():
    rng = np.random.default_rng(42)
    mats = rng.uniform(-2.0, 2.0, size=(256, 2, 2))
    U, sig, V = svd_batch(mats)

    recon = np.einsum('nij,njk,nlk->nil', U, sig, V)
    assert mat_equal(recon, mats, tol=1e-4)
    assert np.all(sig[:, 0, 0] >= sig[:, 1, 1])
    # singular values agree with numpy up to the sign of the smaller one
    ref = np.linalg.svd(mats, compute_uv=False)
    assert np.allclose(sig[:, 0, 0], ref[:, 0], atol=1e-9)
    assert np.allclose(np.abs(sig[:, 1, 1]), ref[:, 1], atol=1e-9)


def test_svd_of_diagonal_keeps_diagonal():
    U, sig, V = svd_batch(np.diag([0.5, 2.0])[None])
    assert mat_equal(sig[0], np.diag([2.0, 0.5]))
    assert mat_equal(U[0] @ sig[0] @ V[0].T, np.diag([0.5, 2.0]))


def test_polar_decompose(matrix):
    R, S = polar_decompose_batch(matrix[None])
    R, S = R[0], S[0]

    assert mat_equal(R.T @ R, np.eye(2))
    assert np.isclose(np.linalg.det(R), 1.0)
    assert mat_equal(R @ S, matrix)
    assert mat_equal(S, S.T)


def test_polar_decompose_of_rotation_is_exact():
    R, S = polar_decompose_batch(rotation(1.2)[None])
    assert mat_equal(R[0], rotation(1.2))
    assert mat_equal(S[0], np.eye(2))


def test_degenerate_polar_falls_back_to_identity():
    # a[0,0] + a[1,1] == 0 and a[1,0] - a[0,1] == 0: angle undefined
    for m in (np.zeros((2, 2)), np.array([[1.0, 2.0], [2.0, -1.0]])):
        R, S = polar_decompose_batch(m[None])
        assert mat_equal(R[0], np.eye(2))
        assert mat_equal(S[0], m)

    U, sig, V = svd_batch(np.zeros((1, 2, 2)))
    assert np.all(np.isfinite(U)) and np.all(np.isfinite(V))
    assert mat_equal(sig[0], np.zeros((2, 2)))


def test_clamp_singular_values():
    sigs = np.array([np.diag([1.5, 0.5]), np.diag([1.0, 0.99]), np.diag([0.9, 0.8])])
    out = clamp_singular_values_batch(sigs, 0.975, 1.0075)

    assert mat_equal(out[0], np.diag([1.0075, 0.975]))
    assert mat_equal(out[1], np.diag([1.0, 0.99]))
    assert mat_equal(out[2], np.diag([0.975, 0.975]))
    assert mat_equal(clamp_singular_values_batch(out, 0.975, 1.0075), out)


def test_batch_rejects_wrong_shape():
    with pytest.raises(ValueError):
        svd_batch(np.zeros((3, 3)))
