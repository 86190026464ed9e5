import numpy as np
import pytest

from marquardt import LinearSolver, ShapeMismatchError, SingularMatrixError


def test_factorize_and_solve():
    solver = LinearSolver()
    a = np.array([[4.0, 1.0], [1.0, 3.0]])
    b = np.array([1.0, 2.0])

    x = solver.solve(solver.factorize(a), b)

    assert np.allclose(a @ x, b)


def test_solve_requires_pivoting():
    solver = LinearSolver()
    a = np.array([[0.0, 1.0], [1.0, 0.0]])

    x = solver.solve(solver.factorize(a), np.array([2.0, 3.0]))

    assert np.allclose(x, [3.0, 2.0])


def test_singular_matrix_raises():
    solver = LinearSolver()
    with pytest.raises(SingularMatrixError):
        solver.factorize(np.array([[1.0, 2.0], [2.0, 4.0]]))
    with pytest.raises(SingularMatrixError):
        solver.factorize(np.zeros((3, 3)))


def test_singular_error_is_a_linalg_error():
    with pytest.raises(np.linalg.LinAlgError):
        LinearSolver().invert(np.zeros((2, 2)))


def test_non_finite_matrix_raises():
    with pytest.raises(SingularMatrixError, match="non-finite"):
        LinearSolver().factorize(np.array([[1.0, np.nan], [0.0, 1.0]]))


def test_non_square_matrix_raises():
    with pytest.raises(ShapeMismatchError):
        LinearSolver().factorize(np.ones((2, 3)))
    with pytest.raises(ShapeMismatchError):
        LinearSolver().invert(np.ones(3))


def test_rhs_shape_is_checked():
    solver = LinearSolver()
    lu = solver.factorize(np.eye(3))
    with pytest.raises(ShapeMismatchError):
        solver.solve(lu, np.ones(2))


def test_invert_matches_numpy():
    rng = np.random.default_rng(0)
    j = rng.normal(size=(20, 4))
    alpha = j.T @ j

    inv = LinearSolver().invert(alpha)

    assert np.allclose(inv, np.linalg.inv(alpha))
    assert np.allclose(alpha @ inv, np.eye(4), atol=1e-10)


def test_numerically_singular_matrix_raises():
    # second pivot is two ulps, far below what the matrix scale supports
    a = np.array([[1.0, 1.0], [1.0, 1.0 + 2 * np.finfo(float).eps]])
    solver = LinearSolver()

    with pytest.raises(SingularMatrixError, match="numerically singular"):
        solver.factorize(a)
    with pytest.raises(SingularMatrixError):
        solver.invert(a)


def test_rank_deficient_normal_matrix_raises():
    # alpha from two collinear Jacobian columns
    with pytest.raises(SingularMatrixError):
        LinearSolver().invert(np.array([[30.0, 60.0], [60.0, 120.0]]))


def test_factorization_reports_condition():
    lu = LinearSolver().factorize(np.diag([1.0, 4.0]))
    assert lu.rcond == pytest.approx(0.25)
