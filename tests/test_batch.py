import logging

import numpy as np
import pytest

from marquardt import (
    BatchFitDriver,
    ConvergenceError,
    ShapeMismatchError,
    SingularMatrixError,
    lmfit,
    models,
    tlmfit,
)


def _noisy_lines(rng, x, sigma, params):
    line = models.straight_line()
    return np.stack(
        [line.eval(x, m=m, b=b) + rng.normal(0.0, sigma, x.size) for m, b in params],
        axis=0,
    )


def _trivial_and_hard():
    """Two datasets: one solved by its initial guess, one that needs many steps."""
    x = np.arange(5.0)
    easy = 2.0 * x + 1.0
    rng = np.random.default_rng(0)
    xh = np.linspace(0.0, 10.0, 30)
    hard = 30.0 * xh + 20.0 + rng.normal(0.0, 0.1, xh.size)
    return [x, xh], [easy, hard], [0.1, 0.1], [[2.0, 1.0], [0.0, 0.0]]


def test_common_x_matches_individual_fits():
    rng = np.random.default_rng(1)
    x = np.linspace(0.0, 1.0, 25)
    y = _noisy_lines(rng, x, 0.05, [(2.0, -0.5), (1.0, 0.2), (-3.0, 1.0)])

    out = tlmfit(x, y, 0.05, models.straight_line(), [0.0, 0.0])

    assert out.batch_shape == (3,)
    assert out.params.shape == (3, 2)
    assert out.y.shape == (3, 25)
    assert out.all_succeeded
    for i in range(3):
        single = lmfit(x, y[i], 0.05, models.straight_line(), [0.0, 0.0])
        np.testing.assert_array_equal(out.params[i], single.params)
        np.testing.assert_array_equal(out.y[i], single.y)
        assert out.iterations[i] == single.iterations


def test_batch_items_do_not_share_state():
    xs, ys, sigmas, p0s = _trivial_and_hard()

    with np.errstate(divide="ignore", invalid="ignore"):
        out = tlmfit(xs, ys, sigmas, models.straight_line(), p0s)

    # the exact guess stops on the first check whatever the other item does
    assert out.iterations[0] == 2
    assert out.iterations[1] > 2
    np.testing.assert_array_equal(out.params[0], [2.0, 1.0])
    assert out.params[1] == pytest.approx([30.0, 20.0], abs=0.5)


def test_ragged_batch_returns_list_of_fitted_values():
    rng = np.random.default_rng(2)
    xs = [np.linspace(0.0, 1.0, 10), np.linspace(0.0, 2.0, 17)]
    ys = [2.0 * x - 1.0 + rng.normal(0.0, 0.05, x.size) for x in xs]

    out = tlmfit(xs, ys, 0.05, models.straight_line(), [1.0, 0.0])

    assert out.batch_shape == (2,)
    assert isinstance(out.y, list)
    assert [yi.shape for yi in out.y] == [(10,), (17,)]
    for (yfit, p), x in zip(out, xs):
        assert np.allclose(yfit, p[0] * x + p[1])


def test_single_dataset_has_scalar_batch_shape():
    x = np.arange(5.0)
    y = np.array([1.1, 1.9, 3.05, 4.0, 4.9])

    out = tlmfit(x, y, 1.0, models.straight_line(), [0.0, 1.0])

    assert out.batch_shape == ()
    assert len(out) == 1
    assert out.params.shape == (2,)
    res = out[0]
    assert res.params == pytest.approx(np.polyfit(x, y, 1), abs=1e-4)
    with pytest.raises(IndexError):
        out[1]


def test_two_dimensional_batch_shape():
    rng = np.random.default_rng(4)
    x = np.linspace(0.0, 1.0, 12)
    flat = _noisy_lines(rng, x, 0.05, [(1.0, 0.0), (2.0, 0.0), (3.0, 0.0), (4.0, 0.0)])
    y = flat.reshape(2, 2, 12)

    out = tlmfit(x, y, 0.05, models.straight_line(), [0.0, 0.0])

    assert out.batch_shape == (2, 2)
    assert out.params.shape == (2, 2, 2)
    assert out.y.shape == (2, 2, 12)
    assert out.params[1, 0, 0] == pytest.approx(3.0, abs=0.2)
    assert out[1, 1].params[0] == pytest.approx(4.0, abs=0.2)


def test_per_item_initial_params_array():
    rng = np.random.default_rng(5)
    x = np.linspace(0.0, 1.0, 20)
    y = _noisy_lines(rng, x, 0.05, [(2.0, 0.0), (-2.0, 1.0)])
    p0 = np.array([[2.0, 0.0], [-2.0, 1.0]])

    out = tlmfit(x, y, 0.05, models.straight_line(), p0)

    for i in range(2):
        single = lmfit(x, y[i], 0.05, models.straight_line(), p0[i])
        np.testing.assert_array_equal(out.params[i], single.params)


def test_initial_params_count_mismatch_raises():
    x = np.linspace(0.0, 1.0, 10)
    y = np.zeros((3, 10))
    with pytest.raises(ValueError, match="do not match batch shape"):
        tlmfit(x, y, 1.0, models.straight_line(), np.zeros((2, 2)))


def test_failure_raises_by_default():
    xs, ys, sigmas, p0s = _trivial_and_hard()

    with np.errstate(divide="ignore", invalid="ignore"):
        with pytest.raises(ConvergenceError):
            tlmfit(xs, ys, sigmas, models.straight_line(), p0s, max_iter=1)


def test_isolate_keeps_successful_items(caplog):
    xs, ys, sigmas, p0s = _trivial_and_hard()

    with np.errstate(divide="ignore", invalid="ignore"):
        with caplog.at_level(logging.WARNING, logger="marquardt"):
            with pytest.warns(UserWarning, match=r"1 of 2 fits failed \(indices \[1\]\)"):
                out = tlmfit(
                    xs, ys, sigmas, models.straight_line(), p0s,
                    max_iter=1, on_error="isolate",
                )

    assert list(out.success) == [True, False]
    assert out.message[0] == "ok"
    assert out.message[1].startswith("ConvergenceError")
    np.testing.assert_array_equal(out.params[0], [2.0, 1.0])
    # a non-converged item still reports its last accepted state
    assert np.all(np.isfinite(out.params[1]))
    assert out.iterations[1] == 2
    assert out[0] is not None
    assert out[1] is None
    assert "batch item 1 failed" in caplog.text


def test_isolate_singular_item_reports_nan():
    xs = [np.zeros(5), np.arange(5.0)]
    ys = [np.ones(5), 2.0 * np.arange(5.0) + 0.5 + np.array([0.1, -0.1, 0.0, 0.1, -0.1])]

    with pytest.warns(UserWarning, match="fits failed"):
        out = tlmfit(xs, ys, 1.0, models.straight_line(), [1.0, 0.0], on_error="isolate")

    assert list(out.success) == [False, True]
    assert out.message[0].startswith("SingularMatrixError")
    assert np.all(np.isnan(out.params[0]))
    assert np.all(np.isnan(out.y[0]))
    assert out.covariance[0] is None
    assert out.covariance[1].shape == (2, 2)


def test_singular_item_raises_by_default():
    xs = [np.zeros(5), np.arange(5.0)]
    ys = [np.ones(5), np.arange(5.0)]
    with pytest.raises(SingularMatrixError):
        tlmfit(xs, ys, 1.0, models.straight_line(), [1.0, 0.0])


@pytest.mark.parametrize("on_error", ["raise", "isolate"])
def test_threads_match_serial(on_error):
    rng = np.random.default_rng(6)
    model = models.gaussian_with_offset()
    x = np.linspace(-4.0, 4.0, 60)
    truth = [(0.0, 0.1, 1.0, 1.0), (0.5, 0.0, 2.0, 0.8), (-1.0, 0.2, 1.5, 1.2)]
    y = np.stack(
        [
            model.eval(x, x0=x0, y0=y0, a=a, sigma=s) + rng.normal(0.0, 0.05, x.size)
            for x0, y0, a, s in truth
        ],
        axis=0,
    )
    p0 = [0.2, 0.1, 1.2, 1.0]

    serial = tlmfit(x, y, 0.05, model, p0, on_error=on_error)
    threaded = tlmfit(x, y, 0.05, model, p0, on_error=on_error, parallel="threads", max_workers=2)

    np.testing.assert_array_equal(serial.params, threaded.params)
    np.testing.assert_array_equal(serial.y, threaded.y)
    np.testing.assert_array_equal(serial.iterations, threaded.iterations)


def test_threads_raise_first_failure_in_input_order():
    xs = [np.arange(5.0), np.zeros(5), np.zeros(4)]
    ys = [np.arange(5.0) + 1.0, np.ones(5), np.ones(4)]
    driver = BatchFitDriver(models.straight_line(), parallel="threads")

    with pytest.raises(SingularMatrixError):
        driver.fit(xs, ys, 1.0, [1.0, 0.0])


def test_driver_accepts_options_mapping():
    driver = BatchFitDriver(models.straight_line(), {"maxiter": 7, "EPS": 1e-3})
    assert driver.options.max_iter == 7
    assert driver.options.eps == 1e-3


def test_driver_rejects_bad_modes():
    with pytest.raises(ValueError, match="on_error"):
        BatchFitDriver(models.straight_line(), on_error="ignore")
    with pytest.raises(ValueError, match="parallel"):
        BatchFitDriver(models.straight_line(), parallel="processes")


def test_iteration_yields_fitted_values_and_params():
    rng = np.random.default_rng(8)
    x = np.linspace(0.0, 1.0, 15)
    y = _noisy_lines(rng, x, 0.05, [(1.0, 1.0), (2.0, 2.0)])

    out = tlmfit(x, y, 0.05, models.straight_line(), [0.0, 0.0])

    pairs = list(out)
    assert len(pairs) == 2
    for i, (yfit, p) in enumerate(pairs):
        np.testing.assert_array_equal(yfit, out.y[i])
        np.testing.assert_array_equal(p, out.params[i])
    assert out.param_names == ("m", "b")


def test_summary_lists_every_item():
    rng = np.random.default_rng(9)
    x = np.linspace(0.0, 1.0, 15)
    y = _noisy_lines(rng, x, 0.05, [(1.0, 1.0), (2.0, 2.0)])

    text = tlmfit(x, y, 0.05, models.straight_line(), [0.0, 0.0]).summary()

    assert "batch_shape=(2,)" in text
    assert "m" in text and "b" in text
    assert len(text.splitlines()) == 5


def test_empty_batch_is_rejected():
    with pytest.raises(ShapeMismatchError, match="no datasets"):
        tlmfit(np.arange(5.0), np.empty((0, 5)), 1.0, models.straight_line(), [0.0, 0.0])
