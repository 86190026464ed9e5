import numpy as np
import pytest

from marquardt import FitData, models


def _data():
    x = np.linspace(0.0, 1.0, 20)
    sigma = 0.1
    y = 2.0 * x - 0.5 + np.random.default_rng(0).normal(0.0, sigma, size=x.size)
    return FitData.normal(
        x=x,
        y=y,
        sigma=sigma,
        x_label="time [s]",
        y_label="signal [arb]",
        label="data",
    )


def test_fitdata_labels_and_meta():
    fd = _data().with_meta(run=3)
    assert fd.meta == {"run": 3}

    relabelled = fd.with_labels(y_label="counts")
    assert relabelled.x_label == "time [s]"
    assert relabelled.y_label == "counts"
    assert fd.y_label == "signal [arb]"


def test_fitdata_append_and_sort():
    fd = FitData.normal(x=[0.0, 2.0], y=[1.0, 3.0], sigma=0.1)

    grown = fd.append(x=[1.0], y=[2.0])
    assert grown.sigma == 0.1
    assert np.array_equal(grown.x, [0.0, 2.0, 1.0])

    ordered = grown.sorted()
    assert np.array_equal(ordered.x, [0.0, 1.0, 2.0])
    assert np.array_equal(ordered.y, [1.0, 2.0, 3.0])

    mixed = fd.append(x=[1.0], y=[2.0], sigma=0.3)
    assert np.array_equal(mixed.sigma, [0.1, 0.1, 0.3])


def test_fitdata_append_requires_matching_shapes():
    fd = FitData.normal(x=[0.0, 1.0], y=[1.0, 2.0])
    with pytest.raises(ValueError, match="New y must match x shape"):
        fd.append(x=[2.0, 3.0], y=[1.0])


def test_plot_fitdata_uses_axis_labels():
    matplotlib = pytest.importorskip("matplotlib")
    matplotlib.use("Agg", force=True)
    import matplotlib.pyplot as plt

    fd = _data()
    res = models.straight_line().fit(fd, p0=[1.0, 0.0])

    fig, ax = fd.plot(result=res, show_params=True)

    assert ax.get_xlabel() == "time [s]"
    assert ax.get_ylabel() == "signal [arb]"
    assert len(ax.lines) >= 1
    assert any("m=" in t.get_text() for t in ax.texts)
    plt.close(fig)


def test_result_plot_draws_model_on_grid():
    matplotlib = pytest.importorskip("matplotlib")
    matplotlib.use("Agg", force=True)
    import matplotlib.pyplot as plt

    fd = _data()
    res = models.straight_line().fit(fd, p0=[1.0, 0.0])

    fig, ax = plt.subplots()
    out_fig, out_ax = res.plot(fd.x, fd.y, sigma=fd.sigma, ax=ax, xg=np.linspace(0.0, 1.0, 50))

    assert out_ax is ax
    assert out_fig is fig
    line = ax.lines[-1]
    assert line.get_xdata().shape == (50,)
    assert line.get_label() == "fit"
    plt.close(fig)
