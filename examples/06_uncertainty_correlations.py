"""
Example: covariance-aware uncertainties.

Fit a line, then compare predictions using:
 - correlated parameters from res.correlated()
 - independent parameters built from stderr only
"""

import numpy as np
import matplotlib.pyplot as plt
from uncertainties import ufloat

from marquardt import FitData, Model


def line(x, m, b):
    return m * x + b


def line_jac(x, m, b):
    return [x, 1.0]


def main() -> None:
    rng = np.random.default_rng(0)
    x = np.linspace(0.0, 10.0, 50)
    m_true, b_true = 2.0, -1.0
    sigma = 0.5
    y = line(x, m_true, b_true) + rng.normal(0, sigma, size=x.shape)

    model = Model.from_function(line, line_jac)
    data = FitData.normal(x=x, y=y, sigma=sigma, x_label="x", y_label="y", label="data")
    res = model.fit(data, p0={"m": 1.5, "b": -0.5})

    m_u, b_u = res.correlated()
    m_ind = ufloat(res["m"], res.stderr[0])
    b_ind = ufloat(res["b"], res.stderr[1])

    x0 = 10.0
    print("m:", m_u)
    print("b:", b_u)

    cov = res.covariance
    corr = cov[0, 1] / np.sqrt(cov[0, 0] * cov[1, 1])
    print("corr(m,b):", float(corr))
    print(f"predict at x0={x0} with covariance:", m_u * x0 + b_u)
    print(f"predict at x0={x0} assuming independence:", m_ind * x0 + b_ind)

    xg = np.linspace(float(x.min()), float(x.max()), 400)
    fig, ax = data.plot(result=res, xg=xg, line_kwargs={"label": "best fit", "color": "C0"})

    yfit = res.predict(xg)
    # Var(m x + b) = x^2 Var(m) + Var(b) + 2 x Cov(m,b)
    sigma_with_cov = np.sqrt(np.clip(xg * xg * cov[0, 0] + cov[1, 1] + 2.0 * xg * cov[0, 1], 0.0, np.inf))
    sigma_indep = np.sqrt(xg * xg * cov[0, 0] + cov[1, 1])

    ax.fill_between(
        xg,
        yfit - 2.0 * sigma_indep,
        yfit + 2.0 * sigma_indep,
        alpha=0.15,
        color="C1",
        label="~2σ assuming independence",
    )
    ax.fill_between(
        xg,
        yfit - 2.0 * sigma_with_cov,
        yfit + 2.0 * sigma_with_cov,
        alpha=0.15,
        color="C0",
        label="~2σ using covariance",
    )

    ax.legend()
    plt.show()


if __name__ == "__main__":
    main()
