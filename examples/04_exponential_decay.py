"""
Example: exponential decay with a custom options mapping.

The default budget of 200 iterations is usually plenty; here the fit asks
for a tighter convergence threshold and shows how a run that stops early
can still be inspected through ConvergenceError.result.
"""

import numpy as np
import matplotlib.pyplot as plt

from marquardt import ConvergenceError, lmfit, models


def main() -> None:
    model = models.exponential()
    rng = np.random.default_rng(0)
    x = np.linspace(0.0, 8.0, 60)
    sigma = 0.05
    y = model.eval(x, width=-2.0, amp=3.0, offset=0.4) + rng.normal(0, sigma, size=x.size)

    p0 = [-1.0, 1.0, 0.0]
    res = lmfit(x, y, sigma, model, p0, {"MaxIter": 300, "Eps": 1e-6})
    print(res.summary(digits=4))

    try:
        lmfit(x, y, sigma, model, p0, {"MaxIter": 3})
    except ConvergenceError as e:
        print("stopped early:", e)
        print("last accepted params:", e.result.params)

    for rec in res.history[:5]:
        state = "accepted" if rec.accepted else "rejected"
        print(f"iter {rec.iteration}: chisq={rec.chisq:.4g} lam={rec.lam:.1e} {state}")

    fig, ax = res.plot(x, y, sigma=sigma, show_params=True)
    ax.legend()
    plt.show()


if __name__ == "__main__":
    main()
