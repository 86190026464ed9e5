import numpy as np
import matplotlib.pyplot as plt

from marquardt import models, tlmfit

model = models.straight_line()

rng = np.random.default_rng(123)
xs = []
ys = []
sigmas = []

for i in range(3):
    n = 30 + 10 * i
    x = np.sort(rng.uniform(-2, 2, size=n))
    sigma = 0.1 + 0.05 * rng.random(size=n)
    y = 0.5 * x - 0.1 + rng.normal(0, sigma)
    xs.append(x)
    ys.append(y)
    sigmas.append(sigma)

out = tlmfit(xs, ys, sigmas, model, [0.0, 0.0])
print(out.summary(digits=4))

# Iterating a batch result gives (fitted y, params) per dataset.
for i, (y_fit, p) in enumerate(out):
    print(f"dataset {i}: m={p[0]:.4f} b={p[1]:.4f} ({y_fit.size} points)")

fig, axs = plt.subplots(1, len(xs), figsize=(12, 3.5), sharey=True, constrained_layout=True)
for i, ax in enumerate(axs):
    out[i].plot(xs[i], ys[i], sigma=sigmas[i], ax=ax)
    xg = np.linspace(float(xs[i].min()), float(xs[i].max()), 400)
    ax.plot(xg, 0.5 * xg - 0.1, "k--", lw=1, label="true")
    ax.set_title(f"dataset {i}")
    ax.legend()
plt.show()
