import numpy as np
import matplotlib.pyplot as plt
from marquardt import models, tlmfit

model = models.sinusoid(name="wave")

rng = np.random.default_rng(2)
N_SYSTEMS, N = 4, 40
x = np.linspace(0, 1, N)

A0, F0 = 2.0, 3.0
A = A0 * (1 + 0.08 * rng.normal(size=N_SYSTEMS))
F = F0 * (1 + 0.03 * rng.normal(size=N_SYSTEMS))

sigma = 0.2
y_clean = np.stack(
    [
        model.eval(x, amplitude=A[i], offset=0.0, frequency=F[i], phase=np.pi / 3)
        for i in range(N_SYSTEMS)
    ]
)
y = y_clean + rng.normal(0, sigma, size=y_clean.shape)

# One shared guess; every system is fitted with its own damping and stopping test.
out = tlmfit(x, y, sigma, model, [2.0, 0.0, 3.0, 1.0], parallel="threads")
print(out.summary(digits=4))

xg = np.linspace(x.min(), x.max(), 400)
fig, axs = plt.subplots(2, 2, figsize=(10, 7), sharex=True, sharey=True, constrained_layout=True)
for i, ax in enumerate(np.asarray(axs).ravel()):
    out[i].plot(x, y[i], sigma=sigma, ax=ax, xg=xg)
    ax.set_title(f"system {i}")
    ax.legend()

plt.show()
