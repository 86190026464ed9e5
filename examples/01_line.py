import numpy as np
import matplotlib.pyplot as plt
from marquardt import FitData, lmfit, models

model = models.straight_line()

# Five noisy points on a line of slope ~0.95.
x = np.arange(5.0)
y = np.array([1.1, 1.9, 3.05, 4.0, 4.9])

y_fit, params, cov, iters = lmfit(x, y, 1.0, model, [0.0, 1.0])
print("params:", params, "iterations:", iters)
print("covariance:\n", cov)

# Same fit through FitData, which also keeps labels for plotting.
data = FitData.normal(x=x, y=y, sigma=0.1, x_label="x", y_label="y", label="data")
res = model.fit(data, p0={"m": 0.0, "b": 1.0})
print(res.summary(digits=4))

fig, ax = data.plot(result=res, show_params=True)
ax.legend()
plt.show()
