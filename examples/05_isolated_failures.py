import logging
import warnings

import numpy as np

from marquardt import models, tlmfit

logging.basicConfig(level=logging.WARNING)

model = models.gaussian_with_offset()
rng = np.random.default_rng(4)
x = np.linspace(-5, 5, 80)

y = np.stack(
    [
        model.eval(x, x0=0.0, y0=0.1, a=1.0, sigma=1.0),
        model.eval(x, x0=1.0, y0=0.0, a=2.0, sigma=0.7),
        np.full(x.size, 0.3),  # no peak at all
    ]
)
y = y + rng.normal(0, 0.05, size=y.shape)

# With on_error="isolate" a failed item does not abort the batch.
with warnings.catch_warnings():
    warnings.simplefilter("ignore", UserWarning)
    out = tlmfit(x, y, 0.05, model, [0.5, 0.0, 1.0, 1.0], max_iter=50, on_error="isolate")

for i in range(len(out)):
    print(i, out.success[i], out.message[i], out.params[i])
