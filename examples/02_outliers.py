import numpy as np
import matplotlib.pyplot as plt
from easyphys import Fitter, models

rng = np.random.default_rng(1)
x = np.linspace(0, 10, 100)
y = models.exponential_decay(x, 1.0, 2.0) + 0.01 * rng.normal(size=x.size)
y[[10, 40, 75]] += 0.2  # glitches

fitter = Fitter(models.exponential_decay).set_data(x, y, 0.01)

# Masking and fitting are separate steps; chain them to refit without outliers.
fitter.fit().ignore_outliers(5.0).fit()

excluded = np.flatnonzero(~fitter.active_mask())
print("excluded points:", excluded)
print(fitter.summary())

fitter.plot(yscale="linear", xlabel="time", ylabel="signal")
plt.show()
