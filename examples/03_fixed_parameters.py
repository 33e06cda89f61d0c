import numpy as np
import matplotlib.pyplot as plt
from easyphys import ConvergenceWarning, Fitter, models
import warnings

rng = np.random.default_rng(2)
x = np.linspace(-5, 5, 60)
sigma = 0.05
y = models.gaussian(x, 2.0, 0.3, 1.1, 0.2) + rng.normal(0, sigma, size=x.size)

fitter = Fitter(models.gaussian).set_data(x, y, sigma)

# Hold the baseline while locating the peak, then release it.
fitter.fix(offset=0.2).set_guess(amplitude=1.5, center=0.0, sigma=1.0).fit()
print(fitter.results.free_names, fitter.results.params)

fitter.free("offset").fit(solver="scipy.curve_fit")
for name, value in fitter.correlated_values().items():
    print(f"{name:>10s} = {value:.2uP}")

# A fit over a window that is too narrow may not converge; this is reported,
# not raised.
with warnings.catch_warnings(record=True) as caught:
    warnings.simplefilter("always", ConvergenceWarning)
    fitter.fit(xmin=3.0, xmax=5.0, solver_options={"maxfev": 5})
print(fitter.state, [str(w.message) for w in caught])

fitter.set(xmin=None, xmax=None, solver_options={}).fit()
fitter.plot()
plt.show()
