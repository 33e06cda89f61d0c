import numpy as np
import matplotlib.pyplot as plt
from easyphys import Fitter


def line(x, a, b):
    return a * x + b


rng = np.random.default_rng(0)
x = np.linspace(0, 10, 20)
sigma = 1.2
y = line(x, 2.0, -1.0) + rng.normal(0, sigma, size=x.size)

fitter = Fitter(line, xlabel="x", ylabel="y").set_data(x, y, sigma).fit()

print(fitter.read("a"), "±", fitter.parameters.uncertainty("a"))
print(fitter.read("b"), "±", fitter.parameters.uncertainty("b"))
print("reduced chi2:", fitter.reduced_chi_squared())
print(fitter)

fig, (ax, ax_resid) = fitter.plot()
ax.plot(x, line(x, 2.0, -1.0), "k:", lw=1, label="true")
ax.legend()
plt.show()
