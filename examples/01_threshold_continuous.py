import numpy as np
from sensible_cogmodels import threshold_c

rng = np.random.default_rng(0)
a = np.linspace(0, 10, 40)
nu_true = 4.0
y = a - nu_true + rng.normal(0, 0.5, size=a.size)

D = {"y": y, "a": a}

# Parameters held at their start values: no solver runs.
M = threshold_c("y ~ a", D, fix="start")
print(M.get_parameters())
print(M.predict()[:5])

# Fit the threshold by least squares.
M = threshold_c("y ~ a", D)
res = M.fitted
print(res.summary(digits=4))
print("MSE:", M.mean_squared_error())
print("nu ±:", res["nu"].u)
