import numpy as np
from scipy.special import expit

from sensible_cogmodels import FitFailureError, threshold

rng = np.random.default_rng(2)
a = rng.uniform(0, 10, size=200)
y = rng.binomial(1, expit((a - 6.0) / 0.8))
D = {"y": y, "a": a}

# Hold nu at 6 and fit only tau.
M = threshold("y ~ a", D, fix={"nu": 6.0}, choicerule="softmax")
print(M.get_parameters())

# Hold tau and fit nu with a global optimiser.
M = threshold(
    "y ~ a",
    D,
    fix={"tau": 0.8},
    choicerule="softmax",
    options={
        "solver": "scipy.differential_evolution",
        "solver_options": {"seed": 0, "maxiter": 50},
    },
)
print(M.fitted.summary())

# Leave the first 20 trials out of the fit and narrow the range of nu.
M = threshold(
    "y ~ a",
    D,
    choicerule="softmax",
    discount=20,
    options={"lb": {"nu": 4.0}, "ub": {"nu": 8.0}},
)
print(M.nobs(), M.get_parameters())

# Construct without fitting, then fit explicitly.
M = threshold("y ~ a", D, choicerule="epsilon", options={"fit": False})
print("start:", M.get_parameters())
try:
    M.fit()
    print("fitted:", M.get_parameters())
except FitFailureError as exc:
    print("fit failed:", exc.message, exc.loss, exc.nit)
