import numpy as np
from scipy.special import expit

from sensible_cogmodels import threshold, threshold_d

D = {"y": np.repeat([0, 1], 5), "a": np.arange(1, 11)}

# Fixed threshold, deterministic choice: y = 1 for a >= nu.
M = threshold("y ~ a", D, fix={"nu": 5}, choicerule="argmax")
print(M.predict())

# Softmax with everything at start values.
M = threshold_d("y ~ a", D, fix="start")
print(M.predict())
print("loglik:", M.loglikelihood())

# Noisy choices: fit nu and the softmax temperature tau.
rng = np.random.default_rng(1)
a = rng.uniform(0, 10, size=300)
y = rng.binomial(1, expit((a - 5.0) / 1.0))
M = threshold_d("y ~ a", {"y": y, "a": a})
print(M.fitted.summary())
print("AIC:", M.aic(), "BIC:", M.bic())
