import numpy as np
import pytest

from sensible_cogmodels import AVAILABLE_CHOICERULES, ConfigurationError, get_choicerule


def test_registry():
    assert set(AVAILABLE_CHOICERULES) == {"softmax", "epsilon", "argmax"}
    assert get_choicerule("SoftMax").name == "softmax"
    with pytest.raises(ConfigurationError, match="Unknown choice rule"):
        get_choicerule("luce")
    with pytest.raises(ConfigurationError):
        get_choicerule(42)


def test_custom_rule_passes_through():
    class Half:
        name = "half"

        def parspace(self):
            from sensible_cogmodels import ParameterSpace

            return ParameterSpace()

        def apply(self, x, **pars):
            return np.full(np.shape(x), 0.5)

    rule = Half()
    assert get_choicerule(rule) is rule


def test_softmax_is_logistic_in_distance():
    rule = get_choicerule("softmax")
    assert rule.parspace().names == ("tau",)

    x = np.array([-2.0, 0.0, 2.0])
    p = rule.apply(x, tau=1.0)
    assert p[1] == pytest.approx(0.5)
    assert p[2] == pytest.approx(1.0 / (1.0 + np.exp(-2.0)))
    assert p[0] + p[2] == pytest.approx(1.0)

    # Small temperature approaches a step; no overflow warnings.
    with np.errstate(over="raise"):
        sharp = rule.apply(np.array([-50.0, 50.0]), tau=0.0001)
    assert sharp[0] == pytest.approx(0.0)
    assert sharp[1] == pytest.approx(1.0)


def test_epsilon_mixes_step_and_chance():
    rule = get_choicerule("epsilon")
    p = rule.apply(np.array([-1.0, 0.0, 1.0]), eps=0.2)
    assert np.allclose(p, [0.1, 0.9, 0.9])


def test_argmax_step_includes_zero():
    rule = get_choicerule("argmax")
    assert len(rule.parspace()) == 0
    assert np.array_equal(rule.apply(np.array([-0.1, 0.0, 3.0])), [0.0, 1.0, 1.0])
