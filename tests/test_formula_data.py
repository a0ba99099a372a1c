import numpy as np
import pytest

from sensible_cogmodels import ConfigurationError, InvalidInputError
from sensible_cogmodels.data import as_input, prepare_dataset
from sensible_cogmodels.formula import Formula


def _data():
    return {"y": np.repeat([0.0, 1.0], 5), "a": np.arange(1.0, 11.0), "b": np.ones(10)}


def test_parse_names_without_intercept():
    f = Formula.parse("y ~ a")
    assert f.response_names == ("y",)
    assert f.input_names == ("a",)
    assert f.has_response

    x = f.get_input(_data())
    assert x.shape == (10, 1)
    assert np.array_equal(x[:, 0], np.arange(1.0, 11.0))
    assert np.array_equal(f.get_response(_data()), np.repeat([0.0, 1.0], 5))


def test_parse_one_sided_formula():
    f = Formula.parse("~ a + b")
    assert not f.has_response
    assert f.input_names == ("a", "b")
    assert f.get_response(_data()) is None
    assert f.get_input(_data()).shape == (10, 2)


@pytest.mark.parametrize("bad", ["y a", 3, "y ~ 1", "y ~ (a"])
def test_parse_rejects_bad_formulas(bad):
    with pytest.raises(ConfigurationError):
        Formula.parse(bad)


def test_missing_variable_is_invalid_input():
    f = Formula.parse("y ~ z")
    with pytest.raises(InvalidInputError, match="predictor"):
        f.get_input(_data())


def test_caller_names_are_not_visible_to_formula():
    z = np.arange(10.0)  # noqa: F841
    with pytest.raises(InvalidInputError):
        Formula.parse("y ~ z").get_input(_data())


def test_missing_values_are_invalid_input():
    d = _data()
    d["a"] = d["a"].copy()
    d["a"][3] = np.nan
    with pytest.raises(InvalidInputError):
        prepare_dataset(Formula.parse("y ~ a"), d)


def test_infinite_predictor_is_invalid_input():
    d = _data()
    d["a"] = d["a"].copy()
    d["a"][0] = np.inf
    with pytest.raises(InvalidInputError, match="non-finite"):
        prepare_dataset(Formula.parse("y ~ a"), d)


def test_dataset_discount_drops_leading_rows():
    ds = prepare_dataset(Formula.parse("y ~ a"), _data())
    assert ds.nobs == 10
    assert ds.response_name == "y"

    tail = ds.discounted(3)
    assert tail.nobs == 7
    assert tail.input[0, 0] == 4.0
    assert tail.response.shape == (7,)
    assert ds.discounted(0) is ds


def test_as_input_accepts_vectors_and_tables():
    f = Formula.parse("y ~ a")
    assert as_input([1, 3, 10], f, 1).shape == (3, 1)
    assert as_input(2.5, f, 1).shape == (1, 1)
    assert as_input({"a": np.array([1.0, 2.0])}, f, 1).shape == (2, 1)

    with pytest.raises(InvalidInputError, match="column"):
        as_input(np.ones((3, 2)), f, 1)
    with pytest.raises(InvalidInputError):
        as_input([1.0, np.nan], f, 1)
    with pytest.raises(InvalidInputError, match="numeric"):
        as_input(["x", "y"], f, 1)
