"""Unit tests for configuration dataclasses and error types."""

import json
import warnings

import numpy as np
import pytest

from gpslam.config import ExperimentConfig, GPPriorConfig, OptimizerParams
from gpslam.errors import GPConfigurationError, JacobianRequestError, NumericalDegeneracyError


class TestGPPriorConfig:
    def test_qc_matrix(self):
        cfg = GPPriorConfig(delta_t=0.5, qc_diag=(0.01, 0.02, 0.03))
        np.testing.assert_array_equal(cfg.qc, np.diag([0.01, 0.02, 0.03]))

    def test_default_qc(self):
        cfg = GPPriorConfig(delta_t=1.0)
        np.testing.assert_array_equal(cfg.qc, 0.01 * np.eye(3))

    @pytest.mark.parametrize("delta_t", [0.0, -0.5])
    def test_invalid_delta_t(self, delta_t):
        with pytest.raises(GPConfigurationError):
            GPPriorConfig(delta_t=delta_t)

    def test_non_numeric_delta_t(self):
        with pytest.raises(TypeError):
            GPPriorConfig(delta_t="0.5")

    @pytest.mark.parametrize("qc_diag", [(0.01, 0.01), (0.01, 0.0, 0.01), (0.01, -1.0, 0.01)])
    def test_invalid_qc_diag(self, qc_diag):
        with pytest.raises(GPConfigurationError):
            GPPriorConfig(delta_t=0.5, qc_diag=qc_diag)

    def test_from_dict(self):
        cfg = GPPriorConfig.from_dict({"delta_t": 2, "qc_diag": [0.1, 0.2, 0.3]})
        assert cfg.delta_t == 2.0
        assert cfg.qc_diag == (0.1, 0.2, 0.3)


class TestOptimizerParams:
    def test_defaults(self):
        params = OptimizerParams()
        assert params.method == "gauss_newton"
        assert params.max_iterations == 100
        assert params.error_tol == 0.0

    def test_unknown_method(self):
        with pytest.raises(ValueError, match="Unknown method"):
            OptimizerParams(method="dogleg")

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_iterations": 0},
            {"initial_lambda": 0.0},
            {"relative_error_tol": -1e-3},
            {"absolute_error_tol": -1e-3},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            OptimizerParams(**kwargs)

    def test_large_iteration_budget_warns(self):
        with pytest.warns(UserWarning, match="max_iterations"):
            OptimizerParams(max_iterations=20000)

    def test_normal_budget_does_not_warn(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            OptimizerParams(max_iterations=500)


class TestExperimentConfig:
    def test_from_json(self, tmp_path):
        path = tmp_path / "experiment.json"
        path.write_text(json.dumps({
            "gp": {"delta_t": 0.5, "qc_diag": [0.01, 0.01, 0.02]},
            "optimizer": {"method": "levenberg_marquardt", "max_iterations": 50},
        }))
        cfg = ExperimentConfig.from_json(path)
        assert cfg.gp.delta_t == 0.5
        assert cfg.gp.qc_diag == (0.01, 0.01, 0.02)
        assert cfg.optimizer.method == "levenberg_marquardt"
        assert cfg.optimizer.max_iterations == 50

    def test_optimizer_section_optional(self, tmp_path):
        path = tmp_path / "experiment.json"
        path.write_text(json.dumps({"gp": {"delta_t": 0.1, "qc_diag": [1.0, 1.0, 1.0]}}))
        cfg = ExperimentConfig.from_json(str(path))
        assert cfg.optimizer == OptimizerParams()

    def test_invalid_file_content(self, tmp_path):
        path = tmp_path / "experiment.json"
        path.write_text(json.dumps({"gp": {"delta_t": -1.0, "qc_diag": [1.0, 1.0, 1.0]}}))
        with pytest.raises(GPConfigurationError):
            ExperimentConfig.from_json(path)

    def test_to_dict_roundtrip(self):
        cfg = ExperimentConfig(gp=GPPriorConfig(delta_t=0.5))
        data = cfg.to_dict()
        assert data["gp"]["delta_t"] == 0.5
        assert data["optimizer"]["method"] == "gauss_newton"
        restored = ExperimentConfig(
            gp=GPPriorConfig.from_dict(data["gp"]),
            optimizer=OptimizerParams(**data["optimizer"]),
        )
        assert restored == cfg


class TestErrorHierarchy:
    def test_configuration_error_is_value_error(self):
        assert issubclass(GPConfigurationError, ValueError)

    def test_degeneracy_error_is_arithmetic_error(self):
        assert issubclass(NumericalDegeneracyError, ArithmeticError)

    def test_request_error_is_key_error(self):
        with pytest.raises(KeyError):
            raise JacobianRequestError("landmark")
