"""
Confirmatory factor analysis estimator for DynamicFit.

Fits a CFA structure (``ModelSpec`` with or without values) to data with
factor variances fixed to 1 (``std.lv``), every factor correlation free,
free residual variances and the residual covariances named in the model.

Discrepancy functions (``T`` is the reported test statistic):

- ``ML``:   F = log|Sigma| + tr(S Sigma^-1) - log|S| - p,   T = N F
- ``GLS``:  F = 1/2 tr[((S - Sigma) S^-1)^2],               T = N F
- ``ULS``/``DWLS``/``WLS``: F = r' W r with r = vech(S - Sigma), T = N F,
  where W is I, diag(Gamma)^-1 or Gamma^-1 (Gamma = ADF fourth-moment matrix).

Fit indices follow lavaan's definitions: RMSEA with divisor ``N``, CFI
against the independence model, and Bentler's SRMR over the lower triangle
including the diagonal.

Optimization uses L-BFGS-B with analytic gradients: every discrepancy
returns dF/dSigma and the chain rule goes through the model Jacobian.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from .data_generation import sample_covariance

ESTIMATORS = ("ML", "GLS", "ULS", "DWLS", "WLS")
_VECH_ESTIMATORS = ("ULS", "DWLS", "WLS")

_PENALTY = 1e10
_MIN_RESIDUAL_VARIANCE = 1e-6
_MAX_FACTOR_CORRELATION = 0.999


@dataclass
class FitIndices:
    """Fit statistics of one CFA fit.

    Attributes:
        chisq: Test statistic.
        df: Model degrees of freedom.
        pvalue: Chi-square p-value of *chisq*.
        srmr: Standardized root mean square residual.
        rmsea: Root mean square error of approximation.
        cfi: Comparative fit index.
        converged: Whether the optimizer reported success.
    """

    chisq: float
    df: int
    pvalue: float
    srmr: float
    rmsea: float
    cfi: float
    converged: bool

    def is_usable(self) -> bool:
        """``True`` if the fit converged with finite SRMR, RMSEA and CFI."""
        return bool(self.converged and np.isfinite([self.srmr, self.rmsea, self.cfi]).all())

    def as_dict(self) -> Dict[str, Any]:
        return {
            "chisq": self.chisq,
            "df": self.df,
            "pvalue": self.pvalue,
            "srmr": self.srmr,
            "rmsea": self.rmsea,
            "cfi": self.cfi,
            "converged": self.converged,
        }


# ----------------------------------------------------------------------
# Parameterization
# ----------------------------------------------------------------------


class _Parameterization:
    """Maps a free-parameter vector to ``(Lambda, Phi, Theta)``.

    Parameter order: loadings (model order), factor correlations (upper
    triangle, row-major), residual variances (item order), residual
    covariances (model order).
    """

    def __init__(self, spec):
        self.items: List[str] = spec.items
        self.factors: List[str] = list(spec.factors)
        p, k = len(self.items), len(self.factors)
        self.p, self.k = p, k

        self.load_idx = [(self.items.index(par.rhs), self.factors.index(par.lhs)) for par in spec.loadings]
        self.phi_idx = [(a, b) for a in range(k) for b in range(a + 1, k)]
        self.cov_idx = [(self.items.index(par.lhs), self.items.index(par.rhs)) for par in spec.residual_correlations]

        self.n_load = len(self.load_idx)
        self.n_phi = len(self.phi_idx)
        self.n_params = self.n_load + self.n_phi + p + len(self.cov_idx)

    @property
    def df(self) -> int:
        return self.p * (self.p + 1) // 2 - self.n_params

    def bounds(self) -> List[Tuple[Optional[float], Optional[float]]]:
        return (
            [(None, None)] * self.n_load
            + [(-_MAX_FACTOR_CORRELATION, _MAX_FACTOR_CORRELATION)] * self.n_phi
            + [(_MIN_RESIDUAL_VARIANCE, None)] * self.p
            + [(None, None)] * len(self.cov_idx)
        )

    def start_values(self, S: np.ndarray) -> np.ndarray:
        sd = np.sqrt(np.diag(S))
        loads = [0.7 * sd[i] for i, _ in self.load_idx]
        return np.concatenate(
            [
                np.asarray(loads, dtype=float),
                np.zeros(self.n_phi),
                0.5 * np.diag(S),
                np.zeros(len(self.cov_idx)),
            ]
        )

    def unpack(self, x: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        lam = np.zeros((self.p, self.k))
        for value, (i, a) in zip(x[: self.n_load], self.load_idx):
            lam[i, a] = value

        phi = np.eye(self.k)
        offset = self.n_load
        for value, (a, b) in zip(x[offset : offset + self.n_phi], self.phi_idx):
            phi[a, b] = phi[b, a] = value

        offset += self.n_phi
        theta = np.diag(x[offset : offset + self.p]).astype(float)
        offset += self.p
        for value, (i, j) in zip(x[offset:], self.cov_idx):
            theta[i, j] = theta[j, i] = value
        return lam, phi, theta

    def sigma(self, x: np.ndarray) -> np.ndarray:
        lam, phi, theta = self.unpack(x)
        return lam @ phi @ lam.T + theta

    def jacobian(self, x: np.ndarray) -> np.ndarray:
        """dSigma/dx as an array of shape ``(n_params, p, p)``."""
        lam, phi, _ = self.unpack(x)
        lam_phi = lam @ phi
        jac = np.zeros((self.n_params, self.p, self.p))

        for q, (i, a) in enumerate(self.load_idx):
            v = lam_phi[:, a]
            jac[q, i, :] += v
            jac[q, :, i] += v

        offset = self.n_load
        for q, (a, b) in enumerate(self.phi_idx, start=offset):
            outer = np.outer(lam[:, a], lam[:, b])
            jac[q] = outer + outer.T

        offset += self.n_phi
        for i in range(self.p):
            jac[offset + i, i, i] = 1.0

        offset += self.p
        for q, (i, j) in enumerate(self.cov_idx, start=offset):
            jac[q, i, j] = jac[q, j, i] = 1.0
        return jac


# ----------------------------------------------------------------------
# Discrepancy functions
# ----------------------------------------------------------------------


class _Discrepancy:
    """Discrepancy between a sample and a model-implied covariance.

    ``value_and_grad(sigma)`` returns ``(F, G)`` with ``dF = sum(G * dSigma)``
    for symmetric perturbations ``dSigma``.
    """

    def __init__(self, estimator: str, S: np.ndarray, data: Optional[np.ndarray] = None):
        self.estimator = estimator
        self.S = S
        self.p = S.shape[0]
        self._tril = np.tril_indices(self.p)

        if estimator == "ML":
            sign, self._logdet_s = np.linalg.slogdet(S)
            if sign <= 0:
                raise np.linalg.LinAlgError("Sample covariance matrix is not positive definite")
        elif estimator == "GLS":
            self._s_inv = np.linalg.inv(S)
        else:
            self.W = self._weight_matrix(estimator, data)

    def _weight_matrix(self, estimator: str, data: Optional[np.ndarray]) -> np.ndarray:
        m = len(self._tril[0])
        if estimator == "ULS":
            return np.eye(m)
        if data is None:
            raise ValueError(f"Estimator {estimator} needs raw data, not only a covariance matrix")
        centered = data - data.mean(axis=0)
        products = centered[:, self._tril[0]] * centered[:, self._tril[1]]
        gamma = sample_covariance(products)
        if estimator == "DWLS":
            return np.diag(1.0 / np.diag(gamma))
        return np.linalg.inv(gamma)

    def value_and_grad(self, sigma: np.ndarray) -> Tuple[float, np.ndarray]:
        if self.estimator == "ML":
            try:
                chol = np.linalg.cholesky(sigma)
            except np.linalg.LinAlgError:
                return _PENALTY, np.zeros_like(sigma)
            sigma_inv = np.linalg.inv(sigma)
            logdet = 2.0 * np.sum(np.log(np.diag(chol)))
            value = logdet + np.trace(self.S @ sigma_inv) - self._logdet_s - self.p
            grad = sigma_inv - sigma_inv @ self.S @ sigma_inv
            return float(value), grad

        if self.estimator == "GLS":
            resid = (self.S - sigma) @ self._s_inv
            value = 0.5 * np.trace(resid @ resid)
            grad = -self._s_inv @ (self.S - sigma) @ self._s_inv
            return float(value), grad

        r = (self.S - sigma)[self._tril]
        w_r = self.W @ r
        value = r @ w_r
        g = -2.0 * w_r
        grad = np.zeros_like(sigma)
        grad[self._tril] = g / 2.0
        grad = grad + grad.T
        return float(value), grad

    def value(self, sigma: np.ndarray) -> float:
        return self.value_and_grad(sigma)[0]

    def baseline_sigma(self) -> np.ndarray:
        """Best-fitting diagonal (independence) covariance matrix."""
        if self.estimator == "GLS":
            v = self._s_inv
            d = np.linalg.solve(v * v, np.diag(v))
            return np.diag(d)
        if self.estimator in _VECH_ESTIMATORS:
            s = self.S[self._tril]
            diag_pos = np.flatnonzero(self._tril[0] == self._tril[1])
            w_dd = self.W[np.ix_(diag_pos, diag_pos)]
            d = np.linalg.solve(w_dd, (self.W @ s)[diag_pos])
            return np.diag(d)
        return np.diag(np.diag(self.S))


# ----------------------------------------------------------------------
# Fit indices
# ----------------------------------------------------------------------


def srmr(S: np.ndarray, sigma: np.ndarray) -> float:
    """Bentler's SRMR: residuals scaled by the sample standard deviations."""
    sd = np.sqrt(np.diag(S))
    resid = (S - sigma) / np.outer(sd, sd)
    tril = np.tril_indices(S.shape[0])
    return float(np.sqrt(np.mean(resid[tril] ** 2)))


def rmsea(chisq: float, df: int, n: int) -> float:
    """RMSEA with divisor ``N``; 0 for a saturated model."""
    if df <= 0:
        return 0.0
    return float(np.sqrt(max(chisq - df, 0.0) / (df * n)))


def cfi(chisq: float, df: int, chisq_null: float, df_null: int) -> float:
    """Comparative fit index against the independence model."""
    model_misfit = max(chisq - df, 0.0)
    denominator = max(chisq - df, chisq_null - df_null, 0.0)
    if denominator <= 0:
        return 1.0
    return float(1.0 - model_misfit / denominator)


def compute_fit_indices(
    discrepancy: _Discrepancy,
    sigma: np.ndarray,
    n: int,
    df: int,
    converged: bool,
) -> FitIndices:
    """Fit indices for a fitted implied covariance matrix."""
    from scipy.stats import chi2

    p = discrepancy.p
    chisq = n * discrepancy.value(sigma)
    chisq_null = n * discrepancy.value(discrepancy.baseline_sigma())
    df_null = p * (p - 1) // 2
    pvalue = float(chi2.sf(chisq, df)) if df > 0 else float("nan")

    return FitIndices(
        chisq=float(chisq),
        df=df,
        pvalue=pvalue,
        srmr=srmr(discrepancy.S, sigma),
        rmsea=rmsea(chisq, df, n),
        cfi=cfi(chisq, df, chisq_null, df_null),
        converged=converged,
    )


# ----------------------------------------------------------------------
# Estimation
# ----------------------------------------------------------------------


def _minimize(param: _Parameterization, discrepancy: _Discrepancy, start: np.ndarray):
    from scipy.optimize import minimize

    def objective(x):
        value, grad_sigma = discrepancy.value_and_grad(param.sigma(x))
        if value >= _PENALTY:
            return value, np.zeros_like(x)
        grad = np.tensordot(param.jacobian(x), grad_sigma, axes=([1, 2], [0, 1]))
        return value, grad

    return minimize(
        objective,
        start,
        jac=True,
        method="L-BFGS-B",
        bounds=param.bounds(),
        options={"maxiter": 2000, "ftol": 1e-10, "gtol": 1e-6},
    )


def _converged(result) -> bool:
    """Accept success, or a line-search stop at a finite, non-penalized optimum."""
    if result.success:
        return True
    return bool(result.status == 2 and np.isfinite(result.fun) and result.fun < _PENALTY)


def fit_data(structure, data: np.ndarray, estimator: str = "ML") -> FitIndices:
    """Fit *structure* to raw data and return its fit indices.

    This is the estimator used inside the simulation loop. Numerical
    failures are reported as a non-converged ``FitIndices`` rather than
    raised.

    Args:
        structure: ``ModelSpec`` (values are ignored).
        data: ``(n, n_items)`` array with columns in ``structure.items`` order.
        estimator: One of ``ESTIMATORS``.
    """
    param = _Parameterization(structure)
    nan = float("nan")
    try:
        S = sample_covariance(data)
        discrepancy = _Discrepancy(estimator, S, data)
        result = _minimize(param, discrepancy, param.start_values(S))
        sigma = param.sigma(result.x)
        return compute_fit_indices(discrepancy, sigma, data.shape[0], param.df, _converged(result))
    except (np.linalg.LinAlgError, ValueError, FloatingPointError):
        return FitIndices(nan, param.df, nan, nan, nan, nan, converged=False)


class CFAFit:
    """A fitted CFA model.

    Produced by :func:`fit_cfa`. Accepted directly by ``cfa_hb`` as the
    fitted-model input: its standardized solution and ``n_obs`` become the
    population model and sample size of the simulation.

    Attributes:
        structure: The fitted ``ModelSpec`` (values stripped).
        estimator: Estimator name.
        n_obs: Number of observations used.
        sample_cov: Sample covariance matrix (divisor ``N``).
        lam, phi, theta: Unstandardized estimates.
        sigma: Model-implied covariance matrix.
        indices: ``FitIndices`` of the fit.
    """

    def __init__(self, structure, estimator, n_obs, sample_cov, x, param, indices, optimize_result):
        self.structure = structure
        self.estimator = estimator
        self.n_obs = n_obs
        self.sample_cov = sample_cov
        self.indices = indices
        self.optimize_result = optimize_result
        self._param = param
        self.lam, self.phi, self.theta = _align_factor_signs(*param.unpack(x))
        self.sigma = self.lam @ self.phi @ self.lam.T + self.theta

    @property
    def converged(self) -> bool:
        return self.indices.converged

    def fit_measures(self) -> Dict[str, float]:
        """Chi-square, df, p-value, SRMR, RMSEA and CFI of the fit."""
        out = self.indices.as_dict()
        out.pop("converged")
        return out

    def standardized_spec(self):
        """Return the completely standardized solution as a ``ModelSpec``."""
        from ..core.model_spec import COVARIANCE, LOADING, ModelSpec, Parameter

        items, factors = self._param.items, self._param.factors
        sd = np.sqrt(np.diag(self.sigma))
        params = []
        for par in self.structure.parameters:
            if par.op == LOADING:
                i, a = items.index(par.rhs), factors.index(par.lhs)
                value = self.lam[i, a] / sd[i]
            elif par.lhs in factors:
                value = self.phi[factors.index(par.lhs), factors.index(par.rhs)]
            else:
                i, j = items.index(par.lhs), items.index(par.rhs)
                value = self.theta[i, j] / np.sqrt(self.theta[i, i] * self.theta[j, j])
            params.append(Parameter(par.lhs, par.op, par.rhs, round(float(value), 3)))

        # Factor correlations estimated but not written in the syntax
        written = {(p.lhs, p.rhs) for p in self.structure.factor_correlations}
        written |= {(b, a) for a, b in written}
        for a, b in self._param.phi_idx:
            if (factors[a], factors[b]) not in written:
                params.append(Parameter(factors[a], COVARIANCE, factors[b], round(float(self.phi[a, b]), 3)))

        return ModelSpec(tuple(factors), tuple(params))

    def standardized_syntax(self) -> str:
        """Standardized solution rendered as lavaan-style syntax."""
        return self.standardized_spec().to_syntax()

    def __repr__(self):
        status = "converged" if self.converged else "NOT converged"
        return f"CFAFit(estimator={self.estimator!r}, n_obs={self.n_obs}, {status}, df={self.indices.df})"


def _align_factor_signs(lam, phi, theta):
    """Flip factors whose first loading is negative (std.lv sign ambiguity)."""
    signs = np.ones(lam.shape[1])
    for a in range(lam.shape[1]):
        nonzero = np.flatnonzero(lam[:, a])
        if nonzero.size and lam[nonzero[0], a] < 0:
            signs[a] = -1.0
    return lam * signs, phi * np.outer(signs, signs), theta


def fit_cfa(model, data, estimator: str = "ML") -> CFAFit:
    """Fit a CFA model to a dataset.

    Args:
        model: lavaan-style syntax or a ``ModelSpec``; numeric values in the
            syntax are ignored (every parameter is estimated).
        data: ``pandas.DataFrame`` with a column per item, or a 2-D array
            with columns in model item order. Rows with missing values are
            dropped.
        estimator: One of ``ESTIMATORS``.

    Returns:
        ``CFAFit``.

    Raises:
        ValueError: If items are missing from *data*, the estimator is
            unknown, or there are not more rows than items.
    """
    import pandas as pd

    from ..utils.parsers import _parse_model_syntax

    if estimator not in ESTIMATORS:
        raise ValueError(f"Unknown estimator '{estimator}'. Available: {', '.join(ESTIMATORS)}")

    structure = (model if not isinstance(model, str) else _parse_model_syntax(model)).structure()
    items = structure.items

    if isinstance(data, pd.DataFrame):
        missing = [item for item in items if item not in data.columns]
        if missing:
            raise ValueError(f"Items not found in data: {', '.join(missing)}")
        frame = data[items]
    else:
        values = np.asarray(data, dtype=float)
        if values.ndim != 2 or values.shape[1] != len(items):
            raise ValueError(f"data must have {len(items)} columns ({', '.join(items)}), got shape {values.shape}")
        frame = pd.DataFrame(values, columns=items)

    n_dropped = int(frame.isna().any(axis=1).sum())
    if n_dropped:
        print(f"Warning: dropped {n_dropped} rows with missing values")
    values = frame.dropna().to_numpy(dtype=float)
    if values.shape[0] <= len(items):
        raise ValueError(f"Need more observations ({values.shape[0]}) than items ({len(items)})")

    param = _Parameterization(structure)
    S = sample_covariance(values)
    discrepancy = _Discrepancy(estimator, S, values)
    result = _minimize(param, discrepancy, param.start_values(S))
    sigma = param.sigma(result.x)
    indices = compute_fit_indices(discrepancy, sigma, values.shape[0], param.df, _converged(result))
    return CFAFit(structure, estimator, values.shape[0], S, result.x, param, indices, result)

