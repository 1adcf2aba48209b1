"""
Parsing utilities for DynamicFit.

This module parses lavaan-style CFA syntax into a ``ModelSpec``. Supported
statements are factor definitions (``F1 =~ .7*y1 + .6*y2``) and
covariances (``F1 ~~ .3*F2``, ``y1 ~~ .2*y4``). Statements are separated by
newlines or semicolons; ``#`` and ``!`` start comments.
"""

import re
from typing import Dict, List, Optional, Tuple

from ..core.model_spec import COVARIANCE, LOADING, ModelSpec, Parameter
from ..errors import ModelSyntaxError

__all__ = ["parse_model"]

# Unicode-aware identifier pattern: letter or underscore, then word characters
_IDENT = r"[^\W\d][\w.]*"
_NUMBER = r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?"

_TERM_RE = re.compile(rf"^\s*(?:(?P<mod>[^*]+?)\s*\*\s*)?(?P<name>{_IDENT})\s*$")
_NUMBER_RE = re.compile(rf"^{_NUMBER}$")
_EXPONENT_HEAD_RE = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)[eE]$")
_STATEMENT_RE = re.compile(rf"^\s*(?P<lhs>{_IDENT})\s*(?P<op>=~|~~|~\*~|<~|:=|==|~|<|>)\s*(?P<rhs>.+)$")


def _strip_comments(text: str) -> str:
    """Remove ``#`` / ``!`` comments from every line."""
    lines = []
    for line in text.splitlines():
        cut = len(line)
        for marker in ("#", "!"):
            pos = line.find(marker)
            if pos != -1:
                cut = min(cut, pos)
        lines.append(line[:cut])
    return "\n".join(lines)


def _split_statements(text: str) -> List[str]:
    """Split syntax into statements on newlines and semicolons.

    A line ending in ``+`` (or a line starting with ``+``) continues the
    previous statement, as lavaan allows.
    """
    statements: List[str] = []
    for raw in re.split(r"[\n;]", _strip_comments(text)):
        line = raw.strip()
        if not line:
            continue
        if statements and (statements[-1].endswith("+") or line.startswith("+")):
            statements[-1] = f"{statements[-1]} {line}"
        else:
            statements.append(line)
    return statements


def _split_terms(rhs: str) -> List[str]:
    """Split a right-hand side on ``+`` without breaking signed numbers.

    ``.6*y1 + -.4*y2`` gives ``[".6*y1", "-.4*y2"]``; a ``+`` that continues a
    numeric modifier in exponent form (``1e+2*y1``) is not a separator, while
    one after an item name ending in ``e`` (``.7*x2e+.6*y3``) is.
    """
    terms: List[str] = []
    current: List[str] = []
    for char in rhs:
        if char == "+" and not _EXPONENT_HEAD_RE.match("".join(current)):
            terms.append("".join(current))
            current = []
        else:
            current.append(char)
    terms.append("".join(current))

    cleaned = [t.strip() for t in terms]
    if any(not t for t in cleaned[1:]) or (cleaned and not cleaned[0] and len(cleaned) > 1):
        raise ModelSyntaxError(f"Empty term in '{rhs.strip()}'")
    return [t for t in cleaned if t]


def _parse_term(term: str, statement: str) -> Tuple[str, Optional[float]]:
    """Parse ``value*name`` / ``label*name`` / ``name`` into (name, value)."""
    match = _TERM_RE.match(term)
    if not match:
        raise ModelSyntaxError(f"Cannot parse term '{term}' in statement '{statement}'")

    name = match.group("name")
    modifier = match.group("mod")
    if modifier is None:
        return name, None

    modifier = modifier.replace(" ", "")
    if _NUMBER_RE.match(modifier):
        return name, float(modifier)
    # Labels, NA and start() modifiers carry no fixed standardized value
    return name, None


def _parse_model_syntax(text: str, require_values: bool = False) -> ModelSpec:
    """Parse lavaan-style syntax into a ``ModelSpec``.

    Args:
        text: Model syntax.
        require_values: If ``True`` (manual entry), every loading and
            correlation must carry a numeric standardized value.

    Returns:
        Parsed ``ModelSpec``. Variances (``y1 ~~ y1``) are accepted and
        dropped because they follow from the standardized loadings.

    Raises:
        ModelSyntaxError: On unsupported operators, malformed terms,
            duplicated parameters, covariances between a factor and an item,
            or missing values when *require_values* is set.
    """
    if not isinstance(text, str):
        raise ModelSyntaxError(f"Model syntax must be a string, got {type(text).__name__}")

    statements = _split_statements(text)
    if not statements:
        raise ModelSyntaxError("Model syntax is empty")

    factors: List[str] = []
    loadings: List[Parameter] = []
    covariances: List[Tuple[str, str, Optional[float], str]] = []
    seen: Dict[Tuple[str, str, str], str] = {}

    for statement in statements:
        match = _STATEMENT_RE.match(statement)
        if not match:
            raise ModelSyntaxError(f"Cannot parse statement '{statement}'")

        lhs, op, rhs = match.group("lhs"), match.group("op"), match.group("rhs")
        if op not in (LOADING, COVARIANCE):
            raise ModelSyntaxError(f"Operator '{op}' is not supported in CFA syntax (statement '{statement}')")

        for term in _split_terms(rhs):
            name, value = _parse_term(term, statement)

            if op == LOADING:
                key = (lhs, op, name)
                if key in seen:
                    raise ModelSyntaxError(f"Duplicated loading '{lhs} =~ {name}'")
                seen[key] = statement
                if lhs not in factors:
                    factors.append(lhs)
                loadings.append(Parameter(lhs, op, name, value))
            else:
                if name == lhs:
                    continue
                key = (min(lhs, name), op, max(lhs, name))
                if key in seen:
                    raise ModelSyntaxError(f"Duplicated covariance '{lhs} ~~ {name}'")
                seen[key] = statement
                covariances.append((lhs, name, value, statement))

    if not loadings:
        raise ModelSyntaxError("Model syntax defines no factors (no '=~' statements)")

    items = {p.rhs for p in loadings}
    overlap = items.intersection(factors)
    if overlap:
        raise ModelSyntaxError(f"Higher-order factors are not supported: {', '.join(sorted(overlap))}")

    correlations: List[Parameter] = []
    for lhs, rhs, value, statement in covariances:
        lhs_is_factor, rhs_is_factor = lhs in factors, rhs in factors
        if lhs_is_factor != rhs_is_factor:
            raise ModelSyntaxError(f"Covariance between a factor and an item is not supported: '{statement}'")
        if not lhs_is_factor and (lhs not in items or rhs not in items):
            unknown = [v for v in (lhs, rhs) if v not in items]
            raise ModelSyntaxError(f"Unknown variable(s) {', '.join(unknown)} in '{statement}'")
        correlations.append(Parameter(lhs, COVARIANCE, rhs, value))

    spec = ModelSpec(tuple(factors), tuple(loadings + correlations))

    if require_values:
        missing = [f"{p.lhs} {p.op} {p.rhs}" for p in spec.parameters if p.value is None]
        if missing:
            raise ModelSyntaxError(
                "Manually entered models need a standardized value for every parameter "
                f"(e.g. '.7*y1'). Missing: {', '.join(missing)}"
            )

    return spec


def parse_model(text: str) -> ModelSpec:
    """Parse lavaan-style CFA syntax; values are optional."""
    return _parse_model_syntax(text)
