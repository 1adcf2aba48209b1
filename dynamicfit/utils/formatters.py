"""
Result formatting for DynamicFit.

Renders the cutoff table and the empirical fit summary as plain-text tables
for console output.
"""

from typing import Any, List, Optional

__all__ = []


class _TableFormatter:
    """Plain-text table builder."""

    def _create_table(self, headers: List[str], rows: List[List[str]], col_widths: Optional[List[int]] = None) -> str:
        """Build a left-aligned table: header, dashed separator, rows.

        Columns are padded to *col_widths* (or the widest cell) and joined
        by a single space.
        """
        if col_widths is None:
            col_widths = [max(len(str(h)), *(len(str(r[i])) for r in rows)) if rows else len(str(h)) for i, h in enumerate(headers)]

        def line(cells):
            return " ".join(f"{str(c):<{w}}" for c, w in zip(cells, col_widths))

        out = [line(headers), "-" * (sum(col_widths) + len(col_widths) - 1)]
        out += [line(r) for r in rows]
        return "\n".join(out)

    def _format_value(self, value: Any, spec: Optional[str] = None) -> str:
        if isinstance(value, float):
            if spec is not None:
                return f"{value:{spec}}"
            if value != 0 and abs(value) < 0.001:
                return f"{value:.6f}"
            return f"{value:.4f}"
        return str(value)


class _ResultFormatter(_TableFormatter):
    """Formats a ``CfaHBResult`` for printing."""

    def _format_cutoffs(self, table) -> str:
        headers = [""] + list(table.columns)
        rows = [[label] + [str(v) for v in values] for label, values in zip(table.index, table.to_numpy())]
        return self._create_table(headers, rows)

    def _format_fit(self, fit) -> str:
        headers = list(fit.columns)
        rows = [[self._format_value(v, ".3f") if isinstance(v, float) else str(v) for v in values] for values in fit.itertuples(index=False, name=None)]
        return self._create_table(headers, rows)

    def format(self, result) -> str:
        parts = ["Your DFI cutoffs:", self._format_cutoffs(result.cutoffs)]
        if result.fit is not None:
            parts += ["", "Empirical fit indices:", self._format_fit(result.fit)]
        if result.plots:
            parts += ["", f"{len(result.plots)} distribution plot(s) available in result.plots"]
        return "\n".join(parts)


def _format_results(result) -> str:
    """Text report of a cutoff analysis."""
    return _ResultFormatter().format(result)
