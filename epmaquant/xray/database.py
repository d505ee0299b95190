"""
Reference-data arena for characteristic X-ray lines.

An XRayLineDatabase is loaded once (from the bundled table or a user file)
and passed explicitly to whatever needs line energies and weights.
"""

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import pandas as pd

from epmaquant.core.config import load_config
from epmaquant.core.logging_config import get_logger
from epmaquant.xray.elements import Element, element
from epmaquant.xray.structures import FAMILIES, TransitionSet, XRayTransition

logger = get_logger("xray.database")

DEFAULT_LINE_TABLE = Path(__file__).resolve().parent.parent / "data" / "xray_lines.yaml"

_COLUMNS = ["z", "name", "family", "shell", "energy_kev", "weight"]


class XRayLineDatabase:
    """
    In-memory table of characteristic X-ray lines.

    The table is a pandas DataFrame with one row per line and columns
    ``z``, ``name``, ``family``, ``shell``, ``energy_kev`` and ``weight``.
    """

    def __init__(self, lines: pd.DataFrame):
        missing = [col for col in _COLUMNS if col not in lines.columns]
        if missing:
            raise ValueError(f"Line table missing columns: {missing}")
        bad_family = set(lines["family"]) - set(FAMILIES)
        if bad_family:
            raise ValueError(f"Unknown line families in table: {sorted(bad_family)}")
        self._lines = lines[_COLUMNS].sort_values(["z", "family", "name"]).reset_index(drop=True)
        logger.debug(f"Line table holds {len(self._lines)} lines")

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "XRayLineDatabase":
        """
        Build a database from a ``{"lines": {symbol: [line, ...]}}`` mapping.

        Parameters
        ----------
        data : dict
            Each line is a dict with keys name, family, shell, energy_kev, weight

        Returns
        -------
        XRayLineDatabase
        """
        if "lines" not in data:
            raise ValueError("Line table must contain a 'lines' section")
        records = []
        for symbol, lines in data["lines"].items():
            el = element(symbol)
            for line in lines:
                records.append(
                    {
                        "z": el.atomic_number,
                        "name": str(line["name"]),
                        "family": str(line["family"]),
                        "shell": str(line.get("shell", line["family"])),
                        "energy_kev": float(line["energy_kev"]),
                        "weight": float(line.get("weight", 1.0)),
                    }
                )
        return cls(pd.DataFrame.from_records(records, columns=_COLUMNS))

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "XRayLineDatabase":
        """Load a line table from a YAML or JSON file."""
        return cls.from_mapping(load_config(path))

    @classmethod
    def default(cls) -> "XRayLineDatabase":
        """Load the line table bundled with the package."""
        return cls.from_file(DEFAULT_LINE_TABLE)

    @property
    def elements(self) -> List[Element]:
        """Elements with at least one tabulated line."""
        return [element(int(z)) for z in sorted(self._lines["z"].unique())]

    def families(self, elm: Union[str, int, Element]) -> List[str]:
        """Line families tabulated for an element."""
        el = element(elm)
        rows = self._lines[self._lines["z"] == el.atomic_number]
        return [fam for fam in FAMILIES if fam in set(rows["family"])]

    def transitions(
        self,
        elm: Union[str, int, Element],
        family: Optional[str] = None,
        min_weight: float = 0.0,
    ) -> List[XRayTransition]:
        """
        Get the tabulated transitions of an element.

        Parameters
        ----------
        elm : str, int or Element
            Element
        family : str, optional
            Restrict to one family ('K', 'L', 'M', 'N')
        min_weight : float
            Minimum family-normalized line weight

        Returns
        -------
        List[XRayTransition]
        """
        el = element(elm)
        mask = (self._lines["z"] == el.atomic_number) & (self._lines["weight"] >= min_weight)
        if family is not None:
            mask &= self._lines["family"] == family
        return [self._to_transition(el, row) for row in self._lines[mask].itertuples(index=False)]

    def transition(self, elm: Union[str, int, Element], name: str) -> XRayTransition:
        """
        Get a single transition by Siegbahn name.

        Raises
        ------
        KeyError
            If the line is not tabulated
        """
        el = element(elm)
        rows = self._lines[(self._lines["z"] == el.atomic_number) & (self._lines["name"] == name)]
        if rows.empty:
            raise KeyError(f"No line {name} tabulated for {el.symbol}")
        return self._to_transition(el, next(rows.itertuples(index=False)))

    def transition_set(
        self,
        elm: Union[str, int, Element],
        family: Optional[str] = None,
        names: Optional[Iterable[str]] = None,
        min_weight: float = 0.0,
    ) -> TransitionSet:
        """
        Build a TransitionSet from named lines or from a whole family.

        Parameters
        ----------
        elm : str, int or Element
            Element
        family : str, optional
            Line family; used when names is None
        names : Iterable[str], optional
            Explicit Siegbahn line names
        min_weight : float
            Minimum family-normalized weight when selecting a family

        Returns
        -------
        TransitionSet

        Raises
        ------
        KeyError
            If no matching lines are tabulated
        """
        if names is not None:
            return TransitionSet(self.transition(elm, name) for name in names)
        lines = self.transitions(elm, family=family, min_weight=min_weight)
        if not lines:
            raise KeyError(f"No {family or ''} lines tabulated for {element(elm).symbol}")
        return TransitionSet(lines)

    @staticmethod
    def _to_transition(el: Element, row) -> XRayTransition:
        return XRayTransition(
            element=el,
            family=row.family,
            shell=row.shell,
            name=row.name,
            energy_kev=float(row.energy_kev),
            weight=float(row.weight),
        )

    def __len__(self) -> int:
        return len(self._lines)
