"""
Tabular export of trained maps and micro-category codebooks
"""

from typing import Iterable

import pandas as pd

from .art import MicroCategory
from .core import SelfOrganizingMap


def to_dataframe(som: SelfOrganizingMap) -> pd.DataFrame:
    """One row per neuron in iteration order: ``x, y, v1 .. vN``"""
    frame = pd.DataFrame(
        som.prototypes.copy(),
        columns=[f"v{i + 1}" for i in range(som.dimensionality)],
    )
    frame.insert(0, "y", [neuron.y for neuron in som])
    frame.insert(0, "x", [neuron.x for neuron in som])
    return frame


def to_csv(som: SelfOrganizingMap, path: str, separator: str = ",") -> None:
    """Write the prototypes of ``som`` to ``path``"""
    try:
        to_dataframe(som).to_csv(path, sep=separator, index=False)
    except (IOError, OSError) as e:
        raise IOError(f"Failed to export SOM to {path}: {e}")


def codebook_to_dataframe(
    categories: Iterable[MicroCategory], dimensionality: int
) -> pd.DataFrame:
    """One row per category: bookkeeping columns followed by ``v1 .. vN``"""
    columns = ["weight", "timestamp", "created_at", "vigilance_radius"] + [
        f"v{i + 1}" for i in range(dimensionality)
    ]
    rows = [
        [c.weight, c.timestamp, c.created_at, c.vigilance_radius, *c.prototype]
        for c in categories
    ]
    return pd.DataFrame(rows, columns=columns)


def codebook_to_csv(
    categories: Iterable[MicroCategory],
    dimensionality: int,
    path: str,
    separator: str = ",",
) -> None:
    try:
        codebook_to_dataframe(categories, dimensionality).to_csv(
            path, sep=separator, index=False
        )
    except (IOError, OSError) as e:
        raise IOError(f"Failed to export codebook to {path}: {e}")
