"""
Tests for tabular export of maps and codebooks
"""

import pytest
import pandas as pd

from streamsom.art import StreamART2A
from streamsom.export import (
    codebook_to_csv,
    codebook_to_dataframe,
    to_csv,
    to_dataframe,
)


@pytest.mark.io
class TestSOMExport:
    """Test map export"""

    def test_dataframe_layout(self, corner_som):
        frame = to_dataframe(corner_som)
        assert list(frame.columns) == ["x", "y", "v1", "v2"]
        assert frame[["x", "y"]].values.tolist() == [[0, 0], [0, 1], [1, 0], [1, 1]]
        assert frame.iloc[1][["v1", "v2"]].tolist() == [0.0, 1.0]

    def test_csv_round_trip(self, corner_som, tmp_path):
        path = tmp_path / "som.csv"
        to_csv(corner_som, str(path))

        loaded = pd.read_csv(path)
        assert loaded.shape == (4, 4)
        assert loaded["v2"].tolist() == [0.0, 1.0, 0.0, 1.0]

    def test_custom_separator(self, corner_som, tmp_path):
        path = tmp_path / "som.tsv"
        to_csv(corner_som, str(path), separator="\t")
        assert path.read_text().splitlines()[0] == "x\ty\tv1\tv2"

    def test_unwritable_path(self, corner_som, tmp_path):
        path = tmp_path / "missing" / "som.csv"
        with pytest.raises(IOError, match="Failed to export SOM"):
            to_csv(corner_som, str(path))


@pytest.mark.io
class TestCodebookExport:
    """Test micro-category codebook export"""

    def test_dataframe_layout(self):
        art = StreamART2A(2)
        art.learn([0.5, 0.5])
        art.learn([0.5, 0.5])
        frame = codebook_to_dataframe(art.get_codebook(), 2)

        assert list(frame.columns) == [
            "weight",
            "timestamp",
            "created_at",
            "vigilance_radius",
            "v1",
            "v2",
        ]
        assert frame.iloc[0]["weight"] == 2
        assert frame.iloc[0]["timestamp"] == 2

    def test_empty_codebook(self):
        frame = codebook_to_dataframe([], 3)
        assert frame.empty
        assert list(frame.columns)[-1] == "v3"

    def test_csv(self, tmp_path):
        art = StreamART2A(2)
        art.learn([0.1, 0.9])
        path = tmp_path / "codebook.csv"
        codebook_to_csv(art.get_codebook(), 2, str(path))

        loaded = pd.read_csv(path)
        assert len(loaded) == 1
        assert loaded["v2"].iloc[0] == pytest.approx(0.9)
