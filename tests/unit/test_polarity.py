from pathlib import Path

import pytest

from benchtrack_mcp.config import DEFAULT_POLARITY_PATH
from benchtrack_mcp.engine import PolarityTable, parse_polarity
from benchtrack_mcp.types import Polarity


class TestParsePolarity:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("lower_is_better", Polarity.LOWER_IS_BETTER),
            ("Higher-Is-Better", Polarity.HIGHER_IS_BETTER),
            ("higher", Polarity.HIGHER_IS_BETTER),
            (Polarity.LOWER_IS_BETTER, Polarity.LOWER_IS_BETTER),
        ],
    )
    def test_accepted_spellings(self, raw: object, expected: Polarity) -> None:
        assert parse_polarity(raw) is expected

    def test_unknown_value(self) -> None:
        with pytest.raises(ValueError, match="Unknown polarity"):
            parse_polarity("bigger")


class TestPolarityTable:
    """Test lookup precedence: overrides, rules, default."""

    def test_rule_then_default(self, polarity_table: PolarityTable) -> None:
        assert polarity_table.polarity_for("throughput_requests") is Polarity.HIGHER_IS_BETTER
        assert polarity_table.polarity_for("nbody") is Polarity.LOWER_IS_BETTER

    def test_overrides_win(self, polarity_table: PolarityTable) -> None:
        table = polarity_table.with_overrides({"throughput_requests": Polarity.LOWER_IS_BETTER})
        assert table.polarity_for("throughput_requests") is Polarity.LOWER_IS_BETTER
        # The original table is untouched.
        assert polarity_table.polarity_for("throughput_requests") is Polarity.HIGHER_IS_BETTER

    def test_no_overrides_returns_same_table(self, polarity_table: PolarityTable) -> None:
        assert polarity_table.with_overrides({}) is polarity_table

    def test_benchmarks_section(self) -> None:
        table = PolarityTable.from_dict(
            {"default": "higher", "benchmarks": {"startup_time": "lower"}}
        )
        assert table.polarity_for("startup_time") is Polarity.LOWER_IS_BETTER
        assert table.polarity_for("anything") is Polarity.HIGHER_IS_BETTER

    def test_packaged_rules(self) -> None:
        table = PolarityTable.from_file(DEFAULT_POLARITY_PATH)
        assert table.default is Polarity.LOWER_IS_BETTER
        assert table.polarity_for("http_throughput") is Polarity.HIGHER_IS_BETTER
        assert table.polarity_for("nbody") is Polarity.LOWER_IS_BETTER

    def test_from_file_rejects_non_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "polarity.yaml"
        path.write_text("- lower_is_better\n", encoding="utf-8")
        with pytest.raises(ValueError, match="mapping"):
            PolarityTable.from_file(path)
