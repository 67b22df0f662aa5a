import pytest

from agenda import _parse_args


class TestParseArgs:
    def test_defaults(self) -> None:
        args = _parse_args([])

        assert (args.year, args.month, args.upcoming) == (None, None, 5)

    def test_month_in_range(self) -> None:
        assert _parse_args(["--year", "2024", "--month", "12"]).month == 12

    @pytest.mark.parametrize("month", ["0", "13"])
    def test_month_out_of_range_exits(self, month: str) -> None:
        with pytest.raises(SystemExit):
            _parse_args(["--month", month])
