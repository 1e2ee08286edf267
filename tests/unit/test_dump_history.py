from pathlib import Path

import pytest

SCRIPTS_DIR = Path(__file__).resolve().parents[2] / "scripts"


@pytest.fixture
def dump_history(monkeypatch: pytest.MonkeyPatch):
    """Imports the CSV dump script from the scripts directory."""
    monkeypatch.syspath_prepend(str(SCRIPTS_DIR))
    import dump_history

    return dump_history


def test_days_defaults_to_one(dump_history) -> None:
    assert dump_history.parse_args([]).days == 1
    assert dump_history.parse_args(["--days", "30"]).days == 30


@pytest.mark.parametrize("days", ["0", "-7", "week"])
def test_invalid_days_are_rejected_by_the_parser(
    dump_history, days: str, capsys: pytest.CaptureFixture[str]
) -> None:
    """An unusable horizon is a usage error, not a traceback."""
    with pytest.raises(SystemExit) as exc_info:
        dump_history.parse_args(["--days", days])

    assert exc_info.value.code == 2
    assert "--days" in capsys.readouterr().err
