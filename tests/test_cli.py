"""
Unit tests for the CLI wrapper.
"""

import pytest

from aohc_storms import pipeline
from aohc_storms.cli import main, setup_parser
from aohc_storms.errors import ModelConvergenceError


def _inputs(csv_paths):
    return ["--storm-csv", csv_paths["storm"], "--ocean-heat-csv", csv_paths["ocean_heat"]]


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        setup_parser().parse_args([])


def test_parser_run_defaults():
    args = setup_parser().parse_args(["run"])
    assert args.seed == 123
    assert args.output_dir is None
    assert not args.show
    assert not args.no_plots
    assert args.storm_csv == "merged_data_by_year_month.csv"


def test_prepare_command(csv_paths, capsys):
    assert main(["prepare"] + _inputs(csv_paths)) == 0
    out = capsys.readouterr().out
    assert "AO_bin" in out
    assert "mean_Max_Wind" in out


def test_run_command(csv_paths, capsys):
    assert main(["run"] + _inputs(csv_paths) + ["--no-plots"]) == 0
    out = capsys.readouterr().out
    for model_id in ("model1", "model2", "model3", "model4"):
        assert f"[OK]   {model_id}" in out
    assert "[ERR]" not in out


def test_run_command_reports_failure(csv_paths, capsys, monkeypatch):
    def fail(*args, **kwargs):
        raise ModelConvergenceError("model3", "forced failure")

    monkeypatch.setattr(pipeline, "fit_seasonal_ar1_gam", fail)
    assert main(["run"] + _inputs(csv_paths) + ["--no-plots"]) == 0
    out = capsys.readouterr().out
    assert "[ERR]  model3" in out
    assert "[OK]   model4" in out


def test_missing_input_exit_code(csv_paths):
    args = ["prepare", "--storm-csv", str(csv_paths["dir"] / "missing.csv"),
            "--ocean-heat-csv", csv_paths["ocean_heat"]]
    assert main(args) == 1


def test_parse_error_exit_code(csv_paths):
    bad = csv_paths["dir"] / "bad.csv"
    bad.write_text("Year,AO,Max_Wind\n2005,1.0,40\n")
    args = ["run", "--storm-csv", str(bad), "--ocean-heat-csv", csv_paths["ocean_heat"], "--no-plots"]
    assert main(args) == 1
