"""Command line tests."""

import json
from pathlib import Path

import yaml

from dimsys.cli import main

EXAMPLE = Path(__file__).parent.parent / "examples" / "si.dims"


class TestCli:
    def test_text_output(self, capsys):
        assert main([str(EXAMPLE)]) == 0
        out = capsys.readouterr().out
        assert "base dimensions: Length, Time, Mass" in out
        assert "kilometers" in out

    def test_json_output(self, capsys):
        assert main([str(EXAMPLE), "--format", "json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["base_dimensions"] == ["Length", "Time", "Mass"]
        units = {u["name"]: u for u in data["units"]}
        assert units["hours"]["magnitude"] == 3600.0
        assert units["joules"]["dimension"] == {"Length": 2, "Time": -2, "Mass": 1}
        assert data["diagnostics"] == []

    def test_yaml_output(self, capsys):
        assert main([str(EXAMPLE), "--format", "yaml"]) == 0
        data = yaml.safe_load(capsys.readouterr().out)
        assert data["quantity_type"] == "Quantity"

    def test_errors_give_exit_status_1(self, tmp_path, capsys):
        path = tmp_path / "bad.dims"
        path.write_text("quantity_type Q; dimension_type D; dimension Length;")
        assert main([str(path)]) == 1
        captured = capsys.readouterr()
        assert "missing_base_unit" in captured.out
        assert "FAIL" in captured.err

    def test_missing_file(self, tmp_path, capsys):
        assert main([str(tmp_path / "nope.dims")]) == 1
        assert "FAIL" in capsys.readouterr().err

    def test_rational_dimensions_flag(self, tmp_path, capsys):
        path = tmp_path / "root.dims"
        path.write_text(
            "quantity_type Q; dimension_type D; dimension Length;\n"
            'unit (meters, "m") = base(Length);\n'
            "dimension RootLength = Length^(1/2);\n"
        )
        assert main([str(path)]) == 1
        capsys.readouterr()
        assert main([str(path), "--rational-dimensions"]) == 0

    def test_config_file(self, tmp_path, capsys):
        config = tmp_path / "dimsys.yaml"
        config.write_text("extra_prefixes:\n  kibi: {symbol: Ki, factor: 1024}\n")
        path = tmp_path / "bytes.dims"
        path.write_text(
            "quantity_type Q; dimension_type D; dimension Information;\n"
            'unit (bytes, "B", [kibi]) = base(Information);\n'
        )
        assert main([str(path), "--config", str(config), "--format", "json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert [u["name"] for u in data["units"]] == ["bytes", "kibibytes"]
