"""
Smoke tests for the command-line runner.
"""

from edgecheck.run import main


class TestRun:
    def test_mcpt_synthetic(self, capsys):
        code = main(["mcpt", "--synthetic", "120", "--max-lookback", "5", "--reps", "3", "--seed", "9"])
        out = capsys.readouterr().out
        assert code == 0
        assert "p-value for null hypothesis that system is worthless" in out
        assert "Unbiased return" in out

    def test_bounds_synthetic(self, capsys):
        code = main([
            "bounds", "--synthetic", "300", "--max-lookback", "5",
            "--train", "50", "--test", "25", "--lower-fail", "0.1", "--upper-fail", "0.4",
        ])
        out = capsys.readouterr().out
        assert code == 0
        assert "mean OOS" in out
        assert "The LOWER bound on future returns is" in out
        assert "The UPPER bound on future returns is" in out

    def test_market_file(self, tmp_path, capsys):
        lines = [f"2020{m:02d}{d:02d} {100 + (m * 31 + d) % 7 + 0.1 * d}" for m in range(1, 13) for d in range(1, 29)]
        path = tmp_path / "prices.txt"
        path.write_text("\n".join(lines) + "\n")
        code = main(["mcpt", str(path), "--max-lookback", "4", "--reps", "2"])
        assert code == 0
        assert f"{len(lines)} prices were read" in capsys.readouterr().out

    def test_missing_file_fails(self, tmp_path):
        assert main(["mcpt", str(tmp_path / "missing.txt"), "--reps", "2"]) == 1

    def test_precondition_failure(self):
        # 20 bars cannot support a 15-bar max lookback plus the safety margin
        assert main(["mcpt", "--synthetic", "20", "--max-lookback", "15", "--reps", "2"]) == 1

    def test_bad_synthetic_length_fails(self):
        assert main(["mcpt", "--synthetic=-5", "--reps", "2"]) == 1

    def test_bad_environment_setting_fails(self, monkeypatch, caplog):
        monkeypatch.setenv("EDGECHECK_REPLICATIONS", "0")
        assert main(["mcpt", "--synthetic", "120", "--max-lookback", "5"]) == 1
        assert "EDGECHECK_" in caplog.text
