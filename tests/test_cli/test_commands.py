"""Tests for the command-line interface."""

import json
from unittest.mock import MagicMock

import pytest

from mastermeter import __version__
from mastermeter.cli import analyze_batch, analyze_single_file, build_parser, main
from mastermeter.utils.config import get_default_config
from conftest import FakeBackend, write_wav


@pytest.fixture
def config():
    config = get_default_config()
    config['audio']['target_sample_rate'] = None
    return config


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr('mastermeter.cli.setup_logging', MagicMock())


class TestAnalyzeSingleFile:
    def test_prints_report_and_checks(self, wav_file, config, capsys):
        code = analyze_single_file(wav_file, config, backend_factory=FakeBackend)
        out = capsys.readouterr().out
        assert code == 0
        assert "MASTERMETER ANALYSIS RESULTS" in out
        assert "-8.0 LUFS" in out
        assert "Checks:" in out
        assert "[100.0%] Analysis complete" in out

    def test_writes_outputs(self, wav_file, config, tmp_path):
        json_path = tmp_path / "out" / "result.json"
        txt_path = tmp_path / "out" / "result.txt"
        code = analyze_single_file(
            wav_file, config,
            output_json=json_path,
            output_txt=txt_path,
            backend_factory=FakeBackend,
        )
        assert code == 0
        data = json.loads(json_path.read_text(encoding='utf-8'))
        assert data['results'][0]['path'] == str(wav_file)
        assert data['results'][0]['file_info']['sample_rate'] == 48000
        assert "FILE: master.wav" in txt_path.read_text(encoding='utf-8')

    def test_bpm_key_mode(self, wav_file, config, capsys):
        code = analyze_single_file(wav_file, config, bpm_key=True, backend_factory=FakeBackend)
        out = capsys.readouterr().out
        assert code == 0
        assert "BPM: 120" in out
        assert "Key: A Minor" in out

    def test_reference_comparison(self, tmp_path, config, capsys):
        master = write_wav(tmp_path / "master.wav")
        reference = write_wav(tmp_path / "reference.wav", frequency=880)
        code = analyze_single_file(master, config, reference=reference, backend_factory=FakeBackend)
        out = capsys.readouterr().out
        assert code == 0
        assert "Compared to reference reference.wav" in out
        assert "integrated_lufs: +0.0 LU" in out

    def test_missing_file(self, tmp_path, config, capsys):
        code = analyze_single_file(tmp_path / "nope.wav", config, backend_factory=FakeBackend)
        assert code == 1
        assert "not found" in capsys.readouterr().out

    def test_backend_failure(self, wav_file, config, capsys):
        def broken():
            raise ImportError("No module named 'essentia'")

        code = analyze_single_file(wav_file, config, backend_factory=broken)
        out = capsys.readouterr().out
        assert code == 1
        assert "Error during analysis" in out
        assert "essentia" in out


class TestAnalyzeBatch:
    def test_all_files_succeed(self, tmp_path, config, capsys):
        write_wav(tmp_path / "a.wav")
        write_wav(tmp_path / "b.wav")
        code = analyze_batch([tmp_path], config, backend_factory=FakeBackend)
        out = capsys.readouterr().out
        assert code == 0
        assert "[1/2] Processing: a.wav" in out
        assert "Successful: 2" in out

    def test_failure_sets_exit_code(self, tmp_path, config, capsys):
        write_wav(tmp_path / "a.wav")
        (tmp_path / "broken.wav").write_bytes(b"RIFF\x10\x00\x00\x00WAVEjunk")
        json_path = tmp_path / "batch.json"
        code = analyze_batch([tmp_path], config, output_json=json_path, backend_factory=FakeBackend)
        out = capsys.readouterr().out
        assert code == 1
        assert "Failed: 1" in out
        assert "broken.wav" in out
        assert json.loads(json_path.read_text(encoding='utf-8'))['total_files'] == 1

    def test_queue_capacity(self, tmp_path, config, capsys):
        for i in range(3):
            write_wav(tmp_path / f"{i}.wav", duration=0.05)
        config['batch']['max_files'] = 2
        analyze_batch([tmp_path], config, backend_factory=FakeBackend)
        out = capsys.readouterr().out
        assert "skipped 1" in out
        assert "Total Files: 2" in out

    def test_no_files(self, tmp_path, config, capsys):
        code = analyze_batch([tmp_path], config, backend_factory=FakeBackend)
        assert code == 1
        assert "No audio files found" in capsys.readouterr().out


class TestParser:
    def test_defaults(self):
        args = build_parser().parse_args(["master.wav"])
        assert args.batch is False
        assert args.bpm_key is False
        assert args.reference is None

    def test_options(self):
        args = build_parser().parse_args(
            ["-b", "-r", "-o", "out.txt", "--output-json", "out.json", "a.wav", "b.wav"]
        )
        assert args.batch and args.recursive
        assert [str(p) for p in args.inputs] == ["a.wav", "b.wav"]
        assert str(args.output_file) == "out.txt"

    def test_version(self, capsys):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--version"])
        assert __version__ in capsys.readouterr().out


class TestMain:
    def test_missing_config_file(self, tmp_path, capsys):
        code = main(["--config", str(tmp_path / "missing.yaml"), "master.wav"])
        assert code == 1
        assert "Configuration file not found" in capsys.readouterr().out

    @pytest.mark.parametrize("option", [["--bpm-key"], ["--reference", "ref.wav"]])
    def test_single_file_options_rejected_in_batch_mode(self, option, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--batch", *option, "a.wav", "b.wav"])
        assert exc_info.value.code == 2
        assert "not in batch mode" in capsys.readouterr().err

    def test_missing_audio_file(self, tmp_path, capsys):
        code = main([str(tmp_path / "missing.wav")])
        assert code == 1
