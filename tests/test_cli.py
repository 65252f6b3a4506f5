"""
CLI Tests
=========

Tests for the overlay-asm command. The encoder is replaced with the
recording encoder so these run without Keystone.
"""

import pytest
from click.testing import CliRunner

from conftest import RecordingEncoder

from overlay_asm import pipeline
from overlay_asm.cli.errors import ExitCode, handle_cli_exception
from overlay_asm.cli.ovasm import main, parse_address
from overlay_asm.errors import ParseError
from overlay_asm.serializer import read_document


@pytest.fixture(autouse=True)
def recording_encoder(monkeypatch):
    """Route the CLI's encoder factory to RecordingEncoder."""
    monkeypatch.setattr(
        pipeline,
        "default_encoder_factory",
        lambda config: (lambda: RecordingEncoder(reject="bogus")),
    )


def run(module_tree, tmp_path, *extra):
    output = tmp_path / "overlay.xml"
    result = CliRunner().invoke(main, [
        "-s", str(module_tree.source_dir),
        "-l", str(module_tree.overlay_dir),
        "-o", str(output),
        *extra,
    ])
    return result, output


class TestOverlayAsmCLI:
    """Tests for the overlay-asm command."""

    def test_cli_help(self):
        result = CliRunner().invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "Assemble overlay code" in result.output

    def test_cli_version(self):
        result = CliRunner().invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "1.0.0" in result.output

    def test_writes_document(self, module_tree, tmp_path):
        module_tree("main_0a", "arepl_020C8000:\n nop\n", overlay_size=0x10)
        result, output = run(module_tree, tmp_path)

        assert result.exit_code == 0
        assert read_document(output).names() == ["main_0a"]

    def test_failure_still_writes_good_modules(self, module_tree, tmp_path):
        """A broken module exits 1 but the rest are written."""
        module_tree("good", "arepl_020C8000:\n nop\n", overlay_size=0x10)
        module_tree("bad", "ahook_020C9000:\n bogus\n", overlay_size=0x10)
        result, output = run(module_tree, tmp_path)

        assert result.exit_code == 1
        assert "hook 0x020C9000" in result.output
        assert read_document(output).names() == ["good"]

    def test_strict_flag(self, module_tree, tmp_path):
        module_tree("wide", "arepl_020C8000:\n nop\n nop\n", overlay_size=0x10)

        result, _ = run(module_tree, tmp_path)
        assert result.exit_code == 0

        result, _ = run(module_tree, tmp_path, "--strict")
        assert result.exit_code == 1

    def test_base_address_option(self, module_tree, tmp_path):
        module_tree("m", "arepl_020C8000:\n nop\n", overlay_size=0x10)
        result, output = run(module_tree, tmp_path, "--base-address", "0x02000000")

        assert result.exit_code == 0
        assert read_document(output).get("m").base_address == 0x02000000

    def test_missing_source_dir(self, tmp_path):
        result = CliRunner().invoke(main, [
            "-s", str(tmp_path / "nope"), "-l", str(tmp_path), "-o", str(tmp_path / "o.xml"),
        ])
        assert result.exit_code == 2

    def test_parse_address(self):
        assert parse_address(None, None, "0x020C7660") == 0x020C7660
        assert parse_address(None, None, "$20C7660") == 0x020C7660
        assert parse_address(None, None, "16") == 16
        assert parse_address(None, None, None) is None

    def test_missing_encoder_backend(self, module_tree, tmp_path, monkeypatch):
        """Without Keystone installed the command exits 2 with the install hint."""
        def no_keystone(config):
            raise ImportError("keystone-engine required for encoding")

        monkeypatch.setattr(pipeline, "default_encoder_factory", no_keystone)
        module_tree("m", "arepl_020C8000:\n nop\n", overlay_size=0x10)
        result, output = run(module_tree, tmp_path)

        assert result.exit_code == ExitCode.INVALID_ARGS
        assert "keystone-engine required" in result.output
        assert not output.exists()


class TestHandleCliException:
    """Exit codes chosen by handle_cli_exception()."""

    @pytest.mark.parametrize("error, code", [
        (ParseError("bad header", module="m.s"), ExitCode.BUILD_ERROR),
        (ValueError("invalid literal"), ExitCode.INVALID_ARGS),
        (FileNotFoundError(2, "No such file or directory"), ExitCode.INVALID_ARGS),
        (PermissionError(13, "Permission denied"), ExitCode.INVALID_ARGS),
        (IsADirectoryError(21, "Is a directory"), ExitCode.INVALID_ARGS),
        (ImportError("no keystone"), ExitCode.INVALID_ARGS),
        (RuntimeError("bug"), ExitCode.INTERNAL_ERROR),
    ])
    def test_exit_codes(self, error, code, capsys):
        with pytest.raises(SystemExit) as exc_info:
            handle_cli_exception(error)
        assert exc_info.value.code == code

    def test_assembler_error_prefix(self, capsys):
        with pytest.raises(SystemExit):
            handle_cli_exception(ParseError("bad header", module="m.s"), error_type="Assembly")
        assert capsys.readouterr().err.startswith("Assembly error: m.s")
