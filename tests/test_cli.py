from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from dvfile.__main__ import main

if TYPE_CHECKING:
    from collections.abc import Callable

    import pytest


def test_cli_summary(simple_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main([str(simple_file)]) == 0
    out = capsys.readouterr().out
    assert f"{simple_file}:" in out
    assert "Dimensions: 32x32x3" in out
    assert "Pixel type: 6 (UINT16)" in out
    assert "Axis sizes: {'T': 2, 'C': 3, 'Z': 3, 'Y': 32, 'X': 32}" in out
    assert "Title:" not in out


def test_cli_titles(simple_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main([str(simple_file), "--titles"]) == 0
    assert "Title: test stack" in capsys.readouterr().out


def test_cli_bad_file(
    simple_file: Path,
    make_dv: Callable[..., Path],
    capsys: pytest.CaptureFixture[str],
) -> None:
    bad = make_dv(marker=0)
    assert main([str(bad), str(simple_file)]) == 1
    captured = capsys.readouterr()
    assert "not a recognized DV file" in captured.err
    assert "Dimensions: 32x32x3" in captured.out
