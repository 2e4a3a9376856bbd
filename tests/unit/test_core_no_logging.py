from pathlib import Path


CORE_DIR = Path(__file__).resolve().parents[2] / "daftar" / "core"


def test_core_modules_do_not_import_logging() -> None:
    offenders: list[Path] = []
    for path in CORE_DIR.rglob("*.py"):
        text = path.read_text(encoding="utf-8")
        if "logging." in text or "import logging" in text:
            offenders.append(path)
    assert not offenders, f"logging usage found in core modules: {offenders}"


def test_core_does_not_depend_on_infra() -> None:
    offenders = [
        path for path in CORE_DIR.rglob("*.py") if "daftar.infra" in path.read_text(encoding="utf-8")
    ]
    assert not offenders, f"infra imports found in core modules: {offenders}"
