#!/usr/bin/env python3
"""Validate local roomfinder environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from datetime import datetime
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from roomfinder.domain.models import SearchRequest
from roomfinder.repository.data_repository import DataRepository
from roomfinder.services.search_service import LocationSearchService
from roomfinder.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="roomfinder-env-")

    if sys.version_info >= (3, 10):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.10",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    package_specs = ["fastapi", "uvicorn", "pydantic", "httpx", "pytest"]
    import_errors: list[str] = []
    for module_name in package_specs:
        try:
            importlib.import_module(module_name)
        except Exception as exc:  # pragma: no cover - runtime guard
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    try:
        validation_settings = replace(
            get_settings(),
            database_path=Path(temp_dir) / "roomfinder_validation.db",
        )
        repository = DataRepository(validation_settings)

        try:
            repository.initialize_database()
            ok, line = _print_result("Database initialization", True)
        except Exception as exc:
            ok, line = _print_result("Database initialization", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        try:
            repository.seed_synthetic_data()
            seeded = repository.count_locations()
            if seeded == 0:
                raise RuntimeError("no locations seeded")
            ok, line = _print_result("Synthetic directory", True, f": {seeded} locations")
        except Exception as exc:
            ok, line = _print_result("Synthetic directory", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        service = LocationSearchService(
            location_provider=repository,
            availability_provider=repository,
            settings=validation_settings,
        )
        try:
            response = service.search(
                SearchRequest(query="room for 6 people with a whiteboard tomorrow"),
                reference_time=datetime.now(),
            )
            if not response.results:
                raise RuntimeError("sample search returned no results")
            top = response.results[0]
            ok, line = _print_result(
                "Sample search",
                True,
                f": top={top.location.name} score={top.score:.2f}",
            )
        except Exception as exc:
            ok, line = _print_result("Sample search", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" roomfinder Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
