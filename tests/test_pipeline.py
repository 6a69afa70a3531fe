"""
Tests for the fetch pipeline, driven with in-memory fakes.
"""

import zipfile
from pathlib import Path

import pytest

from core.config import AppSettings
from core.domain.errors import PlatformRejectedError
from core.domain.models import DownloadStatus, InstallerAction
from core.services.driver_pack_pipeline import (
    FetchRequest,
    PipelineHooks,
    download_softpaqs,
    extract_installers,
    find_installers,
    install_installers,
    package_extracted,
    prepare_target_dir,
    query_catalog,
    run_fetch,
)
from conftest import FakeCatalog, FakeInstallerRunner, make_metadata


def _request(tmp_path, **kwargs):
    return FetchRequest(platform="8760", target_dir=tmp_path / "drivers", **kwargs)


class TestFetchRequest:
    def test_from_settings_defaults(self, tmp_path):
        request = FetchRequest.from_settings(AppSettings(), platform="8760", target_dir=tmp_path)
        assert request.os_name == "win11"
        assert request.extract_arguments == ("/s", "/e", "/f")
        assert request.archive_name == "DriverPack.zip"

    def test_none_overrides_ignored(self, tmp_path):
        request = FetchRequest.from_settings(
            AppSettings(target_os="win10", target_os_version="22H2"),
            platform="8760",
            target_dir=tmp_path,
            os_name=None,
            os_version="21H2",
        )
        assert request.os_name == "win10"
        assert request.os_version == "21H2"


class TestSteps:
    def test_prepare_creates_nested_dir(self, tmp_path):
        target = tmp_path / "a" / "b"
        assert prepare_target_dir(target).is_dir()

    def test_prepare_resolves_relative_dir(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        target = prepare_target_dir(Path("drivers"))
        assert target.is_absolute()
        assert target == (tmp_path / "drivers").resolve()

    def test_extract_relative_target_passes_absolute_output_dir(self, monkeypatch, tmp_path, fake_runner):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "drivers").mkdir()
        (tmp_path / "drivers" / "a - 1 (Jan 01, 2024).exe").write_bytes(b"MZ")
        runs = extract_installers(fake_runner, Path("drivers"))
        installer, args = fake_runner.calls[0]
        assert installer.is_absolute()
        assert Path(args[-1]) == (tmp_path / "drivers" / "a - 1 (Jan 01, 2024)").resolve()
        assert runs[0].succeeded

    def test_query_writes_catalog_log(self, tmp_path, fake_catalog):
        log_path = tmp_path / "Available Driver Packs.log"
        listing = query_catalog(fake_catalog, platform="8760", os_name="win11", os_version="23H2", log_path=log_path)
        assert listing.softpaq_ids == ["sp143521", "sp144012", "sp145110"]
        assert log_path.read_text(encoding="utf-8") == fake_catalog.listing_text
        assert fake_catalog.queried == [("8760", "win11", "23H2")]

    def test_download_names_files_from_metadata(self, tmp_path, fake_catalog):
        outcomes = download_softpaqs(fake_catalog, ["sp143521"], tmp_path)
        assert outcomes[0].status is DownloadStatus.DOWNLOADED
        assert outcomes[0].path.name == "Intel Chipset Installation Utility - 10.1.19199.8340 (Feb 15, 2023).exe"

    def test_download_failures_continue(self, tmp_path):
        catalog = FakeCatalog(failing_downloads=["sp144012"])
        outcomes = download_softpaqs(catalog, ["sp143521", "sp144012", "sp999999", "sp145110"], tmp_path)
        assert [o.status for o in outcomes] == [
            DownloadStatus.DOWNLOADED,
            DownloadStatus.FAILED,
            DownloadStatus.FAILED,
            DownloadStatus.DOWNLOADED,
        ]
        assert "connection reset" in outcomes[1].error
        assert outcomes[2].metadata is None
        assert len(list(tmp_path.glob("*.exe"))) == 2

    def test_bad_timestamp_is_per_item(self, tmp_path):
        catalog = FakeCatalog({"sp1000": make_metadata("sp1000", "Tool", "1", "someday!")})
        outcomes = download_softpaqs(catalog, ["sp1000"], tmp_path)
        assert outcomes[0].status is DownloadStatus.FAILED
        assert outcomes[0].error.startswith("sp1000:")

    def test_same_title_gets_unique_names(self, tmp_path):
        catalog = FakeCatalog(
            {
                "sp1000": make_metadata("sp1000", "Intel Graphics Driver", "31.0", "20230101"),
                "sp2000": make_metadata("sp2000", "Intel Graphics Driver", "31.0", "20230101"),
            }
        )
        outcomes = download_softpaqs(catalog, ["sp1000", "sp2000"], tmp_path)
        names = [o.path.name for o in outcomes]
        assert names == [
            "Intel Graphics Driver - 31.0 (Jan 01, 2023).exe",
            "Intel Graphics Driver - 31.0 (Jan 01, 2023) [sp2000].exe",
        ]

    def test_download_progress_hook(self, tmp_path, fake_catalog):
        seen = []
        hooks = PipelineHooks(download_start=lambda total: seen.append(total), download_progress=lambda i, t, n: seen.append((i, t, n)))
        download_softpaqs(fake_catalog, ["sp143521", "sp144012"], tmp_path, hooks=hooks)
        assert seen == [2, (1, 2, "sp143521"), (2, 2, "sp144012")]

    def test_find_installers_only_top_level_exe(self, tmp_path):
        (tmp_path / "b.exe").write_bytes(b"")
        (tmp_path / "A.EXE").write_bytes(b"")
        (tmp_path / "notes.txt").write_text("x")
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "c.exe").write_bytes(b"")
        assert [p.name for p in find_installers(tmp_path)] == ["A.EXE", "b.exe"]

    def test_extract_includes_preexisting_installers(self, tmp_path, fake_runner):
        (tmp_path / "old - 1 (Jan 01, 2020).exe").write_bytes(b"MZ")
        (tmp_path / "new - 2 (Jan 01, 2024).exe").write_bytes(b"MZ")
        runs = extract_installers(fake_runner, tmp_path)
        assert [r.installer.name for r in runs] == ["new - 2 (Jan 01, 2024).exe", "old - 1 (Jan 01, 2020).exe"]
        installer, args = fake_runner.calls[0]
        assert args == ["/s", "/e", "/f", str(tmp_path / "new - 2 (Jan 01, 2024)")]
        assert (tmp_path / "old - 1 (Jan 01, 2020)").is_dir()
        assert all(r.action is InstallerAction.EXTRACT and r.succeeded for r in runs)

    def test_nonzero_exit_is_recorded_and_processing_continues(self, tmp_path):
        (tmp_path / "a.exe").write_bytes(b"MZ")
        (tmp_path / "b.exe").write_bytes(b"MZ")
        runner = FakeInstallerRunner(exit_codes={"a.exe": 1603})
        runs = install_installers(runner, tmp_path)
        assert [r.return_code for r in runs] == [1603, 0]
        assert [args for _, args in runner.calls] == [["/s"], ["/s"]]

    def test_launch_failure_is_recorded(self, tmp_path):
        (tmp_path / "a.exe").write_bytes(b"MZ")

        class Broken:
            def run(self, installer, arguments):
                raise OSError("Exec format error")

        runs = install_installers(Broken(), tmp_path)
        assert runs[0].return_code is None
        assert runs[0].error == "Exec format error"
        assert not runs[0].succeeded

    def test_package_overwrites_existing_archive(self, tmp_path):
        (tmp_path / "one").mkdir()
        (tmp_path / "one" / "x.inf").write_text("x")
        (tmp_path / "DriverPack.zip").write_bytes(b"stale")
        archive = package_extracted(tmp_path)
        with zipfile.ZipFile(archive) as zf:
            assert "one/x.inf" in zf.namelist()


class TestRunFetch:
    def test_download_count_matches_distinct_ids(self, tmp_path, fake_catalog, fake_runner):
        report = run_fetch(_request(tmp_path), catalog=fake_catalog, runner=fake_runner)
        assert report.softpaq_ids == ["sp143521", "sp144012", "sp145110"]
        assert len(list((tmp_path / "drivers").glob("*.exe"))) == 3
        assert report.failure_count == 0
        assert report.platform_names == ["HP EliteBook 860 16 inch G9"]
        assert report.finished_at is not None

    def test_relative_target_dir_extracts_beside_installers(self, monkeypatch, tmp_path, fake_catalog, fake_runner):
        monkeypatch.chdir(tmp_path)
        report = run_fetch(
            FetchRequest(platform="8760", target_dir=Path("drivers"), extract=True),
            catalog=fake_catalog,
            runner=fake_runner,
        )
        target = (tmp_path / "drivers").resolve()
        assert report.target_dir == target
        assert len(fake_runner.calls) == 3
        for installer, args in fake_runner.calls:
            assert Path(args[-1]).is_absolute()
            assert (target / installer.stem).is_dir()
        assert not (target / "drivers").exists()

    def test_target_dir_created_and_log_kept(self, tmp_path, fake_catalog, fake_runner):
        target = tmp_path / "drivers"
        assert not target.exists()
        run_fetch(_request(tmp_path), catalog=fake_catalog, runner=fake_runner)
        assert (target / "Available Driver Packs.log").is_file()

    def test_no_optional_steps_by_default(self, tmp_path, fake_catalog, fake_runner):
        report = run_fetch(_request(tmp_path), catalog=fake_catalog, runner=fake_runner)
        assert fake_runner.calls == []
        assert report.extractions == [] and report.installs == []
        assert report.archive_path is None

    def test_compress_without_extract_warns(self, tmp_path, fake_catalog, fake_runner):
        warnings = []
        report = run_fetch(
            _request(tmp_path, compress=True),
            catalog=fake_catalog,
            runner=fake_runner,
            hooks=PipelineHooks(warning=warnings.append),
        )
        assert report.archive_path is None
        assert not (tmp_path / "drivers" / "DriverPack.zip").exists()
        assert any("requires extraction" in w for w in report.warnings)
        assert warnings == report.warnings

    def test_rejected_platform_is_fatal(self, tmp_path, fake_catalog, fake_runner):
        with pytest.raises(PlatformRejectedError):
            run_fetch(FetchRequest(platform="0000", target_dir=tmp_path / "d"), catalog=fake_catalog, runner=fake_runner)
        assert fake_catalog.downloaded == []

    def test_empty_catalog_warns(self, tmp_path, fake_runner):
        catalog = FakeCatalog(listing_text="What if: nothing applicable\n")
        report = run_fetch(_request(tmp_path), catalog=catalog, runner=fake_runner)
        assert report.downloads == []
        assert report.warnings == ["No SoftPaqs found for platform 8760."]

    def test_install_runs_every_installer(self, tmp_path, fake_catalog, fake_runner):
        report = run_fetch(_request(tmp_path, install=True), catalog=fake_catalog, runner=fake_runner)
        assert len(report.installs) == 3
        assert fake_runner.calls_with("/e") == []

    def test_end_to_end_8760_extract_and_compress(self, tmp_path, fake_catalog, fake_runner):
        target = tmp_path / "drivers"
        report = run_fetch(
            _request(tmp_path, extract=True, compress=True),
            catalog=fake_catalog,
            runner=fake_runner,
        )

        installers = sorted(p.stem for p in target.glob("*.exe"))
        subdirs = sorted(p.name for p in target.iterdir() if p.is_dir())
        assert len(installers) == 3
        assert subdirs == installers

        assert report.archive_path == target / "DriverPack.zip"
        with zipfile.ZipFile(report.archive_path) as zf:
            top_level = {name.split("/", 1)[0] for name in zf.namelist()}
            assert all(info.compress_type == zipfile.ZIP_DEFLATED for info in zf.infolist() if not info.is_dir())
        assert sorted(top_level) == installers

        assert len(fake_runner.calls) == 3
        assert all("/e" in args for _, args in fake_runner.calls)
        assert report.installs == []

    def test_archive_lists_subdirs_regardless_of_origin(self, tmp_path, fake_catalog, fake_runner):
        target = tmp_path / "drivers"
        (target / "Manually Added").mkdir(parents=True)
        (target / "Manually Added" / "readme.txt").write_text("hi")
        report = run_fetch(
            _request(tmp_path, extract=True, compress=True),
            catalog=fake_catalog,
            runner=fake_runner,
        )
        with zipfile.ZipFile(report.archive_path) as zf:
            top_level = {name.split("/", 1)[0] for name in zf.namelist()}
        assert "Manually Added" in top_level
        assert len(top_level) == 4
