from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Dict, List

import pytest

from subembed.archives import ArchiveExtractor
from subembed.processor import (
    BatchFailedError,
    BatchProcessor,
    BatchProcessorOptions,
    BatchState,
    BatchStateError,
    DirectoryCache,
    JobDescription,
    glob_bracket,
    run_batch,
)


class CountingExtractor(ArchiveExtractor):
    def __init__(self) -> None:
        super().__init__()
        self.calls = 0

    def extract(self, archive_path, dest_dir, *, archive_format=None):
        self.calls += 1
        return super().extract(archive_path, dest_dir, archive_format=archive_format)


@pytest.fixture
def workspace(tmp_path, archive_builders, write_tree) -> Dict[str, Path]:
    fonts = tmp_path / "fonts"
    write_tree(fonts, {"A.ttf": b"font-a", "readme.txt": b"ignore me"})
    fonts_zip = archive_builders["zip"](tmp_path / "more-fonts.zip", {"B.otf": b"font-b"})
    subs = archive_builders["zip"](
        tmp_path / "subs.zip",
        {
            f"Show [{n:02d}] 1080p.ass": f"[Script Info]\nTitle: Example {n}\n".encode()
            for n in (1, 2, 3)
        },
    )
    videos = tmp_path / "videos"
    write_tree(videos, {f"Show - {n:02d}.mkv": b"" for n in (1, 2, 3)})
    return {"fonts": fonts, "fonts_zip": fonts_zip, "subs": subs, "videos": videos}


def make_job(workspace, episode: int, **overrides) -> JobDescription:
    values = dict(
        font_dir=[workspace["fonts"], workspace["fonts_zip"]],
        subtitle_dir=workspace["subs"],
        subtitle_glob=glob_bracket(episode),
        output_dir=workspace["videos"],
        video_glob=f"*- {episode:02d}.mkv",
        output_suffix=".sc.ass",
    )
    values.update(overrides)
    return JobDescription(**values)


def make_processor(settings, fake_assfonts, calls: List[int] | None = None, **options) -> BatchProcessor:
    def installer() -> Path:
        if calls is not None:
            calls.append(1)
        return fake_assfonts

    return BatchProcessor(BatchProcessorOptions(**options), settings=settings, installer=installer)


def leftover_temp_dirs(settings) -> List[str]:
    if not settings.tmp_dir.exists():
        return []
    return sorted(entry.name for entry in settings.tmp_dir.iterdir())


def test_batch_embeds_fonts_and_names_output_after_video(tmp_path, settings, fake_assfonts, workspace):
    processor = make_processor(settings, fake_assfonts, log_file=tmp_path / "batch.log")
    jobs = [make_job(workspace, 1), make_job(workspace, 2)]

    outcome = asyncio.run(processor.process(jobs))

    assert [r.success for r in outcome.results] == [True, True]
    output = workspace["videos"] / "Show - 01.sc.ass"
    assert outcome.results[0].output_file == output.resolve()
    assert outcome.results[0].input_file.name == "Show [01] 1080p.ass"
    text = output.read_text(encoding="utf-8")
    assert "Title: Example 1" in text
    assert "A.ttf" in text and "B.otf" in text
    assert "readme.txt" not in text
    assert "verbosity=2" in text
    assert (workspace["videos"] / "Show - 02.sc.ass").exists()
    assert outcome.not_attempted == 0
    assert processor.state is BatchState.COMPLETED
    assert leftover_temp_dirs(settings) == []


def test_shared_archive_is_extracted_once_per_batch(tmp_path, settings, fake_assfonts, workspace):
    extractor = CountingExtractor()
    processor = BatchProcessor(
        BatchProcessorOptions(disable_log=True),
        settings=settings,
        cache=DirectoryCache(parent_dir=settings.tmp_dir, extractor=extractor),
        installer=lambda: fake_assfonts,
    )

    asyncio.run(processor.process([make_job(workspace, n) for n in (1, 2, 3)]))

    # subs.zip and more-fonts.zip, each once.
    assert extractor.calls == 2


def test_fail_fast_stops_after_first_failed_job(tmp_path, settings, fake_assfonts, workspace):
    log_file = tmp_path / "batch.log"
    processor = make_processor(settings, fake_assfonts, log_file=log_file)
    jobs = [
        make_job(workspace, 1),
        make_job(workspace, 2, video_glob="*- 99.mkv"),
        make_job(workspace, 3),
    ]

    with pytest.raises(BatchFailedError) as excinfo:
        asyncio.run(processor.process(jobs))

    outcome = excinfo.value.outcome
    assert len(outcome.results) == 2
    assert outcome.results[0].success
    assert not outcome.results[1].success
    assert "No file matches" in outcome.results[1].error
    assert outcome.not_attempted == 1
    assert not (workspace["videos"] / "Show - 03.sc.ass").exists()
    assert "1 succeeded, 1 failed, 1 not attempted" in str(excinfo.value)
    assert str(log_file) in str(excinfo.value)

    log = log_file.read_text(encoding="utf-8")
    assert "Not attempted: 1" in log
    assert "Succeeded: 1" in log
    assert "Command: (not invoked)" in log
    assert processor.state is BatchState.ABORTED
    assert leftover_temp_dirs(settings) == []


def test_cache_root_is_removed_when_batch_fails(settings, fake_assfonts, workspace):
    processor = make_processor(settings, fake_assfonts, disable_log=True)
    roots: List[Path] = []
    original = processor.cache.prepare

    async def spy(*args, **kwargs):
        result = await original(*args, **kwargs)
        roots.append(processor.cache.root)
        return result

    processor.cache.prepare = spy  # type: ignore[method-assign]

    with pytest.raises(BatchFailedError):
        asyncio.run(processor.process(make_job(workspace, 1, subtitle_glob="*.missing")))

    assert roots and not roots[0].exists()
    assert processor.cache.root is None


def test_preparation_failure_names_the_source(settings, fake_assfonts, workspace, tmp_path):
    processor = make_processor(settings, fake_assfonts, disable_log=True)
    job = make_job(workspace, 1, font_dir=[workspace["fonts"], tmp_path / "absent.zip"])

    with pytest.raises(BatchFailedError) as excinfo:
        asyncio.run(processor.process(job))

    error = excinfo.value.outcome.results[0].error
    assert "Font 2" in error
    assert "absent.zip" in error
    assert excinfo.value.first_error == error


def test_tool_failure_is_logged_with_captured_output(tmp_path, settings, fake_assfonts, workspace, monkeypatch):
    monkeypatch.setenv("FAKE_ASSFONTS_MODE", "fail")
    log_file = tmp_path / "batch.log"
    processor = make_processor(settings, fake_assfonts, log_file=log_file)

    with pytest.raises(BatchFailedError) as excinfo:
        asyncio.run(processor.process(make_job(workspace, 1)))

    assert "missing font: Example Sans" in excinfo.value.first_error
    log = log_file.read_text(encoding="utf-8")
    assert "Failed to process file" in log
    assert f"Command: {fake_assfonts} -i " in log
    assert "--- STDERR ---\n[ERROR] missing font: Example Sans" in log
    assert "--- STDOUT ---\n(no output)" in log


@pytest.mark.parametrize("mode", ["none", "double"])
def test_output_cardinality_is_enforced(settings, fake_assfonts, workspace, monkeypatch, mode):
    monkeypatch.setenv("FAKE_ASSFONTS_MODE", mode)
    processor = make_processor(settings, fake_assfonts, disable_log=True)

    with pytest.raises(BatchFailedError) as excinfo:
        asyncio.run(processor.process(make_job(workspace, 1)))

    assert "Expected exactly one output file" in excinfo.value.first_error
    assert not (workspace["videos"] / "Show - 01.sc.ass").exists()
    assert leftover_temp_dirs(settings) == []


def test_sync_and_async_transforms_rewrite_subtitle(settings, fake_assfonts, workspace):
    async def shout(text: str) -> str:
        await asyncio.sleep(0)
        return text.upper()

    jobs = [
        make_job(workspace, 1, transform=lambda text: text.replace("Example", "Changed")),
        make_job(workspace, 2, transform=shout),
    ]
    processor = make_processor(settings, fake_assfonts, disable_log=True)

    asyncio.run(processor.process(jobs))

    assert "Title: Changed 1" in (workspace["videos"] / "Show - 01.sc.ass").read_text(encoding="utf-8")
    assert "TITLE: EXAMPLE 2" in (workspace["videos"] / "Show - 02.sc.ass").read_text(encoding="utf-8")


def test_disabled_log_writes_nothing(tmp_path, settings, fake_assfonts, workspace, monkeypatch):
    monkeypatch.chdir(tmp_path)
    processor = make_processor(settings, fake_assfonts, disable_log=True)

    outcome = asyncio.run(processor.process(make_job(workspace, 1)))

    assert outcome.log_file is None
    assert not list(tmp_path.glob("subembed-batch-*.log"))
    assert not settings.batch_log_dir.exists()


def test_default_log_lands_in_batch_log_dir(settings, fake_assfonts, workspace):
    processor = make_processor(settings, fake_assfonts)

    outcome = asyncio.run(processor.process(make_job(workspace, 1)))

    assert outcome.log_file is not None
    assert outcome.log_file.parent == settings.batch_log_dir
    assert outcome.log_file.name.startswith("subembed-batch-")
    log = outcome.log_file.read_text(encoding="utf-8")
    assert log.startswith("subembed batch log\nStarted: ")
    assert "Jobs: 1" in log
    assert "Processed file: " in log
    assert "[INFO] subsetting Show [01] 1080p.ass" in log


def test_processor_can_run_again_and_reuses_log_and_binary(tmp_path, settings, fake_assfonts, workspace):
    calls: List[int] = []
    log_file = tmp_path / "batch.log"
    processor = make_processor(settings, fake_assfonts, calls, log_file=log_file)

    asyncio.run(processor.process(make_job(workspace, 1)))
    with pytest.raises(BatchFailedError):
        asyncio.run(processor.process(make_job(workspace, 2, video_glob="*.none")))
    asyncio.run(processor.process(make_job(workspace, 3)))

    log = log_file.read_text(encoding="utf-8")
    assert log.count("subembed batch log") == 1
    assert log.count("Batch finished") == 3
    assert calls == [1]
    assert processor.state is BatchState.COMPLETED


def test_installer_failure_aborts_before_any_job(settings, workspace):
    def broken_installer() -> Path:
        raise RuntimeError("no network")

    processor = BatchProcessor(
        BatchProcessorOptions(disable_log=True), settings=settings, installer=broken_installer
    )

    with pytest.raises(RuntimeError, match="no network"):
        asyncio.run(processor.process(make_job(workspace, 1)))

    assert processor.state is BatchState.ABORTED


def test_invalid_transition_is_rejected(settings, fake_assfonts):
    processor = make_processor(settings, fake_assfonts, disable_log=True)

    with pytest.raises(BatchStateError):
        processor._transition(BatchState.COMPLETED)


def test_run_batch_blocking_wrapper(settings, fake_assfonts, workspace):
    outcome = run_batch(
        make_job(workspace, 3),
        BatchProcessorOptions(disable_log=True),
        settings=settings,
        installer=lambda: fake_assfonts,
    )

    assert outcome.ok
    assert (workspace["videos"] / "Show - 03.sc.ass").exists()
