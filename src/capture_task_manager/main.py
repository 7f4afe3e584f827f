"""CLI entrypoint for capture-task-manager."""

import logging
from pathlib import Path

import rich_click as click

from capture_task_manager import __version__
from capture_task_manager.archive.controllers import (
    ArchiveCliController,
    ArchiveTasksCommand,
    CompressMethodsCommand,
    IngestStatusCommand,
    LocalTarCommand,
)
from capture_task_manager.archive.status_check import IngestStep
from capture_task_manager.capture.controllers import (
    CaptureCliController,
    ReconcilePathCommand,
    RenameCommand,
    ResolveCommand,
)

click.rich_click.USE_MARKDOWN = True
CAPTURE_CONTROLLER = CaptureCliController()
ARCHIVE_CONTROLLER = ArchiveCliController()


@click.group()
@click.version_option(version=__version__, prog_name="ctm")
@click.option("--verbose", "-v", is_flag=True, help="Log debug details to stderr.")
def ctm(verbose: bool) -> None:
    """Capture task manager: locate instrument datasets and archive them."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@ctm.command("resolve")
@click.argument("source_dir", type=click.Path(path_type=Path))
@click.argument("dataset")
@click.option(
    "--instrument-class",
    default=None,
    help="Instrument class, for example `BrukerMALDI_Imaging`; picks the search order.",
)
@click.option(
    "--directories-first",
    is_flag=True,
    help="Search for dataset directories before files (ignored with --instrument-class).",
)
def resolve(
    source_dir: Path,
    dataset: str,
    instrument_class: str | None,
    directories_first: bool,
) -> None:
    """Find a dataset file or directory in an instrument source directory."""

    result = CAPTURE_CONTROLLER.resolve(
        ResolveCommand(
            source_dir=source_dir,
            dataset=dataset,
            instrument_class=instrument_class,
            directories_first=directories_first,
        ),
    )
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Dataset not found.")


@ctm.command("reconcile-path")
@click.argument("share_root")
@click.argument("source_path")
@click.argument("capture_subdirectory")
def reconcile_path(share_root: str, source_path: str, capture_subdirectory: str) -> None:
    """Fold a `..`-prefixed capture subdirectory into the source path."""

    _emit_lines(
        CAPTURE_CONTROLLER.reconcile_path(
            ReconcilePathCommand(
                share_root=share_root,
                source_path=source_path,
                capture_subdirectory=capture_subdirectory,
            ),
        ),
    )


@ctm.command("rename")
@click.argument("source_dir", type=click.Path(path_type=Path))
@click.argument("dataset")
@click.option(
    "--instrument-file-hash",
    default="",
    help="SHA-1 of the instrument file; required to rename a file found by normalized name.",
)
def rename(source_dir: Path, dataset: str, instrument_file_hash: str) -> None:
    """Prefix a captured dataset file or directory with `x_`."""

    result = CAPTURE_CONTROLLER.rename(
        RenameCommand(
            source_dir=source_dir,
            dataset=dataset,
            instrument_file_hash=instrument_file_hash,
        ),
    )
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Rename failed.")


@ctm.group()
def archive() -> None:
    """Archive commands."""


@archive.command("compress-methods")
@click.argument("dataset_dir", type=click.Path(path_type=Path))
def archive_compress_methods(dataset_dir: Path) -> None:
    """Zip duplicate `*.m` method directories below a dataset directory."""

    result = ARCHIVE_CONTROLLER.compress_methods(CompressMethodsCommand(dataset_dir=dataset_dir))
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Duplicate method compression failed.")


@archive.command("local-tar")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--dataset", required=True, help="Dataset name.")
@click.option("--storage-vol", required=True, help="Storage volume, for example `/mnt/proto`.")
@click.option("--storage-path", default="", help="Path below the storage volume.")
@click.option("--directory", default=None, help="Dataset directory name; defaults to the dataset.")
@click.option("--job", type=click.IntRange(min=0), default=0, show_default=True, help="Job number.")
@click.option(
    "--output-dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Where to write the `.tar` bundle; defaults to CTM_LOCAL_TAR_DIR.",
)
@click.option("--offline", is_flag=True, help="Use offline mode instead of create-tar-local.")
def archive_local_tar(  # noqa: PLR0913
    db_path: Path | None,
    dataset: str,
    storage_vol: str,
    storage_path: str,
    directory: str | None,
    job: int,
    output_dir: Path | None,
    offline: bool,
) -> None:
    """Run the archive step in debug mode, bundling the dataset into a local `.tar`."""

    result = ARCHIVE_CONTROLLER.local_tar(
        LocalTarCommand(
            db_path=db_path,
            dataset=dataset,
            storage_vol=storage_vol,
            storage_path=storage_path,
            directory=directory,
            job=job,
            output_dir=output_dir,
            offline=offline,
        ),
    )
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Archive step failed.")


@archive.command("tasks")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--status",
    type=click.Choice(["queued", "done"], case_sensitive=False),
    default=None,
    help="Optional status filter.",
)
@click.option(
    "--limit",
    type=click.IntRange(min=1, max=1000),
    default=50,
    show_default=True,
    help="Max number of tasks to print.",
)
def archive_tasks(db_path: Path | None, status: str | None, limit: int) -> None:
    """List follow-up archive update tasks."""

    _emit_lines(
        ARCHIVE_CONTROLLER.tasks(
            ArchiveTasksCommand(
                db_path=db_path,
                status=status.lower() if status else None,
                limit=limit,
            ),
        ),
    )


@archive.command("status")
@click.argument("status_uri")
@click.option(
    "--step",
    type=click.Choice([step.name.lower() for step in IngestStep], case_sensitive=False),
    default="archived",
    show_default=True,
    help="Ingest step to evaluate.",
)
def archive_status(status_uri: str, step: str) -> None:
    """Check an archive ingest step from its status URI."""

    result = ARCHIVE_CONTROLLER.status(IngestStatusCommand(status_uri=status_uri, step=step))
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Ingest step is not complete.")


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    ctm()
