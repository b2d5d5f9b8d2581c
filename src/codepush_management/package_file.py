"""
Release packaging for codepush-management-client.

Directories are zipped into a temporary archive before upload; single
files are uploaded unmodified.
"""

import logging
import os
import tempfile
import zipfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, NamedTuple, Optional, Union

from .utils import generate_random_filename

logger = logging.getLogger(__name__)

TEMP_FILENAME_LENGTH = 15


class PackageFile(NamedTuple):
    path: Path
    is_temporary: bool


def zip_directory(directory: Union[str, Path], output_path: Union[str, Path]) -> Path:
    """
    Zip every file below ``directory`` into ``output_path``.

    Entries are added in sorted order, named relative to the directory's
    parent so the archive keeps the top-level folder.
    """
    source = Path(directory)
    base = source.resolve().parent
    output = Path(output_path)

    files = sorted(path for path in source.resolve().rglob("*") if path.is_file())
    with zipfile.ZipFile(output, "w", zipfile.ZIP_DEFLATED) as archive:
        for file_path in files:
            archive.write(file_path, arcname=file_path.relative_to(base).as_posix())

    logger.info(f"zip_directory: Packed {len(files)} files from {source} into {output}")
    return output


@contextmanager
def package_file_from_path(
    file_path: Union[str, Path], temp_dir: Optional[Union[str, Path]] = None
) -> Iterator[PackageFile]:
    """
    Context manager yielding the file to upload for ``file_path``.

    Usage:
        with package_file_from_path("./dist") as package_file:
            upload(package_file.path)

    A directory is zipped to ``<temp_dir>/<15 random characters>.zip``,
    which is removed when the block exits, whether it succeeded or not.
    """
    source = Path(file_path)
    if not source.is_dir():
        if not source.exists():
            raise FileNotFoundError(f"Package path not found: {file_path}")
        yield PackageFile(path=source, is_temporary=False)
        return

    directory = Path(temp_dir) if temp_dir else Path(tempfile.gettempdir())
    archive_path = directory / f"{generate_random_filename(TEMP_FILENAME_LENGTH)}.zip"
    try:
        zip_directory(source, archive_path)
        yield PackageFile(path=archive_path, is_temporary=True)
    finally:
        _remove_archive(archive_path)


def _remove_archive(archive_path: Path) -> None:
    try:
        os.remove(archive_path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove temporary archive {archive_path}: {e}")
