# common/file_utils.py
# -*- coding: utf-8 -*-
"""
File system utility functions: scoped temporary directories, directory
cleanup and collision-free output folders.
"""

import logging
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Union

from settings.config_models import SYMBOLS_DEFAULT, MergeSettings

module_logger = logging.getLogger(__name__)


def cleanup_directory(
    directory_path: Path,
    settings: Optional[MergeSettings] = None,
    ensure_dir_exists_after: bool = False,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Remove a directory and all of its contents, optionally recreating it
    empty afterwards.

    Parameters:
        directory_path (Path): The directory to remove.
        settings (Optional[MergeSettings]): Settings providing log symbols.
        ensure_dir_exists_after (bool): Recreate the directory after cleanup.
        current_logger (Optional[logging.Logger]): Logger to use instead of
            the module logger.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = settings.symbols if settings and settings.symbols else SYMBOLS_DEFAULT

    logger_to_use.debug(f"Attempting to clean directory: {directory_path}")
    if directory_path.exists():
        if directory_path.is_dir():
            try:
                shutil.rmtree(directory_path)
                logger_to_use.debug(
                    f"{symbols.get('success', '✅')} Removed directory and its contents: {directory_path}"
                )
            except OSError as e:
                logger_to_use.error(
                    f"{symbols.get('error', '❌')} Error removing directory {directory_path}: {e}",
                    exc_info=True,
                )
        else:
            logger_to_use.warning(
                f"{symbols.get('warning', '!')} Path {directory_path} exists but is not a directory."
            )
    else:
        logger_to_use.debug(f"Directory {directory_path} does not exist. No cleanup needed.")

    if ensure_dir_exists_after:
        try:
            directory_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger_to_use.error(
                f"{symbols.get('error', '❌')} Error creating directory {directory_path} after cleanup: {e}",
                exc_info=True,
            )


@contextmanager
def scoped_temp_directory(
    prefix: str = "gtfs_merge_",
    parent: Optional[Union[str, Path]] = None,
    current_logger: Optional[logging.Logger] = None,
) -> Iterator[Path]:
    """
    Create a temporary directory that is removed on every exit path.

    Args:
        prefix: Directory name prefix.
        parent: Directory to create it in (system temp dir if None).
        current_logger: Logger to use instead of the module logger.

    Yields:
        The path of the temporary directory.
    """
    logger_to_use = current_logger if current_logger else module_logger
    temp_dir = Path(tempfile.mkdtemp(prefix=prefix, dir=str(parent) if parent else None))
    logger_to_use.debug(f"Created temporary directory: {temp_dir}")
    try:
        yield temp_dir
    finally:
        cleanup_directory(temp_dir, current_logger=logger_to_use)


def unique_directory(base_dir: Path, name: str) -> Path:
    """
    Create `base_dir/name`, or `name_1`, `name_2`, ... if it already exists.

    Returns:
        The directory that was created.
    """
    candidate = base_dir / name
    suffix = 1
    while candidate.exists():
        candidate = base_dir / f"{name}_{suffix}"
        suffix += 1
    candidate.mkdir(parents=True)
    return candidate


def remove_files_except(
    directory_path: Path,
    keep: Iterable[Union[str, Path]],
    current_logger: Optional[logging.Logger] = None,
) -> List[Path]:
    """
    Delete the regular files directly inside `directory_path` whose names
    are not listed in `keep` (compared case-insensitively).

    Returns:
        The paths that were removed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    keep_names = {Path(item).name.lower() for item in keep}
    removed: List[Path] = []
    for item in sorted(directory_path.iterdir()):
        if not item.is_file() or item.name.lower() in keep_names:
            continue
        item.unlink()
        removed.append(item)
        logger_to_use.debug(f"Removed loose file: {item}")
    return removed
