#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Handles acquiring a GTFS feed: downloading the zip file, extracting it,
or copying an already unzipped directory, into the agency's scratch
directory.

Every failure is raised as AcquisitionError. Acquisition runs before any
stored data is touched, so a failure here leaves the agency's existing
records in place.
"""

import logging
import shutil
import zipfile
from pathlib import Path
from typing import Optional, Union

import requests

from common.core_utils import log_import

from .errors import AcquisitionError
from .task import ImportTask

module_logger = logging.getLogger(__name__)

DOWNLOAD_FILENAME = "gtfs.zip"


def download_gtfs_feed(
    feed_url: str,
    download_to_path: Union[str, Path],
    timeout: int = 120,
    current_logger: Optional[logging.Logger] = None,
) -> Path:
    """
    Download a GTFS feed from a given URL to a specified path.

    Args:
        feed_url: The URL of the GTFS zip file.
        download_to_path: Where the downloaded zip file will be saved.
        timeout: Seconds to wait for the server before giving up.
        current_logger: Optional logger to use instead of the module logger.

    Returns:
        The path the feed was saved to.

    Raises:
        AcquisitionError: On any non-success response, network or I/O error.
    """
    logger_to_use = current_logger if current_logger else module_logger
    download_path = Path(download_to_path)
    log_import(f"Downloading GTFS from {feed_url}", "info", logger_to_use)

    try:
        download_path.parent.mkdir(parents=True, exist_ok=True)
        with requests.get(feed_url, stream=True, timeout=timeout) as response:
            response.raise_for_status()
            with open(download_path, "wb") as f:
                for chunk in response.iter_content(chunk_size=8192):
                    if chunk:
                        f.write(chunk)
    except requests.exceptions.HTTPError as http_err:
        status_code = http_err.response.status_code if http_err.response is not None else "Unknown"
        raise AcquisitionError(
            f"Couldn't download files from {feed_url}: HTTP status {status_code}"
        ) from http_err
    except requests.exceptions.RequestException as req_err:
        raise AcquisitionError(f"Couldn't download files from {feed_url}: {req_err}") from req_err
    except OSError as io_err:
        raise AcquisitionError(f"Couldn't save download to {download_path}: {io_err}") from io_err

    log_import("Download successful", "info", logger_to_use)
    return download_path


def _flatten_single_folder(extract_path: Path) -> None:
    """Move files up when an archive wraps the whole feed in one folder."""
    entries = list(extract_path.iterdir())
    if len(entries) != 1 or not entries[0].is_dir():
        return
    wrapper = entries[0]
    module_logger.debug(f"Flattening wrapper folder '{wrapper.name}' in {extract_path}")
    for item in wrapper.iterdir():
        shutil.move(str(item), str(extract_path / item.name))
    wrapper.rmdir()


def extract_gtfs_feed(
    zip_file_path: Union[str, Path], extract_to_dir: Union[str, Path]
) -> Path:
    """
    Extract a GTFS zip file to a specified directory.

    Args:
        zip_file_path: The path to the GTFS zip file.
        extract_to_dir: The directory to extract files into.

    Returns:
        The directory holding the extracted .txt files.

    Raises:
        AcquisitionError: If the archive is missing, corrupt or unreadable.
    """
    zip_path = Path(zip_file_path)
    extract_path = Path(extract_to_dir)

    module_logger.info(f"Extracting GTFS feed '{zip_path}' to '{extract_path}'")

    if not zip_path.is_file():
        raise AcquisitionError(f"Zip file not found or is not a file: {zip_path}")

    try:
        extract_path.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(zip_path, "r") as zip_ref:
            common_gtfs_files = {"stops.txt", "routes.txt", "trips.txt"}
            archive_files = {Path(name).name.lower() for name in zip_ref.namelist()}
            if not common_gtfs_files.intersection(archive_files):
                module_logger.warning(
                    f"Archive '{zip_path}' may not contain common GTFS files. Proceeding."
                )
            zip_ref.extractall(extract_path)
        _flatten_single_folder(extract_path)
    except zipfile.BadZipFile as e:
        raise AcquisitionError(f"Unable to unzip file {zip_path}: not a valid zip file") from e
    except OSError as e:
        raise AcquisitionError(f"Unable to unzip file {zip_path}: {e}") from e

    extracted_files = [item.name for item in extract_path.iterdir() if item.is_file()]
    module_logger.debug(f"Extracted files list: {extracted_files}")
    return extract_path


def copy_gtfs_directory(
    source_dir: Union[str, Path], dest_dir: Union[str, Path]
) -> Path:
    """
    Copy an unzipped GTFS directory into the scratch directory.

    Raises:
        AcquisitionError: If the source is not a directory or cannot be copied.
    """
    source_path = Path(source_dir)
    dest_path = Path(dest_dir)
    if not source_path.is_dir():
        raise AcquisitionError(f"GTFS path not found: {source_path}")
    try:
        shutil.copytree(source_path, dest_path, dirs_exist_ok=True)
    except (OSError, shutil.Error) as e:
        raise AcquisitionError(f"Unable to copy {source_path}: {e}") from e
    return dest_path


def fetch_source(task: ImportTask) -> Path:
    """
    Return the local zip file or directory the agency's feed comes from.

    The URL is downloaded when one is configured; the configured path
    (with `~` expanded) is used otherwise.
    """
    if task.agency_url:
        return download_gtfs_feed(
            task.agency_url,
            task.download_dir / DOWNLOAD_FILENAME,
            timeout=task.request_timeout,
            current_logger=task.logger_for(module_logger),
        )
    return Path(task.path).expanduser()


def prepare_feed_dir(task: ImportTask, source_path: Path) -> Path:
    """
    Put the feed's files into `task.feed_dir`.

    A `.zip` file is extracted; anything else is treated as an unzipped
    directory and copied.
    """
    log_import(f"Importing GTFS from {source_path}", "info", task.logger_for(module_logger))
    if source_path.suffix.lower() == ".zip":
        return extract_gtfs_feed(source_path, task.feed_dir)
    return copy_gtfs_directory(source_path, task.feed_dir)
