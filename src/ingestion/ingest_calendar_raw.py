"""Collect calendar exports into the Raw layer from disk or Azure Blob Storage."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Dict, Iterable, List, Sequence
from urllib.parse import quote, urlencode
from urllib.request import Request, urlopen
import xml.etree.ElementTree as ET

from src.utils.config import (
    AZURE_ACCOUNT_URL,
    AZURE_BLOB_PREFIX,
    AZURE_CLIENT_ID,
    AZURE_CLIENT_SECRET,
    AZURE_CONTAINER_NAME,
    AZURE_TENANT_ID,
    BUSINESS_HOURS_FILENAME,
    HOLIDAYS_FILENAME,
    RAW_DIR,
    RAW_INPUT_PATHS,
    UNITS_FILENAME,
)

logger = logging.getLogger(__name__)

_STORAGE_API_VERSION = "2020-10-02"
_STORAGE_SCOPE = "https://storage.azure.com/.default"

CALENDAR_EXPORT_NAMES = (BUSINESS_HOURS_FILENAME, HOLIDAYS_FILENAME, UNITS_FILENAME)


def copy_local_exports(source_paths: Iterable[Path], destination_dir: Path) -> List[Path]:
    """
    Copy the calendar exports that exist locally into the Raw layer.

    Missing files are skipped; the holiday and unit exports are optional.
    """
    destination_dir.mkdir(parents=True, exist_ok=True)
    copied: List[Path] = []
    for source_path in source_paths:
        if not source_path.exists():
            continue
        destination_path = destination_dir / source_path.name
        shutil.copy2(source_path, destination_path)
        copied.append(destination_path)
    return copied


def azure_configured() -> bool:
    return all(
        [AZURE_TENANT_ID, AZURE_CLIENT_ID, AZURE_CLIENT_SECRET, AZURE_ACCOUNT_URL, AZURE_CONTAINER_NAME]
    )


def _storage_token() -> str:
    from azure.identity import ClientSecretCredential

    credential = ClientSecretCredential(AZURE_TENANT_ID, AZURE_CLIENT_ID, AZURE_CLIENT_SECRET)
    return credential.get_token(_STORAGE_SCOPE).token


def _storage_request(url: str, token: str) -> Request:
    return Request(url, headers={"Authorization": f"Bearer {token}", "x-ms-version": _STORAGE_API_VERSION})


def list_calendar_blobs(token: str, wanted_names: Sequence[str]) -> Dict[str, str]:
    """
    Map each wanted export file name to the blob that holds it.

    Blobs under ``AZURE_BLOB_PREFIX`` whose base name is not a calendar export
    are ignored. The first blob listed for a name wins.
    """
    query = {"restype": "container", "comp": "list"}
    if AZURE_BLOB_PREFIX:
        query["prefix"] = AZURE_BLOB_PREFIX
    list_url = f"{AZURE_ACCOUNT_URL.rstrip('/')}/{AZURE_CONTAINER_NAME}?{urlencode(query)}"
    with urlopen(_storage_request(list_url, token), timeout=60) as response:
        root = ET.fromstring(response.read())

    found: Dict[str, str] = {}
    for blob in root.findall(".//{*}Blob"):
        blob_name = blob.findtext("{*}Name") or ""
        export_name = Path(blob_name).name
        if export_name in wanted_names and export_name not in found:
            found[export_name] = blob_name
    return found


def download_calendar_exports(
    destination_dir: Path, wanted_names: Sequence[str] = CALENDAR_EXPORT_NAMES
) -> List[Path]:
    """Download the wanted calendar exports from Azure Blob Storage."""
    if not azure_configured():
        raise ValueError("Azure credentials or container are not configured in environment variables.")

    token = _storage_token()
    blobs = list_calendar_blobs(token, wanted_names)
    destination_dir.mkdir(parents=True, exist_ok=True)

    downloaded: List[Path] = []
    for export_name, blob_name in blobs.items():
        blob_url = f"{AZURE_ACCOUNT_URL.rstrip('/')}/{AZURE_CONTAINER_NAME}/{quote(blob_name)}"
        destination_path = destination_dir / export_name
        with urlopen(_storage_request(blob_url, token), timeout=300) as response:
            destination_path.write_bytes(response.read())
        downloaded.append(destination_path)
        logger.info("Downloaded %s from blob %s", export_name, blob_name)
    return downloaded


def ingest_calendar_exports(
    source_paths: Iterable[Path] = RAW_INPUT_PATHS,
    raw_dir: Path = RAW_DIR,
) -> List[Path]:
    """
    Gather calendar exports into the Raw layer.

    Local files are copied first. Exports still missing are fetched from Azure
    Blob Storage when it is configured. The business-hours export is required;
    a ``ValueError`` is raised when neither source provides it.
    """
    collected = copy_local_exports(source_paths, raw_dir)
    if collected:
        logger.info("Copied %d local calendar exports into %s", len(collected), raw_dir)

    have = {path.name for path in collected}
    missing = [name for name in CALENDAR_EXPORT_NAMES if name not in have]
    if missing and azure_configured():
        collected.extend(download_calendar_exports(raw_dir, missing))

    if BUSINESS_HOURS_FILENAME not in {path.name for path in collected}:
        raise ValueError(
            f"Business-hours export {BUSINESS_HOURS_FILENAME!r} was not found locally "
            "or in Azure Blob Storage."
        )
    return collected
