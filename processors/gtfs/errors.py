# processors/gtfs/errors.py
# -*- coding: utf-8 -*-
"""
Exception types raised by the GTFS import pipeline.

A reference lookup that finds nothing is not an error and has no
exception type: the reference is simply left unset.
"""
from typing import Any, List, Optional


class GTFSImportError(Exception):
    """Base class for all import pipeline errors."""

    def __init__(self, message: str, agency_key: Optional[str] = None):
        super().__init__(message)
        self.agency_key = agency_key


class ConfigurationError(GTFSImportError):
    """An agency entry lacks its key or a source, or the config is invalid."""


class AcquisitionError(GTFSImportError):
    """The feed could not be downloaded, extracted or copied."""


class ParseError(GTFSImportError):
    """An entity file is malformed. Fatal for the agency being imported."""

    def __init__(
        self,
        message: str,
        filename: str,
        agency_key: Optional[str] = None,
    ):
        super().__init__(message, agency_key)
        self.filename = filename


class PersistenceError(GTFSImportError):
    """
    Part of a bulk write failed.

    The rows that could be written were written; `inserted_count` says how
    many, and `errors` holds one entry per rejected row.
    """

    def __init__(
        self,
        message: str,
        inserted_count: int = 0,
        errors: Optional[List[Any]] = None,
        agency_key: Optional[str] = None,
    ):
        super().__init__(message, agency_key)
        self.inserted_count = inserted_count
        self.errors = errors or []


class StoreError(GTFSImportError):
    """A store read, update, delete or schema operation failed."""
