import csv
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, TextIO

from extractors import Record

logger = logging.getLogger(__name__)

SCALAR_TYPES = (str, int, float, bool)

Flattener = Callable[[Record], Dict[str, Any]]


class FlattenError(ValueError):
	"""A record cannot be reduced to a single-level mapping."""


def _set_path(flat: Dict[str, Any], path: str, value: Any) -> None:
	if path in flat:
		raise FlattenError(f"Duplicate flattened key '{path}'")
	flat[path] = value


def _flatten_into(flat: Dict[str, Any], value: Any, path: str, sep: str) -> None:
	if isinstance(value, (Mapping, list, tuple)):
		if isinstance(value, Mapping):
			children = list(value.items())
		else:
			children = [(str(i), v) for i, v in enumerate(value)]
		if not children:
			if path:
				_set_path(flat, path, None)
			return
		for key, child in children:
			if not isinstance(key, str):
				raise FlattenError(f"Non-string key {key!r} under '{path}'")
			_flatten_into(flat, child, f"{path}{sep}{key}" if path else key, sep)
		return

	if value is not None and not isinstance(value, SCALAR_TYPES):
		raise FlattenError(f"Unsupported value of type {type(value).__name__} at '{path}'")
	_set_path(flat, path, value)


def flatten_record(record: Record, sep: str = ".") -> Dict[str, Any]:
	"""
	Flatten nested mappings and lists into dotted paths.

	{"user": {"name": "a"}, "tags": ["x", "y"]} -> {"user.name": "a", "tags.0": "x", "tags.1": "y"}
	"""
	if not isinstance(record, Mapping):
		raise FlattenError(f"Record must be a mapping, got {type(record).__name__}")
	flat: Dict[str, Any] = {}
	_flatten_into(flat, record, "", sep)
	return flat


def format_value(value: Any) -> str:
	if value is None:
		return ""
	if isinstance(value, bool):
		return "true" if value else "false"
	return str(value)


class RowWriter(ABC):
	@abstractmethod
	def write(self, row: List[str]) -> None:
		...

	@abstractmethod
	def flush(self) -> None:
		...


class CSVRowWriter(RowWriter):
	def __init__(self, out: TextIO):
		self.out = out
		self.writer = csv.writer(out, lineterminator="\n")

	def write(self, row: List[str]) -> None:
		self.writer.writerow(row)

	def flush(self) -> None:
		self.out.flush()


class Loader(ABC):
	@abstractmethod
	def load(self, records: Sequence[Record]) -> None:
		...


class LoaderFn(Loader):
	def __init__(self, fn: Callable[[Sequence[Record]], None]):
		self.fn = fn

	def load(self, records: Sequence[Record]) -> None:
		self.fn(records)


NOOP_LOADER = LoaderFn(lambda records: None)


class CSVLoader(Loader):
	"""
	Writes records as CSV with one column per flattened key.

	Records need not share keys: the header is the alphabetically sorted union of
	every record's flattened keys and missing cells are left empty.
	"""

	def __init__(self, out: Optional[TextIO] = None, flattener: Flattener = flatten_record, row_writer: Optional[RowWriter] = None):
		if row_writer is None:
			if out is None:
				raise ValueError("CSVLoader needs either out or row_writer")
			row_writer = CSVRowWriter(out)
		self.flattener = flattener
		self.row_writer = row_writer

	def load(self, records: Sequence[Record]) -> None:
		# flatten everything first so a bad record leaves the sink untouched
		flattened = [self.flattener(record) for record in records]

		columns = sorted({key for record in flattened for key in record})
		index = {key: i for i, key in enumerate(columns)}

		self.row_writer.write(list(columns))
		for record in flattened:
			row = [""] * len(columns)
			for key, value in record.items():
				row[index[key]] = format_value(value)
			self.row_writer.write(row)

		self.row_writer.flush()
		logger.info("CSV written: %d rows x %d columns", len(flattened), len(columns))


class JSONLoader(Loader):
	"""Writes the records unflattened as a single JSON array."""

	def __init__(self, out: TextIO):
		self.out = out

	def load(self, records: Sequence[Record]) -> None:
		json.dump(list(records), self.out, ensure_ascii=False, indent=2)
		self.out.write("\n")
		self.out.flush()
		logger.info("JSON written: %d records", len(records))
