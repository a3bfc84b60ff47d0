"""
Hashtag extraction
Paginates the search API per hashtag with a max_id cursor and merges the results of all hashtags
"""
import logging
import re
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

Record = Dict[str, Any]

# Field holding the tweet id as a decimal string
ID_KEY = "id_str"
# Field added to every record with the hashtag it was fetched under
PROVENANCE_KEY = "hashtag"

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1
_DECIMAL_RE = re.compile(r"[+-]?[0-9]+")


class IDKeyInvalidError(ValueError):
	"""A fetched record has no usable id_str."""

	def __init__(self, message: str = f"key {ID_KEY} is either not present or invalid"):
		super().__init__(message)


class Extractor(ABC):
	@abstractmethod
	def extract(self) -> List[Record]:
		...


class ExtractorFn(Extractor):
	"""Adapts a plain function to the Extractor interface."""

	def __init__(self, fn: Callable[[], List[Record]]):
		self.fn = fn

	def extract(self) -> List[Record]:
		return self.fn()


NOOP_EXTRACTOR = ExtractorFn(lambda: [])


class HashtagFetcher(ABC):
	"""Source of search results for one hashtag, newest first."""

	@abstractmethod
	def fetch_hashtag(self, hashtag: str, count: int, max_id: Optional[int] = None) -> List[Dict[str, Any]]:
		"""
		Return at most count statuses with an id lower than or equal to max_id.

		max_id of None or 0 means unbounded; an empty list means the hashtag is exhausted.
		"""


def record_id(record: Record) -> int:
	"""Parse the record's id_str as a signed 64-bit base-10 integer."""
	value = record.get(ID_KEY)
	if not isinstance(value, str) or not _DECIMAL_RE.fullmatch(value):
		raise IDKeyInvalidError()
	parsed = int(value)
	if parsed < INT64_MIN or parsed > INT64_MAX:
		raise IDKeyInvalidError()
	return parsed


def process_page(statuses: Sequence[Any], hashtag: str) -> Tuple[List[Record], Optional[int]]:
	"""
	Turn one page of statuses into records tagged with their hashtag.

	Returns:
		The records in page order and the smallest id on the page (None for an empty page).
	"""
	records: List[Record] = []
	min_id: Optional[int] = None
	for status in statuses:
		if not isinstance(status, dict):
			raise IDKeyInvalidError()
		record: Record = dict(status)
		# provenance wins over a source field of the same name
		record[PROVENANCE_KEY] = hashtag
		records.append(record)

		rid = record_id(record)
		if min_id is None or rid < min_id:
			min_id = rid
	return records, min_id


def extract_hashtag(api: HashtagFetcher, hashtag: str, n: int) -> List[Record]:
	"""
	Collect up to n records for one hashtag.

	Each page is requested with count=n and a max_id one below the smallest id of
	the previous page, so no tweet is delivered twice. Stops once n records are held
	or the API returns an empty page.

	Args:
		api: fetcher returning one page of statuses per call
		hashtag: hashtag to query
		n: maximum number of records to return
	"""
	if n <= 0:
		return []

	collected: List[Record] = []
	max_id: Optional[int] = None
	pages = 0

	while len(collected) < n:
		statuses = api.fetch_hashtag(hashtag, n, max_id)
		records, min_id = process_page(statuses, hashtag)
		pages += 1
		logger.debug("hashtag=%s page=%d size=%d max_id=%s", hashtag, pages, len(records), max_id)

		if not records:
			break

		collected.extend(records)

		# the API reads max_id <= 0 as unbounded
		if min_id <= 1:
			break
		max_id = min_id - 1

	logger.info("Hashtag done: %s | pages=%d | collected=%d", hashtag, pages, min(n, len(collected)))
	return collected[:n]


class HashtagExtractor(Extractor):
	"""
	Extracts n records for each hashtag, one worker thread per hashtag.

	Every worker runs to completion even if a sibling fails. Results are read in
	hashtag order afterwards: the first failure in that order is raised, otherwise
	the per-hashtag records are concatenated.
	"""

	def __init__(self, api: HashtagFetcher, n: int, hashtags: Sequence[str]):
		self.api = api
		self.n = n
		self.hashtags = list(hashtags)

	def extract(self) -> List[Record]:
		if not self.hashtags:
			return []

		with ThreadPoolExecutor(max_workers=len(self.hashtags), thread_name_prefix="hashtag") as executor:
			futures = [executor.submit(extract_hashtag, self.api, hashtag, self.n) for hashtag in self.hashtags]

		for hashtag, future in zip(self.hashtags, futures):
			error = future.exception()
			if error is not None:
				logger.error("Extraction failed for %s: %s", hashtag, error)
				raise error

		records: List[Record] = []
		for future in futures:
			records.extend(future.result())
		logger.info("Merged %d records from %d hashtags", len(records), len(self.hashtags))
		return records
