import threading
from typing import Any, Callable, Dict, List, Optional

import pytest

from extractors import HashtagFetcher


class FakeTwitterAPI(HashtagFetcher):
	"""In-memory stand-in for TwitterClient.

	Serves each hashtag's statuses newest first and honours count and max_id the
	way the search API does. page_limit caps a page below count to force paging.
	"""

	def __init__(
		self,
		statuses_by_tag: Optional[Dict[str, List[Dict[str, Any]]]] = None,
		errors: Optional[Dict[str, Exception]] = None,
		page_limit: Optional[int] = None,
		fetch_fn: Optional[Callable[[str, int, Optional[int]], List[Dict[str, Any]]]] = None,
	):
		self.statuses_by_tag = {
			tag: sorted(statuses, key=lambda s: int(s["id_str"]), reverse=True)
			for tag, statuses in (statuses_by_tag or {}).items()
		}
		self.errors = errors or {}
		self.page_limit = page_limit
		self.fetch_fn = fetch_fn
		self.calls = []
		self._lock = threading.Lock()

	def fetch_hashtag(self, hashtag, count, max_id=None):
		with self._lock:
			self.calls.append((hashtag, count, max_id))
		if self.fetch_fn is not None:
			return self.fetch_fn(hashtag, count, max_id)
		if hashtag in self.errors:
			raise self.errors[hashtag]

		statuses = self.statuses_by_tag.get(hashtag, [])
		if max_id:
			statuses = [s for s in statuses if int(s["id_str"]) <= max_id]
		limit = count if self.page_limit is None else min(count, self.page_limit)
		return [dict(s) for s in statuses[:limit]]

	def calls_for(self, hashtag):
		return [call for call in self.calls if call[0] == hashtag]


class RecordingRowWriter:
	"""Row sink that keeps rows in memory and can fail on a given write."""

	def __init__(self, fail_on_write: Optional[int] = None):
		self.rows = []
		self.writes = 0
		self.flushed = False
		self.fail_on_write = fail_on_write

	def write(self, row):
		self.writes += 1
		if self.fail_on_write is not None and self.writes == self.fail_on_write:
			raise OSError("disk full")
		self.rows.append(list(row))

	def flush(self):
		self.flushed = True


def _make_statuses(start: int, count: int, tag: str = "#IoT") -> List[Dict[str, Any]]:
	return [
		{"id_str": str(start + i), "text": f"Tweet, Tweet! {tag}", "user": {"screen_name": f"user{i}"}}
		for i in range(count)
	]


@pytest.fixture
def make_statuses():
	"""Factory for well-formed statuses with consecutive ids."""
	return _make_statuses


@pytest.fixture
def fake_api():
	"""Factory for FakeTwitterAPI instances."""
	return FakeTwitterAPI


@pytest.fixture
def recording_writer():
	return RecordingRowWriter


CONFIG_ENV_VARS = [
	"MESHIFY_API_KEY",
	"MESHIFY_API_SECRET",
	"MESHIFY_TAGS",
	"MESHIFY_NUMBER",
	"MESHIFY_OUT",
	"MESHIFY_FORMAT",
	"MESHIFY_SLEEP",
	"MESHIFY_TIMEOUT",
	"LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch):
	"""Remove every setting get_config reads so tests start from defaults."""
	for name in CONFIG_ENV_VARS:
		monkeypatch.delenv(name, raising=False)
