import logging
from typing import Sequence, TextIO

from exporters import CSVLoader, JSONLoader, Loader
from extractors import Extractor, HashtagExtractor, HashtagFetcher

logger = logging.getLogger(__name__)


class ETL:
	"""Extract then load; there is no transform step and nothing streams between the two."""

	def __init__(self, extractor: Extractor, loader: Loader):
		self.extractor = extractor
		self.loader = loader

	def run(self) -> int:
		records = self.extractor.extract()
		logger.info("Extracted %d records", len(records))
		self.loader.load(records)
		return len(records)


def hashtags_to_csv(out: TextIO, api: HashtagFetcher, n: int, hashtags: Sequence[str]) -> ETL:
	"""Fetch n tweets for each hashtag from api and write them to out as CSV."""
	return ETL(HashtagExtractor(api, n, hashtags), CSVLoader(out))


def hashtags_to_json(out: TextIO, api: HashtagFetcher, n: int, hashtags: Sequence[str]) -> ETL:
	return ETL(HashtagExtractor(api, n, hashtags), JSONLoader(out))
