import argparse
import csv
import logging
import sys
from typing import List, Optional

from config import get_config
from etl import hashtags_to_csv, hashtags_to_json
from exporters import FlattenError
from extractors import IDKeyInvalidError
from twitter_client import FetchError, TwitterClient

logger = logging.getLogger(__name__)

EXPORT_FORMATS = {
	"csv": hashtags_to_csv,
	"json": hashtags_to_json,
}


def normalize_tags(values: List[str]) -> List[str]:
	"""Split comma-separated tag arguments and prefix each tag with '#'."""
	tags: List[str] = []
	for value in values:
		for tag in value.split(","):
			tag = tag.strip().lstrip("#")
			if tag:
				tags.append("#" + tag)
	return tags


def main(args: Optional[List[str]] = None) -> int:
	try:
		cfg = get_config()
	except RuntimeError as e:
		raise SystemExit(f"error: {e}")

	parser = argparse.ArgumentParser(prog="meshify", description="Gather unique tweets for each hashtag from the Twitter search API and export them as CSV")
	parser.add_argument("-k", "--api-key", default=cfg.api_key, help="Twitter API public key. If unset uses MESHIFY_API_KEY")
	parser.add_argument("-s", "--api-secret", default=cfg.api_secret, help="Twitter API secret key. If unset uses MESHIFY_API_SECRET")
	parser.add_argument("-o", "--out", default=cfg.out, help="Output file path (default STDOUT)")
	parser.add_argument("-t", "--tags", action="append", default=None, help="Hashtags to query, comma-separated or repeated. Use the tag name only ('IoT', not '#IoT') since '#' starts a shell comment")
	parser.add_argument("-n", "--number", type=int, default=cfg.number, help="Number of tweets per hashtag")
	parser.add_argument("--format", default=cfg.export_format, choices=sorted(EXPORT_FORMATS), help="Export format")
	parser.add_argument("--sleep", type=float, default=cfg.sleep_seconds, help="Sleep seconds after each search call")
	parser.add_argument("--timeout", type=float, default=cfg.request_timeout_seconds, help="HTTP timeout in seconds")
	parser.add_argument("--log-level", default=cfg.log_level, help="Logging level (written to stderr)")
	parsed = parser.parse_args(args)

	logging.basicConfig(
		level=getattr(logging, str(parsed.log_level).upper(), logging.INFO),
		format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
		stream=sys.stderr,
	)

	if not parsed.api_key:
		parser.error("flag [-k, --api-key] or environment variable MESHIFY_API_KEY is required")
	if not parsed.api_secret:
		parser.error("flag [-s, --api-secret] or environment variable MESHIFY_API_SECRET is required")
	if parsed.format not in EXPORT_FORMATS:
		parser.error(f"unsupported export format: {parsed.format}")

	hashtags = normalize_tags(parsed.tags if parsed.tags is not None else cfg.tags)
	if not hashtags:
		parser.error("at least one tag is required")

	if parsed.out:
		try:
			out = open(parsed.out, "w", newline="", encoding="utf-8")
		except OSError as e:
			raise SystemExit(f"error: could not open file: {e}")
	else:
		out = sys.stdout

	client = TwitterClient(parsed.api_key, parsed.api_secret, sleep_seconds=parsed.sleep, request_timeout_seconds=parsed.timeout)
	etl = EXPORT_FORMATS[parsed.format](out, client, parsed.number, hashtags)

	logger.info("Start export | hashtags=%s | number=%d | format=%s", ",".join(hashtags), parsed.number, parsed.format)
	try:
		count = etl.run()
	except (FetchError, IDKeyInvalidError, FlattenError, OSError, csv.Error) as e:
		logger.error("Export failed: %s", e)
		return 1
	finally:
		if out is not sys.stdout:
			out.close()

	logger.info("Export complete: %d records", count)
	return 0


if __name__ == "__main__":
	sys.exit(main())
