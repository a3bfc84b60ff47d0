import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()


DEFAULT_TAGS = ["IoT"]


@dataclass(frozen=True)
class AppConfig:
	api_key: Optional[str] = None
	api_secret: Optional[str] = None
	tags: List[str] = field(default_factory=lambda: list(DEFAULT_TAGS))
	number: int = 2000
	out: Optional[str] = None
	export_format: str = "csv"
	sleep_seconds: float = 0.0
	request_timeout_seconds: float = 30.0
	log_level: str = "INFO"


def _split_tags(value: str) -> List[str]:
	return [t.strip() for t in value.split(",") if t.strip()]


def get_config() -> AppConfig:
	"""Read settings from the environment (and .env when present)."""
	tags = os.getenv("MESHIFY_TAGS")
	number = os.getenv("MESHIFY_NUMBER", "2000")
	sleep_seconds = os.getenv("MESHIFY_SLEEP", "0")
	timeout = os.getenv("MESHIFY_TIMEOUT", "30")
	try:
		number_value = int(number)
		sleep_value = float(sleep_seconds)
		timeout_value = float(timeout)
	except ValueError as e:
		raise RuntimeError(f"Invalid numeric setting in environment: {e}") from e

	return AppConfig(
		api_key=os.getenv("MESHIFY_API_KEY") or None,
		api_secret=os.getenv("MESHIFY_API_SECRET") or None,
		tags=_split_tags(tags) if tags else list(DEFAULT_TAGS),
		number=number_value,
		out=os.getenv("MESHIFY_OUT") or None,
		export_format=os.getenv("MESHIFY_FORMAT", "csv").lower(),
		sleep_seconds=sleep_value,
		request_timeout_seconds=timeout_value,
		log_level=os.getenv("LOG_LEVEL", "INFO"),
	)
