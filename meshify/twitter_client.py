import base64
import logging
import threading
import time
from typing import Any, Dict, List, Optional

import requests

from extractors import HashtagFetcher

logger = logging.getLogger(__name__)

# Maximum number of tweets the search API returns per request
MAX_PER_REQUEST = 100

BASE_URL = "https://api.twitter.com/"
TOKEN_URL = BASE_URL + "oauth2/token"
SEARCH_URL = BASE_URL + "1.1/search/tweets.json"


class FetchError(RuntimeError):
	"""The search API could not be reached or returned an unusable response."""


def token_authorization(key: str, secret: str) -> str:
	credentials = f"{key}:{secret}".encode("utf-8")
	return "Basic " + base64.b64encode(credentials).decode("ascii")


def bearer_authorization(token: str) -> str:
	return "Bearer " + token


class TwitterClient(HashtagFetcher):
	def __init__(self, api_key: str, api_secret: str, bearer_token: Optional[str] = None, sleep_seconds: float = 0.0, request_timeout_seconds: float = 30.0, session: Optional[requests.Session] = None):
		self.api_key = api_key
		self.api_secret = api_secret
		self.bearer_token = bearer_token
		self.sleep_seconds = sleep_seconds
		self.request_timeout_seconds = request_timeout_seconds
		self.session = session or requests.Session()
		self._token_lock = threading.Lock()

	def _decode(self, response: requests.Response) -> Dict[str, Any]:
		try:
			data = response.json()
		except ValueError as e:
			raise FetchError(f"Could not decode response from {response.url}: {e}") from e
		if not isinstance(data, dict):
			raise FetchError(f"Unexpected response body from {response.url}")
		return data

	def _new_bearer_token(self) -> str:
		headers = {
			"Authorization": token_authorization(self.api_key, self.api_secret),
			"Content-Type": "application/x-www-form-urlencoded",
		}
		try:
			response = self.session.post(TOKEN_URL, data={"grant_type": "client_credentials"}, headers=headers, timeout=self.request_timeout_seconds)
		except requests.RequestException as e:
			raise FetchError(f"Token request failed: {e}") from e
		if response.status_code >= 400:
			raise FetchError(response.text)
		token = self._decode(response).get("access_token")
		if not token:
			raise FetchError("Token response did not contain an access_token")
		logger.debug("Obtained bearer token")
		return token

	def token(self) -> str:
		"""Bearer token, requested once and shared by every thread using this client."""
		if not self.bearer_token:
			with self._token_lock:
				if not self.bearer_token:
					self.bearer_token = self._new_bearer_token()
		return self.bearer_token

	def search_params(self, q: str, count: int, max_id: Optional[int] = None) -> Dict[str, Any]:
		params: Dict[str, Any] = {
			"q": q,
			"lang": "en",
			"count": min(count, MAX_PER_REQUEST),
			"include_entities": "false",
		}
		if max_id is not None and max_id > 0:
			params["max_id"] = max_id
		return params

	def fetch_hashtag(self, hashtag: str, count: int, max_id: Optional[int] = None) -> List[Dict[str, Any]]:
		"""
		Query the standard search API for a hashtag.

		Args:
			hashtag: hashtag to query, including the leading '#'
			count: number of tweets wanted, capped at MAX_PER_REQUEST
			max_id: only return tweets with an id lower than or equal to this; None or 0 means unbounded

		Returns:
			The "statuses" array of the response, newest first.
		"""
		headers = {"Authorization": bearer_authorization(self.token())}
		params = self.search_params(hashtag, count, max_id)
		try:
			response = self.session.get(SEARCH_URL, params=params, headers=headers, timeout=self.request_timeout_seconds)
		except requests.RequestException as e:
			raise FetchError(f"Search request failed: {e}") from e

		if response.status_code >= 400:
			raise FetchError(response.text)

		statuses = self._decode(response).get("statuses") or []
		if not isinstance(statuses, list):
			raise FetchError("Search response field 'statuses' is not a list")

		if self.sleep_seconds:
			time.sleep(self.sleep_seconds)
		return statuses
