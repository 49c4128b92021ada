"""Configuration layer and shared exports."""

import os
from typing import List

from dotenv import load_dotenv

from .settings import DELEGATOR_ADDRESS, NEXUS_API_URL

load_dotenv()


class Config:
	NEXUS_API_URL = NEXUS_API_URL
	HTTP_TIMEOUT = int(os.getenv("HTTP_TIMEOUT", "30") or "30")
	HTTP_MAX_RETRIES = int(os.getenv("HTTP_MAX_RETRIES", "1") or "1")
	HTTP_RETRY_DELAY = float(os.getenv("HTTP_RETRY_DELAY", "1.0") or "1.0")

	PAGE_SIZE = int(os.getenv("PAGE_SIZE", "1000") or "1000")
	PAGE_DELAY = float(os.getenv("PAGE_DELAY", "0.1") or "0.1")
	FETCH_WORKERS = int(os.getenv("FETCH_WORKERS", "4") or "4")

	DELEGATOR_ADDRESS = DELEGATOR_ADDRESS

	LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
	LOG_FILE = os.getenv("LOG_FILE", "")

	@classmethod
	def validate(cls) -> List[str]:
		"""
		Validate configuration and return list of errors.

		Returns:
			List of error messages, empty if valid
		"""
		errors = []

		if not cls.NEXUS_API_URL:
			errors.append("NEXUS_API_URL not set in .env")

		if cls.HTTP_TIMEOUT <= 0:
			errors.append("HTTP_TIMEOUT must be positive")

		if cls.HTTP_MAX_RETRIES < 1:
			errors.append("HTTP_MAX_RETRIES must be at least 1")

		if cls.PAGE_SIZE <= 0:
			errors.append("PAGE_SIZE must be positive")

		if cls.FETCH_WORKERS <= 0:
			errors.append("FETCH_WORKERS must be positive")

		return errors


__all__ = ["Config"]
