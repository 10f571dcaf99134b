"""Observability helpers (Sentry init & common scrubbing).

Centralises Sentry initialisation so configuration does not drift.
Initialisation is a no-op when no DSN is configured, and every helper
here is best-effort: a broken telemetry pipe must never fail a receipt
upload.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from snapcart.core.config import settings

logger = logging.getLogger(__name__)


def _before_send(event: Dict[str, Any], hint: Dict[str, Any] | None = None):
	"""Scrub obvious PII / secrets before sending to Sentry.

	- Drop Authorization & Cookie headers
	- Remove request data/body (receipt images and their text stay local)
	"""
	try:
		req = event.get("request") or {}
		headers = req.get("headers") or {}
		for k in list(headers.keys()):
			if k.lower() in ("authorization", "cookie", "set-cookie", "x-api-key"):
				headers.pop(k, None)
		req.pop("data", None)
		event["request"] = req
	except Exception:  # best effort
		pass
	return event


def init_sentry(service: str) -> bool:
	"""Initialise Sentry once for a given process.

	Returns True if Sentry was initialised; False otherwise.
	"""
	if not settings.SENTRY_DSN:
		return False
	if getattr(init_sentry, "_done", False):  # prevent duplicate init in same process
		return True
	sentry_sdk.init(
		dsn=settings.SENTRY_DSN,
		integrations=[FastApiIntegration(), SqlalchemyIntegration()],
		traces_sample_rate=float(settings.SENTRY_TRACES_SAMPLE_RATE or 0),
		profiles_sample_rate=float(settings.SENTRY_PROFILES_SAMPLE_RATE or 0),
		environment=settings.ENVIRONMENT,
		release=settings.SENTRY_RELEASE,
		before_send=_before_send,
	)
	sentry_sdk.set_tag("service", service)
	init_sentry._done = True  # type: ignore[attr-defined]
	return True


def sentry_breadcrumb(category: str, message: str, level: str = "info", data: Optional[Dict[str, Any]] = None) -> None:
	"""Best-effort: add a breadcrumb for important lifecycle steps."""
	if not settings.SENTRY_DSN:
		return
	try:
		sentry_sdk.add_breadcrumb(
			category=category,
			message=message,
			level=level,
			data=data or {},
		)
	except Exception:
		logger.debug("sentry breadcrumb dropped: %s", message)


def sentry_capture(exc: BaseException) -> None:
	"""Best-effort: report an exception when Sentry is configured."""
	if not settings.SENTRY_DSN:
		return
	try:
		sentry_sdk.capture_exception(exc)
	except Exception:
		logger.debug("sentry capture dropped: %s", exc)


def sentry_metric_inc(name: str, value: int = 1, tags: Optional[Dict[str, Any]] = None) -> None:
	"""Best-effort: increment a metric using Sentry Metrics if available."""
	if not settings.SENTRY_DSN:
		return
	try:
		from sentry_sdk import metrics

		safe_tags = {str(k): str(v)[:64] for k, v in (tags or {}).items()}
		metrics.incr(name, value=value, tags=safe_tags)
	except Exception:
		logger.debug("sentry metric dropped: %s", name)


__all__ = ["init_sentry", "sentry_breadcrumb", "sentry_capture", "sentry_metric_inc"]
