"""
Email verification.
Hunter.io's verifier when a key is configured; otherwise a DNS MX check on the
address's domain. MX presence only proves the domain takes mail, so those
addresses stay `unverified` (valid) and only a missing MX marks them invalid.
"""
from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

import dns.asyncresolver
import dns.exception
import dns.resolver

from prospector.schemas.enrichment import EmailVerification
from prospector.services.heuristics import email_domain
from prospector.services.http_client import Fetcher

logger = logging.getLogger(__name__)

SERVICE = "hunter"
HUNTER_VERIFY_URL = "https://api.hunter.io/v2/email-verifier"
VALID_HUNTER_STATUSES = {"valid", "accept_all"}

MxLookup = Callable[[str], Awaitable[Optional[str]]]


async def lookup_mx(domain: str) -> Optional[str]:
    """Lowest-preference MX host for `domain`, or None when the domain has none.

    Resolver timeouts propagate as dns.exception.Timeout.
    """
    try:
        answers = await dns.asyncresolver.resolve(domain, "MX", lifetime=5.0)
    except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer, dns.resolver.NoNameservers):
        return None
    records = sorted(answers, key=lambda r: r.preference)
    return str(records[0].exchange).rstrip(".") if records else None


async def _verify_with_hunter(fetcher: Fetcher, api_key: str, email: str, timeout: float) -> Optional[EmailVerification]:
    resp = await fetcher.fetch(
        HUNTER_VERIFY_URL,
        service=SERVICE,
        timeout=timeout,
        params={"email": email, "api_key": api_key},
        use_proxy=False,
    )
    if resp is None or not resp.ok:
        return None
    try:
        data = resp.json().get("data") or {}
    except (ValueError, AttributeError) as e:
        logger.debug(f"[Verify] Hunter response unreadable for {email}: {e}")
        return None

    status = str(data.get("status") or data.get("result") or "unknown")
    return EmailVerification(
        email=email,
        valid=status in VALID_HUNTER_STATUSES,
        status=status,
        score=data.get("score"),
    )


async def _verify_with_mx(email: str, mx_lookup: MxLookup) -> EmailVerification:
    domain = email_domain(email)
    if not domain:
        return EmailVerification(email=email, valid=False, status="invalid_format")
    try:
        mx_host = await mx_lookup(domain)
    except dns.exception.DNSException as e:
        logger.debug(f"[Verify] MX lookup inconclusive for {domain}: {e}")
        return EmailVerification(email=email, valid=True, status="unverified")

    if not mx_host:
        logger.info(f"[Verify] {domain} has no MX records")
        return EmailVerification(email=email, valid=False, status="no_mx")
    return EmailVerification(email=email, valid=True, status="unverified")


async def verify_email(
    fetcher: Fetcher,
    api_key: str,
    email: str,
    timeout: float = 10.0,
    mx_lookup: Optional[MxLookup] = None,
) -> EmailVerification:
    if api_key:
        result = await _verify_with_hunter(fetcher, api_key, email, timeout)
        if result is not None:
            logger.info(f"[Verify] Hunter: {email} -> {result.status}")
            return result
    return await _verify_with_mx(email, mx_lookup or lookup_mx)
