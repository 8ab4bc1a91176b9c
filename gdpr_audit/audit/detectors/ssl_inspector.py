"""TLS certificate inspection.

Opens a raw TLS connection to the audited host, reads the peer certificate
without validating the chain, and compares its expiry with the current time.
Every failure resolves to ``SSLResult(valid=False)``; inspection never
raises into the audit.
"""

import asyncio
import logging
import ssl
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlparse

from cryptography import x509

from ..models.report import SSLResult

logger = logging.getLogger(__name__)


class SSLInspector:
    """Checks certificate expiry for HTTPS URLs."""

    def __init__(self, timeout_ms: int = 10000, port: int = 443):
        self.timeout_ms = timeout_ms
        self.port = port

    @staticmethod
    def _unverified_context() -> ssl.SSLContext:
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        return context

    async def _fetch_certificate(self, host: str) -> Optional[bytes]:
        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(
                host,
                self.port,
                ssl=self._unverified_context(),
                server_hostname=host,
            ),
            timeout=self.timeout_ms / 1000.0,
        )
        try:
            ssl_object = writer.get_extra_info('ssl_object')
            if ssl_object is None:
                return None
            return ssl_object.getpeercert(binary_form=True)
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError as e:
                logger.debug(f"Error closing TLS connection to {host}: {e}")

    async def check(self, url: str, now: Optional[datetime] = None) -> SSLResult:
        """Inspect the certificate served for ``url``.

        Args:
            url: URL being audited
            now: Reference time for the expiry comparison (defaults to now)

        Returns:
            SSLResult describing validity and expiry
        """
        try:
            parsed = urlparse(url)
            if parsed.scheme.lower() != 'https':
                return SSLResult(valid=False, details="The site does not use the HTTPS protocol.")

            host = parsed.hostname
            if not host:
                return SSLResult(valid=False, details=f"No host in URL: {url}")

            try:
                der = await self._fetch_certificate(host)
            except (OSError, asyncio.TimeoutError) as e:
                message = str(e) or e.__class__.__name__
                logger.info(f"SSL check for {host} failed: {message}")
                return SSLResult(valid=False, details=f"SSL check failed: {message}")

            if not der:
                return SSLResult(valid=False, details="Certificate not found or invalid.")

            certificate = x509.load_der_x509_certificate(der)
            expiry = certificate.not_valid_after_utc
            reference = now or datetime.now(timezone.utc)

            if expiry > reference:
                return SSLResult(
                    valid=True,
                    details=f"Valid until {expiry.date().isoformat()}",
                    expires_at=expiry,
                )
            return SSLResult(
                valid=False,
                details=f"Certificate expired on {expiry.date().isoformat()}",
                expires_at=expiry,
            )

        except Exception as e:
            logger.warning(f"Unexpected error during SSL check for {url}: {e}")
            return SSLResult(valid=False, details=f"SSL check error: {e}")


async def check_ssl(url: str, timeout_ms: int = 10000) -> SSLResult:
    """Convenience wrapper around ``SSLInspector.check``."""
    return await SSLInspector(timeout_ms=timeout_ms).check(url)
