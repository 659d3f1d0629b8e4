"""Google ID-token verification through the public token-info endpoint."""

from typing import Optional
import logging
import httpx

logger = logging.getLogger(__name__)

class GoogleTokenVerifier:
    def __init__(self, tokeninfo_url: str, client_id: Optional[str], timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.tokeninfo_url = tokeninfo_url
        self.client_id = client_id
        self.timeout = timeout
        self.transport = transport

    async def verify(self, id_token: str) -> Optional[dict]:
        """Return the token claims, or None when Google rejects the token."""
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                resp = await client.get(self.tokeninfo_url, params={"id_token": id_token})
            except httpx.HTTPError as e:
                logger.warning(f"Google token verification unavailable: {e}")
                return None
        if resp.status_code != 200:
            return None
        claims = resp.json()
        if self.client_id and claims.get("aud") != self.client_id:
            logger.warning("Google token issued for another client")
            return None
        if not claims.get("email") or str(claims.get("email_verified", "")).lower() != "true":
            return None
        return claims
