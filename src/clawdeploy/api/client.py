"""HTTP probes for the proxy and the gateway behind it"""

from typing import Any, Dict

import httpx


class APIError(Exception):
    """Base exception for probe errors"""

    pass


class UnauthorizedError(APIError):
    """Token rejected by the gateway"""

    pass


class Client:
    """Minimal HTTP client for post-install health checks"""

    def __init__(
        self,
        base_url: str = "http://127.0.0.1",
        token: str = "",
        timeout: float = 5.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout

    def nginx_health(self) -> bool:
        """True when nginx answers its health location"""
        try:
            response = self._request("GET", "/nginx-health")
        except (APIError, httpx.HTTPError):
            return False
        return response.status_code == 200 and "healthy" in response.text

    def gateway_status(self) -> Dict[str, Any]:
        """Probe the gateway root; any HTTP answer counts as reachable"""
        try:
            response = self._request("GET", "/")
        except UnauthorizedError:
            return {"reachable": True, "authorized": False, "status_code": None}
        except (APIError, httpx.HTTPError) as e:
            return {"reachable": False, "authorized": False, "error": str(e)}
        return {"reachable": True, "authorized": True, "status_code": response.status_code}

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Execute HTTP request"""
        url = self.base_url + path

        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        with httpx.Client(timeout=self.timeout) as client:
            response = client.request(method, url, headers=headers, **kwargs)

            if response.status_code in (401, 403):
                raise UnauthorizedError("Unauthorized")
            elif response.status_code >= 500:
                raise APIError(f"HTTP error {response.status_code}: {response.text}")

            return response
