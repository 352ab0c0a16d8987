# shopsdk/client.py
import mimetypes
import os
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

import httpx
import requests
from pydantic import ValidationError

from shopapi.models import Product, ProductPage, TokenOut, VerifyOut

from .errors import ApiError, ResponseSchemaError

DEFAULT_BASE_URL = "http://127.0.0.1:5000/api"


def _error_message(r) -> str:
    try:
        body = r.json()
    except ValueError:
        return r.text or f"HTTP {r.status_code}"
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return str(body)


class StoreClient:
    """Typed client for the storefront API.

    ``session`` may be a ``requests.Session`` or anything with the same
    request interface (FastAPI's TestClient works in tests).
    """

    def __init__(self, base_url: str = DEFAULT_BASE_URL, token: Optional[str] = None, timeout: int = 10,
                 session=None, async_transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout
        self.token = token
        self.async_transport = async_transport

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def _request(self, method: str, path: str, **kwargs):
        r = self.session.request(method, self._url(path), headers=self._headers(), timeout=self.timeout, **kwargs)
        if r.status_code >= 400:
            raise ApiError(r.status_code, _error_message(r))
        return r

    @staticmethod
    def _parse(model, r):
        try:
            return model.model_validate(r.json())
        except (ValueError, ValidationError) as e:
            raise ResponseSchemaError(r.status_code, str(e)) from e

    @staticmethod
    def _product_params(search, category, sort, page, limit) -> Dict[str, Any]:
        params: Dict[str, Any] = {"page": page, "limit": limit}
        if search:
            params["search"] = search
        if category and category != "all":
            params["category"] = category
        if sort:
            params["sort"] = sort
        return params

    def resolve_url(self, url: str) -> str:
        """Make server-relative asset paths (``/uploads/...``) absolute."""
        return urljoin(self.base_url + "/", url)

    # Products
    def list_products(self, search: Optional[str] = None, category: Optional[str] = None,
                      sort: Optional[str] = None, page: int = 1, limit: int = 6) -> ProductPage:
        r = self._request("GET", "/products", params=self._product_params(search, category, sort, page, limit))
        return self._parse(ProductPage, r)

    async def list_products_async(self, search: Optional[str] = None, category: Optional[str] = None,
                                  sort: Optional[str] = None, page: int = 1, limit: int = 6) -> ProductPage:
        params = self._product_params(search, category, sort, page, limit)
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.async_transport) as client:
            r = await client.get(self._url("/products"), params=params, headers=self._headers())
        if r.status_code >= 400:
            raise ApiError(r.status_code, _error_message(r))
        return self._parse(ProductPage, r)

    def get_product(self, product_id: str) -> Product:
        return self._parse(Product, self._request("GET", f"/products/{product_id}"))

    def categories(self) -> List[str]:
        return list(self._request("GET", "/categories").json())

    # Admin: products
    def create_product(self, name: str, price: float, category: str,
                       image_url: Optional[str] = None, image_path: Optional[str] = None) -> Product:
        fields = {"name": name, "price": price, "category": category}
        if image_url:
            fields["image"] = image_url
        if image_path:
            r = self._send_multipart("POST", "/products", fields, image_path)
        else:
            r = self._request("POST", "/products", json=fields)
        return self._parse(Product, r)

    def update_product(self, product_id: str, image_path: Optional[str] = None, **fields) -> Product:
        fields = {k: v for k, v in fields.items() if v is not None}
        if image_path:
            r = self._send_multipart("PUT", f"/products/{product_id}", fields, image_path)
        else:
            r = self._request("PUT", f"/products/{product_id}", json=fields)
        return self._parse(Product, r)

    def delete_product(self, product_id: str) -> str:
        return self._request("DELETE", f"/products/{product_id}").json().get("message", "")

    def _send_multipart(self, method: str, path: str, fields: Dict[str, Any], image_path: str):
        content_type = mimetypes.guess_type(image_path)[0] or "application/octet-stream"
        data = {k: str(v) for k, v in fields.items()}
        with open(image_path, "rb") as fh:
            files = {"image": (os.path.basename(image_path), fh.read(), content_type)}
        return self._request(method, path, data=data, files=files)

    # Auth
    def login(self, email: str, password: str) -> str:
        r = self._request("POST", "/auth/login", json={"email": email, "password": password})
        self.token = self._parse(TokenOut, r).token
        return self.token

    def verify(self) -> bool:
        return self._parse(VerifyOut, self._request("GET", "/auth/verify")).valid

    # Images
    def probe_image(self, url: str) -> bool:
        """Best-effort check that ``url`` serves an image. Never raises."""
        try:
            r = self.session.request("HEAD", self.resolve_url(url), timeout=self.timeout)
        except (requests.RequestException, httpx.HTTPError):
            return False
        if r.status_code >= 400:
            return False
        return r.headers.get("content-type", "").startswith("image/")
