from __future__ import annotations

from typing import Dict, List, Optional

import pytest
import requests


class FakeHttpResponse:
    def __init__(self, url: str, status_code: int = 200, text: str = "", content: bytes = b"", headers: Optional[Dict[str, str]] = None) -> None:
        self.url = url
        self.status_code = status_code
        self.text = text
        self.content = content
        self.headers = headers or {}

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error for url: {self.url}", response=self)  # type: ignore[arg-type]


class FakeSession:
    """Scripted stand-in for requests.Session: each entry is a response or an exception."""

    def __init__(self, head=None, get=None) -> None:
        self._head = head
        self._get = get
        self.calls: List[str] = []
        self.closed = False

    def _reply(self, verb: str, scripted, url: str):
        self.calls.append(f"{verb} {url}")
        if scripted is None:
            raise requests.ConnectionError("no route")
        if isinstance(scripted, Exception):
            raise scripted
        if callable(scripted):
            return scripted(url)
        return scripted

    def head(self, url, **kwargs):
        return self._reply("HEAD", self._head, url)

    def get(self, url, **kwargs):
        return self._reply("GET", self._get, url)

    def close(self) -> None:
        self.closed = True


PRODUCT_HTML = """
<html>
<head>
  <title>62% OFF Widget - AliExpress</title>
  <meta property="og:title" content="62% OFF Widget - AliExpress">
  <meta name="description" content="A very useful widget for everyday tasks">
  <link rel="canonical" href="https://www.aliexpress.com/item/1005001234567890.html">
</head>
<body>
  <h1>Widget</h1>
  <img src="https://ae01.alicdn.com/kf/Sa1b2c3d4e5.jpg_220x220.jpg">
  <img src="https://ae01.alicdn.com/kf/Sf6g7h8i9j0.jpg_220x220.jpg">
  <img data-src="https://ae01.alicdn.com/kf/Sk1l2m3n4o5.jpg_220x220.jpg">
  <img src="https://ae01.alicdn.com/kf/user_avatar_40x40.jpg">
  <div>€12,50</div>
  <div>€29,99</div>
  <div>4.7 estrellas</div>
  <div>2.345 reseñas</div>
  <div>1.200 vendidos</div>
  <div>Envío gratis</div>
  <div>Entrega en 7-15 días</div>
  <script>window.runParams = {"skuId":"12000012345678","skuProperties":[{"skuPropertyName":"Color","skuPropertyValues":[{"propertyValueDisplayName":"Black","skuPropertyImagePath":"//ae01.alicdn.com/kf/Sblack01.jpg"},{"propertyValueDisplayName":"White"}]}]};</script>
</body>
</html>
"""


@pytest.fixture
def product_html() -> str:
    return PRODUCT_HTML


@pytest.fixture
def fake_response():
    return FakeHttpResponse


@pytest.fixture
def fake_session():
    return FakeSession
