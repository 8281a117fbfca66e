"""Inventory API client - products, serial pools, customers and submissions."""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests
from flask import Flask

from backoffice.exceptions import DataUnavailableError, NotFoundError, SubmissionError
from backoffice.models import Product

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SaleReceipt:
    """Confirmed outcome of a sale submission."""
    success: bool
    invoice_number: Optional[str] = None
    message: str = ''


class InventoryApiClient:
    """Thin HTTP client for the shop's inventory API."""

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: float = 10,
                 session: Optional[requests.Session] = None):
        """
        Initialize the client.

        Args:
            base_url: API root, e.g. https://shop.example.com/api
            token: Bearer token sent with every request (optional)
            timeout: Per-request timeout in seconds
            session: requests.Session to reuse (a new one by default)
        """
        if not base_url:
            raise ValueError("SHOP_API_BASE_URL is required")
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {'Content-Type': 'application/json'}
        if token:
            self.headers['Authorization'] = f'Bearer {token}'

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    @staticmethod
    def _error_message(response: Optional[requests.Response], fallback: str) -> str:
        if response is None:
            return fallback
        try:
            data = response.json()
        except ValueError:
            return response.text or fallback
        if isinstance(data, dict):
            return data.get('error') or data.get('message') or fallback
        return fallback

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET that turns every failure into DataUnavailableError."""
        url = self._url(path)
        try:
            response = self.session.get(url, params=params, headers=self.headers, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.HTTPError as e:
            message = self._error_message(e.response, 'Failed to load data')
            logger.error(f"[API] GET {path} failed: {message}")
            raise DataUnavailableError(message)
        except (requests.RequestException, ValueError) as e:
            logger.error(f"[API] GET {path} unexpected error: {e}")
            raise DataUnavailableError('Inventory service is unreachable')

    def _send(self, method: str, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST/PUT that turns every failure into SubmissionError."""
        url = self._url(path)
        try:
            response = self.session.request(method, url, json=payload, headers=self.headers,
                                            timeout=self.timeout)
            response.raise_for_status()
            data = response.json() if response.content else {}
        except requests.HTTPError as e:
            message = self._error_message(e.response, 'Submission failed')
            logger.error(f"[API] {method} {path} rejected: {message}")
            raise SubmissionError(message)
        except (requests.RequestException, ValueError) as e:
            logger.error(f"[API] {method} {path} unexpected error: {e}")
            raise SubmissionError('Inventory service is unreachable')

        if isinstance(data, dict) and data.get('success') is False:
            message = data.get('error') or data.get('message') or 'Submission failed'
            logger.error(f"[API] {method} {path} returned failure: {message}")
            raise SubmissionError(message)
        return data if isinstance(data, dict) else {'data': data}

    def fetch_inventory(self, category: str) -> List[Product]:
        """Products of a category with pricing facts and on-hand qty."""
        data = self._get(f'/inventory/{category}')
        if isinstance(data, dict) and data.get('series') is not None:
            # {series: [{seriesName, products: [...]}], totalStock}
            data = [
                dict(raw, series=raw.get('series') or group.get('seriesName'))
                for group in data['series']
                for raw in group.get('products') or []
            ]
        elif isinstance(data, dict):
            data = data.get('products') or data.get('items') or []
        products = []
        for raw in data:
            try:
                products.append(Product.from_api(raw, category=category))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"[API] Skipping malformed product in {category}: {e}")
        logger.info(f"[API] Loaded {len(products)} products for {category}")
        return products

    def fetch_product(self, category: str, product_id: int) -> Product:
        """One product out of its category listing."""
        for product in self.fetch_inventory(category):
            if product.id == product_id:
                return product
        raise NotFoundError(f'Product {product_id} not found in {category}')

    def fetch_available_serials(self, category: str, product_id: int) -> List[str]:
        """Serial numbers currently in stock for a product."""
        data = self._get(f'/inventory/{category}/{product_id}/available-serials')
        if isinstance(data, dict):
            data = data.get('available_serials') or data.get('serials') or []
        serials = []
        for item in data:
            serial = item.get('serial_number') if isinstance(item, dict) else item
            if serial:
                serials.append(str(serial).strip())
        return serials

    def fetch_customers(self, search: str = '', page: int = 1, limit: int = 500) -> Dict[str, Any]:
        """One page of customers: {'customers': [...], 'pagination': {...}}."""
        params = {'page': page, 'limit': limit}
        if search:
            params['search'] = search
        data = self._get('/admin/customers', params=params)
        if isinstance(data, list):
            return {'customers': data, 'pagination': {'page': page, 'limit': limit, 'total': len(data)}}
        return {
            'customers': data.get('customers') or [],
            'pagination': data.get('pagination') or {'page': page, 'limit': limit},
        }

    def submit_sale(self, payload: Dict[str, Any]) -> SaleReceipt:
        """Submit a built sale transaction. Raises SubmissionError on rejection."""
        logger.info(f"[API] Submitting sale with {len(payload.get('items') or [])} item(s)")
        data = self._send('POST', '/admin-sales/sell-stock', payload)
        sale = data.get('sale') or {}
        receipt = SaleReceipt(
            success=True,
            invoice_number=sale.get('invoice_number') or data.get('invoice_number'),
            message=data.get('message') or '',
        )
        logger.info(f"[API] Sale accepted: invoice={receipt.invoice_number}")
        return receipt

    def submit_stock_addition(self, category: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Record purchased units (with serials unless the category is bulk)."""
        logger.info(f"[API] Adding stock: product={payload.get('productId')} qty={payload.get('quantity')}")
        return self._send('POST', f'/inventory/{category}/add-stock-with-serials', payload)

    def update_product_pricing(self, category: str, product_id: int, pricing: Dict[str, Any]) -> Dict[str, Any]:
        return self._send('PUT', f'/inventory/{category}/{product_id}/pricing', pricing)

    def update_category_discount(self, category: str, discount_percent, customer_type: str = 'b2c') -> Dict[str, Any]:
        return self._send('PUT', f'/inventory/{category}/bulk-discount', {
            'discount_percent': str(discount_percent),
            'customer_type': customer_type,
        })


_client: Optional[InventoryApiClient] = None


def init_api_client(app: Flask) -> None:
    """Initialize the API client singleton from app config."""
    global _client
    if app.config.get('SHOP_API_CLIENT') is not None:
        _client = app.config['SHOP_API_CLIENT']
    else:
        _client = InventoryApiClient(
            base_url=app.config.get('SHOP_API_BASE_URL'),
            token=app.config.get('SHOP_API_TOKEN'),
            timeout=app.config.get('SHOP_API_TIMEOUT', 10),
        )
    app.extensions['inventory_api'] = _client


def get_api_client() -> InventoryApiClient:
    """Get API client instance."""
    if _client is None:
        raise RuntimeError("API client not initialized. Call init_api_client() first.")
    return _client
