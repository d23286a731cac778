"""meli-proxy: webhook buffer and unshipped-orders report in front of the Mercado Libre API."""

__version__ = "1.0.0"
