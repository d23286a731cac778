"""Unshipped-orders report: window resolution, paginated fetch, shipment enrichment."""
