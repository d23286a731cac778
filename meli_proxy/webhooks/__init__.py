"""Webhook intake: order notifications buffered in memory for pull-based consumption."""
