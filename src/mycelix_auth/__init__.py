"""Signature-based request authorization for the Mycelix music API."""
