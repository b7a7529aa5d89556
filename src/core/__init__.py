"""Scanning engine."""
