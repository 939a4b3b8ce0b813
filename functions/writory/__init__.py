"""
Writory contest backend.

A FastAPI service for the monthly poetry contest: entries and uploads,
free-tier entitlements, coupons, admin evaluation, notifications and the
community wall. Email goes out through a Redis-backed worker.
"""
