"""
Travel package marketplace service.

A FastAPI application plus a queue worker for AI travel plans, with
database, storage and queue abstractions that run against Postgres or
Supabase in production and in memory for local runs and tests.
"""
