"""
Application services.

Cross-entity business operations used by the API layer and Celery tasks.
"""
