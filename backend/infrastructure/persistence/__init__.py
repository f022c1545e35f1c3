"""
Persistence layer: the `persistence` Django app with all ORM models.
"""
