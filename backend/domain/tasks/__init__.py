"""
Task domain: assignment rights and KPI.
"""
