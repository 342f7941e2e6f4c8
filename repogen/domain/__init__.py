"""
Domain models, outcome types and errors shared by every layer.
"""
