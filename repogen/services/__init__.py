"""
Generation services: source parsing, filtering, authentication and the
top-level `RepositoryGenerator`.
"""
