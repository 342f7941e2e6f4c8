"""
Reading sources.

This package is responsible for:
* Fetching git remotes into a private workspace (or using local paths).
* Discovering and ordering versions from tags and branches.
* Reading composer.json manifests at each revision.
* Archiving revisions into zips for proxied distribution.
"""
