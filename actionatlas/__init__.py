"""
ActionAtlas - Location-aware semantic search for volunteering activities.

Example:
    >>> from actionatlas.domains.search import LocationAwareSearch, SearchQuery
    >>> search = LocationAwareSearch(embedder, cache, repo, analyzer, geocoder)
    >>> response = await search.search(SearchQuery(query="volunteer in Paris"))
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
