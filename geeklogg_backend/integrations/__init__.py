"""
Clients for the external catalogues used by library search (IGDB, TMDb, Google Books).
"""
