class DatabaseError(Exception):
    """Anything that kept a query from producing rows: transport, SQL or read failures."""
