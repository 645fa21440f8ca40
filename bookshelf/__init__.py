"""Sample book catalogue stored in Datastore or SQL Server."""
