"""
Service layer: the units of work behind the HTTP blueprints.

Each service takes the DBStorage it runs against so tests and worker threads
can drive it without a request context.
"""
