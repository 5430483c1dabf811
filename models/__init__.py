"""
Persistence package.

`storage` is the process-wide DBStorage; the app factory binds it with
storage.reload(url) before the first request.
"""
from models.db_storage import DBStorage

storage = DBStorage()
