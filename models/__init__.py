"""
Persistence package: SQLAlchemy models and the shared DBStorage instance.
The engine is bound later by storage.reload(url) (see api.create_app).
"""
from models.db_storage import DBStorage

storage = DBStorage()
