from models.db_storage import DBStorage

# Process-wide storage; the app factory points it at the configured DATABASE_URL
storage = DBStorage()
