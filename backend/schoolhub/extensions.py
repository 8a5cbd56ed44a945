# Overview: Flask extension instances for database and migrations.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# Bound to the application in create_app(); sessions are scoped to the app
# context and removed on teardown.
db = SQLAlchemy()
migrate = Migrate()
