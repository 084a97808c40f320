"""
Extension singletons for the Material Request System.

Created unbound here and attached to the app in mrs.create_app(), so models,
services and blueprints can import them without importing the app.
"""

from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_wtf import CSRFProtect

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
csrf = CSRFProtect()
