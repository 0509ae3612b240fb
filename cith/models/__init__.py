"""
CITH Weekly Report Tracker
Shared SQLAlchemy handle.

Every model module imports ``db`` from here; the app factory binds it with
``db.init_app(app)``. Services never use it directly: they receive a
session-bound ``Repositories`` bundle (see ``cith.repositories``).
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
