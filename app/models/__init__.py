"""
Analytics Request Portal — SQLAlchemy models.

``db`` is the process-wide store handle. It is bound to an application in
``create_app`` via ``db.init_app(app)`` and lives as long as the process;
every service reaches the store through it.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
