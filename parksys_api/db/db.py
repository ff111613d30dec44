from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()


def init_db(app):
    database_url = app.config['DATABASE_URL']
    app.config['SQLALCHEMY_DATABASE_URI'] = database_url
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

    # SQLite uses its own pool class; sizing options only apply to server databases
    if not database_url.startswith('sqlite'):
        app.config['SQLALCHEMY_ENGINE_OPTIONS'] = {
            'pool_size': 20,
            'pool_recycle': 1800,  # Recycle connections after 30 minutes
            'pool_pre_ping': True,
            'pool_timeout': 30,
            'max_overflow': 10,
            'echo': False
        }

    db.init_app(app)
    migrate.init_app(app, db)
