# workforce_dashboard/__init__.py
from __future__ import annotations
import os
from flask import Flask
from .extensions import db, login_manager


def create_app(test_config: dict | None = None) -> Flask:
    # blueprints тягнуть сервіси workforce_sync, які самі імпортують models
    from .auth import auth_bp
    from .api import api_bp
    from .tasks import register_tasks

    app = Flask(__name__)

    # --- базові налаштування ---
    secret_key = os.getenv('DASHBOARD_SECRET_KEY', 'change-this-secret')
    app.config['SECRET_KEY'] = secret_key
    app.secret_key = secret_key

    app.config.setdefault('SQLALCHEMY_DATABASE_URI',
                          os.getenv('DASHBOARD_DATABASE_URL', 'sqlite:///workforce.db'))
    app.config.setdefault('SQLALCHEMY_TRACK_MODIFICATIONS', False)
    app.config.setdefault('SQLALCHEMY_ENGINE_OPTIONS', {'pool_pre_ping': True})
    # вмикаємо scheduler лише якщо ENABLE_SCHEDULER=1
    app.config.setdefault('ENABLE_SCHEDULER', os.getenv('ENABLE_SCHEDULER', '0') == '1')

    if test_config:
        app.config.update(test_config)

    # --- ініціалізація розширень ---
    db.init_app(app)
    login_manager.init_app(app)

    # --- реєстрація blueprints ---
    app.register_blueprint(auth_bp)
    app.register_blueprint(api_bp, url_prefix='/api')

    with app.app_context():
        db.create_all()

    register_tasks(app)
    return app
