from flask import Flask, jsonify
from flask_login import LoginManager
from config import Config
from models.database import db
from models.settings import AdminSettings
from utils.errors import register_error_handlers
from utils.logging_config import setup_logging

app = Flask(__name__)
app.config.from_object(Config)

setup_logging(app.config['LOG_DIR'], app.config['LOG_LEVEL'])

# Initialize database
db.init_app(app)

# Initialize login manager
login_manager = LoginManager()
login_manager.init_app(app)


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(AdminSettings, int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({'error': 'Login required', 'code': 'UNAUTHORIZED'}), 401


register_error_handlers(app)

# Register blueprints
from routes.auth import auth_bp, get_admin_settings
from routes.student import student_bp
from routes.classes import classes_bp
from routes.academic_years import academic_years_bp
from routes.payment_types import payment_types_bp
from routes.payments import payments_bp
from routes.reports import reports_bp
from routes.school_info import school_info_bp
from routes.database import database_bp

app.register_blueprint(auth_bp, url_prefix='/api/admin')
app.register_blueprint(student_bp, url_prefix='/api/students')
app.register_blueprint(classes_bp, url_prefix='/api/classes')
app.register_blueprint(academic_years_bp, url_prefix='/api/academic-years')
app.register_blueprint(payment_types_bp, url_prefix='/api/payment-types')
app.register_blueprint(payments_bp, url_prefix='/api/payments')
app.register_blueprint(reports_bp, url_prefix='/api/reports')
app.register_blueprint(school_info_bp, url_prefix='/api/school-info')
app.register_blueprint(database_bp, url_prefix='/api/database')


@app.route('/')
def home():
    settings = get_admin_settings()
    return jsonify({'app': settings.app_name, 'status': 'ok'})


# Create tables and default admin settings
with app.app_context():
    db.create_all()
    get_admin_settings()


if __name__ == '__main__':
    app.run(debug=True)
