import click
from flask.cli import with_appcontext
from .extensions import db
# Importing the models registers every table with SQLAlchemy
from .models import User

@click.command('init-db')
@click.option('--drop', is_flag=True, help='Drop existing tables first.')
@with_appcontext
def init_db_command(drop):
    """Create all tables."""
    try:
        if drop:
            db.drop_all()
        db.create_all()
        click.echo('Initialized the database.')
    except Exception as e:
        click.echo(f'Error initializing database: {e}')

@click.command('create-admin')
@click.argument('username')
@click.password_option()
@with_appcontext
def create_admin_command(username, password):
    """Create a back-office admin account."""
    if User.query.filter_by(username=username).first():
        click.echo(f"User '{username}' already exists.")
        return

    user = User(username=username, is_admin=True)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    click.echo(f'Created admin: {username}')
