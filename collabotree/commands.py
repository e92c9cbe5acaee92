import click

from collabotree.extensions import db
from collabotree.models import Role, Service, User


def register_commands(app):
    @app.cli.command("create-admin")
    @click.option("--email", prompt=True)
    @click.option("--name", default="Administrator", show_default=True)
    @click.password_option()
    def create_admin(email, name, password):
        """Create an admin account (admins cannot self-register)."""
        email = email.strip().lower()
        if User.query.filter_by(email=email).first():
            raise click.ClickException(f"{email} is already registered")

        admin = User(email=email, name=name, role=Role.ADMIN, skills=[], is_active=True)
        admin.set_password(password)
        db.session.add(admin)
        db.session.commit()
        click.echo(f"Admin {email} created.")

    @app.cli.command("seed-demo")
    @click.option("--password", default="password123", show_default=True)
    def seed_demo(password):
        """Seed a demo student, buyer and a few services."""
        people = [
            ("student@collabotree.io", "Ada Student", Role.STUDENT, "State University"),
            ("buyer@collabotree.io", "Ben Buyer", Role.BUYER, None),
        ]
        users = {}
        for email, name, role, university in people:
            user = User.query.filter_by(email=email).first()
            if user is None:
                user = User(email=email, name=name, role=role, university=university, skills=[], is_active=True)
                user.set_password(password)
                db.session.add(user)
            users[role] = user
        db.session.flush()

        student = users[Role.STUDENT]
        if not Service.query.filter_by(owner_id=student.id).first():
            db.session.add_all([
                Service(owner_id=student.id, title="Logo design", description="Two concepts, three revisions.",
                        price_cents=5000),
                Service(owner_id=student.id, title="Python tutoring", description="One hour online session.",
                        price_cents=2500, is_top_selection=True),
            ])
        db.session.commit()
        click.echo("Demo data seeded successfully.")
